"""
Le Marché Luxe — chat/realtime.py
Diffusion des changements de la messagerie vers les groupes Channels.

Groupes :
  - chat_<conversation_id>      : membres ayant la conversation ouverte (ChatConsumer)
  - notifications_<user_id>     : badge global d'un membre (NotificationConsumer)

Événements :
  - message.nouveau    → chat_<id>          (nouveau message à afficher)
  - messages.lus       → chat_<id>          (ids des messages passés à lu)
  - conversations.maj  → notifications_<id> (recharger la liste + nouveau total non lus)

Une panne du channel layer (Redis arrêté) ne doit jamais faire échouer
l'écriture en base : l'erreur est seulement journalisée.
"""
import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

logger = logging.getLogger(__name__)


def groupe_conversation(conversation_id):
    return f'chat_{conversation_id}'


def groupe_notifications(utilisateur_id):
    return f'notifications_{utilisateur_id}'


def serialiser_message(message):
    """Format JSON d'un message dans les événements WebSocket."""
    expediteur = message.expediteur
    return {
        'id':              message.id,
        'conversation_id': message.conversation_id,
        'expediteur_id':   message.expediteur_id,
        'expediteur':      expediteur.username if expediteur else None,
        'contenu':         message.contenu,
        'is_read':         message.is_read,
        'date_envoi':      message.date_envoi.isoformat(),
    }


def _envoyer_groupe(groupe, evenement):
    try:
        channel_layer = get_channel_layer()
        if channel_layer is None:
            return
        async_to_sync(channel_layer.group_send)(groupe, evenement)
    except Exception as e:
        logger.warning(f"Diffusion WebSocket impossible vers {groupe} : {e}")


def diffuser_conversations_maj(utilisateur_ids, conversation_id):
    """
    Demande à chaque membre de recharger sa liste de conversations.
    Le total de messages non lus est recalculé pour chacun.
    """
    from .services import total_non_lus_par_id

    for utilisateur_id in utilisateur_ids:
        _envoyer_groupe(groupe_notifications(utilisateur_id), {
            'type':             'conversations.maj',
            'conversation_id':  conversation_id,
            'messages_non_lus': total_non_lus_par_id(utilisateur_id),
        })


def diffuser_nouveau_message(message):
    _envoyer_groupe(groupe_conversation(message.conversation_id), {
        'type':    'message.nouveau',
        'message': serialiser_message(message),
    })
    participants = message.conversation.participations.values_list('utilisateur_id', flat=True)
    diffuser_conversations_maj(list(participants), message.conversation_id)


def diffuser_messages_lus(conversation_id, lecteur_ids, message_ids):
    _envoyer_groupe(groupe_conversation(conversation_id), {
        'type':        'messages.lus',
        'message_ids': list(message_ids),
    })
    diffuser_conversations_maj(lecteur_ids, conversation_id)


def diffuser_nouvelle_conversation(conversation):
    participants = conversation.participations.values_list('utilisateur_id', flat=True)
    diffuser_conversations_maj(list(participants), conversation.id)
