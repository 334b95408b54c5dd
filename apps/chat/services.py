"""
Le Marché Luxe — chat/services.py
Logique métier de la messagerie, séparée des vues (API REST et WebSocket).

Les règles métier lèvent django.core.exceptions.ValidationError ;
les vues la traduisent en réponse 400.
"""
import logging

from django.core.exceptions import PermissionDenied, ValidationError
from django.db import transaction

from . import realtime
from .models import Conversation, ParticipantConversation, MessageChat

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════
# CONVERSATIONS
# ═══════════════════════════════════════════════════════════════

def creer_conversation(produit, participants):
    """
    Crée la conversation puis une ligne de participation par membre.
    Tout se fait dans une transaction : pas de conversation orpheline.
    """
    membres = list({membre.pk: membre for membre in participants}.values())
    if len(membres) < 2:
        raise ValidationError("Une conversation nécessite au moins deux participants.")

    with transaction.atomic():
        conversation = Conversation.objects.create(produit=produit)
        ParticipantConversation.objects.bulk_create([
            ParticipantConversation(conversation=conversation, utilisateur=membre)
            for membre in membres
        ])

    logger.info(
        f"Conversation #{conversation.pk} créée "
        f"(annonce #{produit.pk if produit else '-'}, {len(membres)} participants)"
    )
    realtime.diffuser_nouvelle_conversation(conversation)
    return conversation


def trouver_ou_creer_conversation(produit, utilisateur, autre_utilisateur):
    """
    Retourne la conversation existante entre les deux membres pour cette
    annonce, ou en crée une nouvelle.

    Returns:
        (conversation, created) : tuple comme get_or_create
    """
    if utilisateur.pk == autre_utilisateur.pk:
        raise ValidationError("Vous ne pouvez pas démarrer une conversation avec vous-même.")

    participations = (
        ParticipantConversation.objects
        .filter(utilisateur=utilisateur, conversation__produit=produit)
        .select_related('conversation')
        .order_by('date_ajout', 'id')
    )
    for participation in participations:
        autre_present = ParticipantConversation.objects.filter(
            conversation_id=participation.conversation_id,
            utilisateur=autre_utilisateur,
        ).exists()
        if autre_present:
            return participation.conversation, False

    return creer_conversation(produit, [utilisateur, autre_utilisateur]), True


def _url_absolue(request, url):
    if url and request is not None:
        return request.build_absolute_uri(url)
    return url


def conversations_utilisateur(utilisateur, request=None):
    """
    Résumés des conversations d'un membre pour la page "Messages".
    Avec la requête HTTP, l'avatar est une URL absolue comme dans les serializers.

    Une requête par conversation pour l'interlocuteur, le dernier message
    et le nombre de non lus. Triés par dernier message (le plus récent
    d'abord), les conversations sans message en dernier.
    """
    participations = (
        ParticipantConversation.objects
        .filter(utilisateur=utilisateur)
        .select_related('conversation')
    )

    resumes = []
    for participation in participations:
        conversation = participation.conversation
        autre = conversation.get_autre_participant(utilisateur)
        if autre is None:
            continue

        dernier = conversation.messages.order_by('-date_envoi', '-id').first()
        non_lus = (
            conversation.messages
            .filter(is_read=False)
            .exclude(expediteur=utilisateur)
            .count()
        )

        resumes.append({
            'id':         conversation.id,
            'produit_id': conversation.produit_id,
            'autre_utilisateur': {
                'id':          autre.id,
                'email':       autre.email,
                'nom_complet': autre.get_full_name(),
                'avatar_url':  _url_absolue(request, autre.avatar_url),
            },
            'dernier_message': {
                'contenu':       dernier.contenu,
                'date_envoi':    dernier.date_envoi,
                'expediteur_id': dernier.expediteur_id,
            } if dernier else None,
            'messages_non_lus': non_lus,
        })

    avec_message = [r for r in resumes if r['dernier_message']]
    sans_message = [r for r in resumes if not r['dernier_message']]
    avec_message.sort(key=lambda r: r['dernier_message']['date_envoi'], reverse=True)
    return avec_message + sans_message


# ═══════════════════════════════════════════════════════════════
# MESSAGES
# ═══════════════════════════════════════════════════════════════

def envoyer_message(conversation, expediteur, contenu):
    """
    Persiste un message. La diffusion WebSocket part du signal post_save.
    """
    contenu = (contenu or '').strip()
    if not contenu:
        raise ValidationError("Le message ne peut pas être vide.")
    if not conversation.a_pour_participant(expediteur):
        raise PermissionDenied("Vous n'êtes pas membre de cette conversation.")

    message = MessageChat.objects.create(
        conversation=conversation,
        expediteur=expediteur,
        contenu=contenu,
    )
    # Remonte la conversation en tête de liste (auto_now)
    conversation.save(update_fields=['date_modification'])
    logger.debug(f"Message #{message.pk} envoyé dans la conversation #{conversation.pk}")
    return message


def messages_conversation(conversation):
    return conversation.messages.select_related('expediteur').order_by('date_envoi', 'id')


def marquer_message_lu(message):
    """
    Passe un message à lu. Retourne False s'il l'était déjà.
    """
    if message.is_read:
        return False

    message.is_read = True
    message.save(update_fields=['is_read'])

    lecteurs = (
        message.conversation.participations
        .exclude(utilisateur_id=message.expediteur_id)
        .values_list('utilisateur_id', flat=True)
    )
    realtime.diffuser_messages_lus(message.conversation_id, list(lecteurs), [message.id])
    return True


def marquer_tous_lus(conversation, utilisateur):
    """
    Marque comme lus tous les messages reçus par `utilisateur`.
    Retourne le nombre de messages mis à jour.
    """
    a_lire = (
        MessageChat.objects
        .filter(conversation=conversation, is_read=False)
        .exclude(expediteur=utilisateur)
    )
    ids = list(a_lire.values_list('id', flat=True))
    if not ids:
        return 0

    nb = MessageChat.objects.filter(id__in=ids, is_read=False).update(is_read=True)
    if nb:
        realtime.diffuser_messages_lus(conversation.id, [utilisateur.id], ids)
    return nb


# ═══════════════════════════════════════════════════════════════
# BADGE NON LUS
# ═══════════════════════════════════════════════════════════════

def total_non_lus_par_id(utilisateur_id):
    return (
        MessageChat.objects
        .filter(conversation__participations__utilisateur_id=utilisateur_id, is_read=False)
        .exclude(expediteur_id=utilisateur_id)
        .count()
    )


def total_non_lus(utilisateur):
    """Messages non lus adressés au membre, toutes conversations confondues."""
    if not utilisateur or not utilisateur.is_authenticated:
        return 0
    return total_non_lus_par_id(utilisateur.id)


def libelle_badge(nombre):
    if nombre <= 0:
        return None
    if nombre > 9:
        return '9+'
    return str(nombre)


def fusionner_message(messages, nouveau):
    """
    Ajoute `nouveau` à la liste sauf si un message de même id y figure déjà.
    Un même message peut arriver deux fois (réponse REST puis événement WebSocket).
    """
    if any(m['id'] == nouveau['id'] for m in messages):
        return list(messages)
    return list(messages) + [nouveau]
