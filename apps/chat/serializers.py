"""
Serializers pour la messagerie.

- MessageChatSerializer        → un message (lecture)
- ConversationDetailSerializer → détail avec messages
- ContacterVendeurSerializer   → ouvrir une conversation depuis une annonce
- EnvoyerMessageSerializer     → corps de POST /api/chat/<id>/envoyer/

La liste des conversations n'a pas de serializer : services.conversations_utilisateur()
retourne directement les résumés.
"""
from rest_framework import serializers

from apps.products.models import Produit
from apps.users.serializers import UtilisateurPublicSerializer
from .models import Conversation, MessageChat


# ═══════════════════════════════════════════════════════════════
# SERIALIZER — Message
# ═══════════════════════════════════════════════════════════════

class MessageChatSerializer(serializers.ModelSerializer):

    # Pseudo affiché de l'expéditeur
    nom_expediteur = serializers.CharField(
        source='expediteur.username',
        read_only=True,
        default=None
    )

    class Meta:
        model  = MessageChat
        fields = [
            'id',
            'conversation',
            'expediteur',       # ID (pour identifier ses propres messages)
            'nom_expediteur',
            'contenu',
            'is_read',
            'date_envoi',
        ]
        read_only_fields = fields


# ═══════════════════════════════════════════════════════════════
# SERIALIZER — Détail d'une conversation
# ═══════════════════════════════════════════════════════════════

class ConversationDetailSerializer(serializers.ModelSerializer):
    """
    GET /api/chat/<id>/ : annonce concernée, interlocuteur et messages.
    """

    interlocuteur = serializers.SerializerMethodField()
    produit       = serializers.SerializerMethodField()
    messages      = serializers.SerializerMethodField()

    class Meta:
        model  = Conversation
        fields = ['id', 'produit', 'interlocuteur', 'messages', 'date_creation']
        read_only_fields = fields

    def get_interlocuteur(self, obj):
        autre = obj.get_autre_participant(self.context['request'].user)
        if autre is None:
            return None
        return UtilisateurPublicSerializer(autre, context=self.context).data

    def get_produit(self, obj):
        if obj.produit is None:
            return None
        return {
            'id':     obj.produit.id,
            'titre':  obj.produit.titre,
            'prix':   str(obj.produit.prix),
            'statut': obj.produit.statut,
        }

    def get_messages(self, obj):
        from .services import messages_conversation
        return MessageChatSerializer(messages_conversation(obj), many=True).data


# ═══════════════════════════════════════════════════════════════
# SERIALIZERS — Écriture
# ═══════════════════════════════════════════════════════════════

class ContacterVendeurSerializer(serializers.Serializer):
    """
    Le vendeur est déduit de l'annonce : l'acheteur n'envoie que produit_id.
    """
    produit_id = serializers.IntegerField()

    def validate(self, attrs):
        try:
            attrs['produit'] = Produit.objects.select_related('vendeur').get(
                pk=attrs['produit_id'], statut=Produit.ACTIF
            )
        except Produit.DoesNotExist:
            raise serializers.ValidationError({'produit_id': "Annonce introuvable ou hors ligne."})
        return attrs


class EnvoyerMessageSerializer(serializers.Serializer):
    # La règle "message vide" est portée par services.envoyer_message()
    message = serializers.CharField(allow_blank=True, trim_whitespace=False)
