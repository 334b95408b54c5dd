"""
Vues API REST pour la messagerie (conversations + messages).

Endpoints :
  GET  /api/chat/                      → mes conversations (résumés)
  POST /api/chat/contacter/            → contacter le vendeur d'une annonce
  GET  /api/chat/<id>/                 → détail + messages (marque comme lus)
  GET  /api/chat/<id>/messages/        → messages seuls
  POST /api/chat/<id>/envoyer/         → envoyer un message (fallback WebSocket)
  POST /api/chat/<id>/marquer_lu/      → marquer toute la conversation comme lue
  POST /api/chat/messages/<id>/lu/     → marquer un message reçu comme lu
  GET  /api/chat/non_lus/              → total non lus + libellé du badge

Toutes les routes nécessitent d'être authentifié.
Un membre ne voit que SES conversations (403 sinon, 404 si l'id n'existe pas).
"""
import logging

from django.core.exceptions import ValidationError
from django.shortcuts import get_object_or_404
from rest_framework import status, permissions
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.users.permissions import EstParticipant
from . import services
from .models import Conversation, MessageChat
from .serializers import (
    ConversationDetailSerializer,
    ContacterVendeurSerializer,
    EnvoyerMessageSerializer,
    MessageChatSerializer,
)

logger = logging.getLogger(__name__)


class ConversationMixin:
    """
    Récupère la conversation de l'URL et vérifie l'appartenance
    (EstParticipant → 403 avec un message explicite).
    """
    permission_classes = [permissions.IsAuthenticated, EstParticipant]

    def get_conversation(self, pk):
        conversation = get_object_or_404(
            Conversation.objects.select_related('produit'), pk=pk
        )
        self.check_object_permissions(self.request, conversation)
        return conversation


def _erreur_metier(e):
    return Response({'detail': e.messages[0]}, status=status.HTTP_400_BAD_REQUEST)


# ═══════════════════════════════════════════════════════════════
# GET /api/chat/
# ═══════════════════════════════════════════════════════════════

class ConversationListeAPIView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        return Response(services.conversations_utilisateur(request.user, request=request))


# ═══════════════════════════════════════════════════════════════
# POST /api/chat/contacter/
# ═══════════════════════════════════════════════════════════════

class ContacterVendeurAPIView(APIView):
    """
    Bouton "Contacter le vendeur" d'une fiche annonce.
    201 si la conversation vient d'être créée, 200 si elle existait déjà.
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = ContacterVendeurSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        produit = serializer.validated_data['produit']

        try:
            conversation, created = services.trouver_ou_creer_conversation(
                produit, request.user, produit.vendeur
            )
        except ValidationError as e:
            return _erreur_metier(e)

        if created:
            # Import ici pour éviter les imports circulaires (notifications → chat)
            from apps.notifications.tasks import envoyer_email_premier_contact
            envoyer_email_premier_contact.delay(conversation.id)

        data = ConversationDetailSerializer(conversation, context={'request': request}).data
        return Response(
            data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK
        )


# ═══════════════════════════════════════════════════════════════
# Conversation
# ═══════════════════════════════════════════════════════════════

class ConversationDetailAPIView(ConversationMixin, APIView):
    """
    Ouvrir une conversation marque les messages reçus comme lus.
    """

    def get(self, request, pk):
        conversation = self.get_conversation(pk)
        services.marquer_tous_lus(conversation, request.user)
        serializer = ConversationDetailSerializer(conversation, context={'request': request})
        return Response(serializer.data)


class MessagesConversationAPIView(ConversationMixin, APIView):

    def get(self, request, pk):
        conversation = self.get_conversation(pk)
        messages = services.messages_conversation(conversation)
        return Response(MessageChatSerializer(messages, many=True).data)


class EnvoyerMessageAPIView(ConversationMixin, APIView):
    """
    POST {"message": "..."} : utile quand le WebSocket n'est pas disponible.
    Le message est tout de même diffusé en temps réel (signal post_save).
    """

    def post(self, request, pk):
        conversation = self.get_conversation(pk)
        serializer = EnvoyerMessageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            message = services.envoyer_message(
                conversation, request.user, serializer.validated_data['message']
            )
        except ValidationError as e:
            return _erreur_metier(e)

        return Response(MessageChatSerializer(message).data, status=status.HTTP_201_CREATED)


class MarquerLuAPIView(ConversationMixin, APIView):

    def post(self, request, pk):
        conversation = self.get_conversation(pk)
        nb = services.marquer_tous_lus(conversation, request.user)
        return Response({'messages_lus': nb})


# ═══════════════════════════════════════════════════════════════
# POST /api/chat/messages/<id>/lu/
# ═══════════════════════════════════════════════════════════════

class MarquerMessageLuAPIView(APIView):
    """
    Seul le destinataire peut accuser lecture : l'expéditeur reçoit un 403.
    """
    permission_classes = [permissions.IsAuthenticated, EstParticipant]

    def post(self, request, pk):
        message = get_object_or_404(
            MessageChat.objects.select_related('conversation'), pk=pk
        )
        self.check_object_permissions(request, message)
        if message.expediteur_id == request.user.id:
            return Response(
                {'detail': "Seul le destinataire peut marquer ce message comme lu."},
                status=status.HTTP_403_FORBIDDEN
            )

        services.marquer_message_lu(message)
        return Response(MessageChatSerializer(message).data)


# ═══════════════════════════════════════════════════════════════
# GET /api/chat/non_lus/
# ═══════════════════════════════════════════════════════════════

class NonLusAPIView(APIView):
    """Badge de la barre de navigation."""
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        nombre = services.total_non_lus(request.user)
        return Response({
            'messages_non_lus': nombre,
            'badge':            services.libelle_badge(nombre),
        })
