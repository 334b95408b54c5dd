"""
Le Marché Luxe — chat/consumers.py
Consumer WebSocket de la messagerie.

Fonctionnement :
  1. Le membre ouvre ws://localhost:8000/ws/chat/<conversation_id>/?token=<jwt>
  2. connect()    → vérifie auth + appartenance + rejoint le groupe chat_<id>
  3. receive()    → persiste le message via services.envoyer_message()
  4. signals.py   → diffuse "message.nouveau" au groupe (y compris à l'expéditeur)
  5. disconnect() → quitte le groupe proprement

Sécurité :
  - Utilisateur non authentifié → rejeté (close code 4001)
  - Utilisateur non participant  → rejeté (close code 4003)
  - JSON invalide ou message vide → ignorés silencieusement

Messages envoyés au client :
  {"type": "message", "message": {...}}
  {"type": "lus", "message_ids": [...]}
  {"type": "erreur", "detail": "..."}
"""
import json

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer
from django.core.exceptions import PermissionDenied, ValidationError

from . import services
from .models import Conversation
from .realtime import groupe_conversation


class ChatConsumer(AsyncWebsocketConsumer):
    """
    Attributs définis dans connect() :
      self.conversation_id : ID de la conversation (URL)
      self.group_name      : "chat_<id>"
      self.user            : membre authentifié (scope)
      self.conversation    : instance Conversation
    """

    async def connect(self):
        self.conversation_id = int(self.scope['url_route']['kwargs']['conversation_id'])
        self.user            = self.scope['user']

        # ── Vérif 1 : authentifié ─────────────────────────────
        if not self.user.is_authenticated:
            await self.close(code=4001)
            return

        # ── Vérif 2 : participant de la conversation ──────────
        self.conversation = await self._get_conversation()
        if self.conversation is None:
            await self.close(code=4003)
            return

        self.group_name = groupe_conversation(self.conversation_id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()

        # Le membre vient d'ouvrir la conversation
        await self._marquer_messages_lus()

    async def disconnect(self, close_code):
        if hasattr(self, 'group_name'):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def receive(self, text_data=None, bytes_data=None):
        """
        Format attendu : {"message": "Bonjour, le sac est-il toujours disponible ?"}
        """
        try:
            data = json.loads(text_data)
        except (json.JSONDecodeError, TypeError):
            return

        if not isinstance(data, dict):
            return
        contenu = data.get('message')
        if not isinstance(contenu, str) or not contenu.strip():
            return

        try:
            await self._envoyer_message(contenu)
        except (ValidationError, PermissionDenied) as e:
            detail = e.messages[0] if isinstance(e, ValidationError) else str(e)
            await self.send(text_data=json.dumps({'type': 'erreur', 'detail': detail}))

    # ── Handlers du channel layer ────────────────────────────

    async def message_nouveau(self, event):
        """Événement "message.nouveau" diffusé par signals.py."""
        message = event['message']
        await self.send(text_data=json.dumps({'type': 'message', 'message': message}))

        # Message de l'interlocuteur reçu pendant que la conversation est ouverte
        if message['expediteur_id'] != self.user.id:
            await self._marquer_messages_lus()

    async def messages_lus(self, event):
        await self.send(text_data=json.dumps({
            'type':        'lus',
            'message_ids': event['message_ids'],
        }))

    # ── ORM (exécuté dans un thread séparé) ──────────────────

    @database_sync_to_async
    def _get_conversation(self):
        """None si la conversation n'existe pas ou si le membre n'en fait pas partie."""
        return Conversation.objects.filter(
            id=self.conversation_id,
            participations__utilisateur=self.user,
        ).first()

    @database_sync_to_async
    def _envoyer_message(self, contenu):
        return services.envoyer_message(self.conversation, self.user, contenu)

    @database_sync_to_async
    def _marquer_messages_lus(self):
        return services.marquer_tous_lus(self.conversation, self.user)
