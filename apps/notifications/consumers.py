"""
Le Marché Luxe — notifications/consumers.py
Badge global "messages non lus", ouvert sur toutes les pages du frontend.

Fonctionnement :
  1. ws://localhost:8000/ws/notifications/?token=<jwt>
  2. connect() → vérifie auth + rejoint le groupe personnel notifications_<user_id>
  3. Envoie {"type": "init", "messages_non_lus": n}
  4. chat/realtime.py pousse "conversations.maj" à chaque nouveau message
     ou changement de statut lu → le frontend recharge sa liste

Sécurité :
  - Utilisateur non authentifié → rejeté (close code 4001)
  - Chaque membre n'écoute que SON groupe
"""
import json

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer

from apps.chat.realtime import groupe_notifications
from apps.chat.services import total_non_lus, libelle_badge


class NotificationConsumer(AsyncWebsocketConsumer):

    async def connect(self):
        self.user = self.scope['user']

        if not self.user.is_authenticated:
            await self.close(code=4001)
            return

        self.group_name = groupe_notifications(self.user.id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()

        # Badge initial dès la connexion
        nombre = await self._get_total_non_lus()
        await self.send(text_data=json.dumps({
            'type':             'init',
            'messages_non_lus': nombre,
            'badge':            libelle_badge(nombre),
        }))

    async def disconnect(self, close_code):
        if hasattr(self, 'group_name'):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def receive(self, text_data=None, bytes_data=None):
        # Canal en lecture seule : le client n'envoie rien
        pass

    async def conversations_maj(self, event):
        """Événement "conversations.maj" diffusé par chat/realtime.py."""
        nombre = event['messages_non_lus']
        await self.send(text_data=json.dumps({
            'type':             'conversations_maj',
            'conversation_id':  event['conversation_id'],
            'messages_non_lus': nombre,
            'badge':            libelle_badge(nombre),
        }))

    @database_sync_to_async
    def _get_total_non_lus(self):
        return total_non_lus(self.user)
