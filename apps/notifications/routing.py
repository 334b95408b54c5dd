"""
Routes WebSocket du badge de messagerie.
Pas d'ID dans l'URL : le groupe est déduit du membre authentifié.
"""
from django.urls import re_path
from . import consumers

websocket_urlpatterns = [
    # ws://localhost:8000/ws/notifications/
    re_path(r'^ws/notifications/$', consumers.NotificationConsumer.as_asgi()),
]
