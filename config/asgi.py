"""
Le Marché Luxe — asgi.py
Point d'entrée ASGI : Daphne gère ici HTTP et WebSocket simultanément
"""
import os
from django.core.asgi import get_asgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

# Django doit être initialisé avant d'importer les consumers (modèles)
django_asgi_app = get_asgi_application()

from channels.routing import ProtocolTypeRouter, URLRouter
from channels.security.websocket import AllowedHostsOriginValidator

# Import des routes WebSocket de chaque app
import apps.chat.routing
import apps.notifications.routing
from apps.chat.middleware import JWTAuthMiddlewareStack

application = ProtocolTypeRouter({

    # Requêtes HTTP classiques → Django normal
    'http': django_asgi_app,

    # Requêtes WebSocket → Django Channels
    # Session Django (admin) ou ?token=<access JWT> (frontend)
    'websocket': AllowedHostsOriginValidator(
        JWTAuthMiddlewareStack(
            URLRouter(
                # ws://localhost:8000/ws/chat/<id>/
                apps.chat.routing.websocket_urlpatterns +
                # ws://localhost:8000/ws/notifications/
                apps.notifications.routing.websocket_urlpatterns
            )
        )
    ),
})
