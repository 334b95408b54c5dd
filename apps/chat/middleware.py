"""
Le Marché Luxe — chat/middleware.py
Authentification des WebSockets par JWT.

Le navigateur ne peut pas envoyer d'en-tête Authorization lors de la
poignée de main WebSocket : le frontend passe son access token en
paramètre (ws://.../ws/chat/42/?token=<access>). La session Django
reste prise en compte en premier (admin).
"""
import logging
from urllib.parse import parse_qs

from channels.auth import AuthMiddlewareStack
from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth.models import AnonymousUser
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import TokenError

logger = logging.getLogger(__name__)


def _token_depuis_query_string(scope):
    query_string = scope.get('query_string', b'').decode()
    tokens = parse_qs(query_string).get('token')
    return tokens[0] if tokens else None


@database_sync_to_async
def _utilisateur_depuis_token(token):
    jwt_auth = JWTAuthentication()
    try:
        token_valide = jwt_auth.get_validated_token(token)
        return jwt_auth.get_user(token_valide)
    except (AuthenticationFailed, TokenError) as e:
        # Token expiré, falsifié ou compte désactivé
        logger.debug(f"JWT WebSocket refusé : {e}")
        return AnonymousUser()


class JWTAuthMiddleware(BaseMiddleware):

    async def __call__(self, scope, receive, send):
        scope = dict(scope)
        user = scope.get('user')

        if user is None or not user.is_authenticated:
            token = _token_depuis_query_string(scope)
            scope['user'] = await _utilisateur_depuis_token(token) if token else AnonymousUser()

        return await super().__call__(scope, receive, send)


def JWTAuthMiddlewareStack(inner):
    """Session Django d'abord, puis ?token=<access JWT>."""
    return AuthMiddlewareStack(JWTAuthMiddleware(inner))
