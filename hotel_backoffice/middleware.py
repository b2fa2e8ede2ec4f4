from urllib.parse import parse_qs

from channels.auth import AuthMiddlewareStack
from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth.models import AnonymousUser
from rest_framework.authtoken.models import Token


@database_sync_to_async
def get_token_user(key):
    try:
        return Token.objects.select_related("user").get(key=key).user
    except Token.DoesNotExist:
        return AnonymousUser()


def token_from_scope(scope):
    """
    The API token of a websocket handshake.

    Browsers cannot set headers on a websocket, so dashboards pass
    ``?token=<key>``; other clients may send ``Authorization: Token <key>``.
    """
    query = parse_qs(scope.get("query_string", b"").decode("latin-1"))
    if query.get("token"):
        return query["token"][0]

    for name, value in scope.get("headers", []):
        if name == b"authorization":
            keyword, _, key = value.decode("latin-1").partition(" ")
            if keyword.lower() == "token" and key:
                return key.strip()
    return None


class TokenAuthMiddleware(BaseMiddleware):
    """Sets ``scope["user"]`` from a DRF auth token when the handshake carries one."""

    async def __call__(self, scope, receive, send):
        key = token_from_scope(scope)
        if key:
            scope = dict(scope, user=await get_token_user(key))
        return await super().__call__(scope, receive, send)


def TokenAuthMiddlewareStack(inner):
    # session login still works; a token, when present, takes precedence
    return AuthMiddlewareStack(TokenAuthMiddleware(inner))
