import logging
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware

from backoffice.tokens import get_user_id_from_token
from conversations.exceptions import AuthenticationError
from users.services import load_identity

logger = logging.getLogger(__name__)

AUTH_FAILED_CLOSE_CODE = 4001


class WebSocketAuthMiddleware(BaseMiddleware):
    """
    Authenticates a WebSocket handshake once, before the consumer runs.

    The bearer token travels in the handshake payload as the ``token`` query
    parameter. A missing or invalid token, or a token for a user that no longer
    exists, refuses the handshake; nothing downstream ever sees the connection.
    On success the resolved Identity is stored in ``scope['identity']``.
    """

    async def __call__(self, scope, receive, send):
        query_string = scope.get('query_string', b'').decode()
        query_params = parse_qs(query_string)
        token = query_params.get('token', [None])[0]

        try:
            identity = await self.authenticate(token)
        except AuthenticationError as e:
            logger.warning("WebSocket handshake rejected: %s", e.message)
            await send({
                'type': 'websocket.close',
                'code': AUTH_FAILED_CLOSE_CODE,
                'reason': e.message,
            })
            return

        scope = dict(scope, identity=identity, user_id=identity.id)
        return await super().__call__(scope, receive, send)

    async def authenticate(self, token):
        if not token:
            raise AuthenticationError("No token")
        user_id = get_user_id_from_token(token)
        return await self.get_identity(user_id)

    @database_sync_to_async
    def get_identity(self, user_id):
        return load_identity(user_id)
