"""
Access token utilities for the backoffice application.

Tokens are HS256 JWTs whose subject is the user id. The same verification is
used by the HTTP authentication class and the WebSocket handshake.
"""

import logging
import time

import jwt
from django.conf import settings

from conversations.exceptions import AuthenticationError

logger = logging.getLogger(__name__)


class TokenManager:
    """
    Issues and verifies signed access tokens.
    """

    # Settings are read on every call so override_settings applies
    def _get_secret(self):
        return getattr(settings, 'JWT_SECRET', 'test_jwt_secret_key')

    def _get_algorithm(self):
        return getattr(settings, 'JWT_ALGORITHM', 'HS256')

    def generate_token(self, user_id, expires_in_hours=24, **claims):
        """
        Generate a token for the given user id.

        Args:
            user_id: Primary key of the user the token is issued for
            expires_in_hours (int): Token lifetime, negative values give an already expired token
            **claims: Extra claims copied into the payload

        Returns:
            str: Encoded JWT
        """
        now = int(time.time())
        payload = {
            'sub': str(user_id),
            'iat': now,
            'exp': now + int(expires_in_hours * 3600),
        }
        payload.update(claims)
        return jwt.encode(payload, self._get_secret(), algorithm=self._get_algorithm())

    def verify_token(self, token):
        """
        Verify a token signature and expiry and return its claims.

        Raises:
            AuthenticationError: If the token is missing, expired or invalid
        """
        if not token:
            raise AuthenticationError("No token")

        try:
            return jwt.decode(
                token,
                self._get_secret(),
                algorithms=[self._get_algorithm()],
            )
        except jwt.ExpiredSignatureError as e:
            logger.warning("Rejected expired access token", extra={"error": str(e)})
            raise AuthenticationError("Token has expired") from e
        except jwt.InvalidTokenError as e:
            logger.warning("Rejected invalid access token", extra={"error": str(e)})
            raise AuthenticationError("Invalid token") from e

    def extract_user_id(self, token):
        """
        Return the user id carried by a verified token.

        The subject claim is preferred; tokens minted by the legacy login flow
        carry the id in an ``id`` claim instead.
        """
        payload = self.verify_token(token)
        user_id = payload.get('sub') or payload.get('id') or payload.get('user_id')
        if user_id is None:
            raise AuthenticationError("Invalid token")
        try:
            return int(user_id)
        except (TypeError, ValueError) as e:
            raise AuthenticationError("Invalid token") from e


_token_manager = None


def _get_token_manager():
    global _token_manager
    if _token_manager is None:
        _token_manager = TokenManager()
    return _token_manager


def generate_test_token(user_id, expires_in_hours=24, **claims):
    """Generate a signed token for the given user id."""
    return _get_token_manager().generate_token(user_id, expires_in_hours, **claims)


def verify_token(token):
    """Verify a token and return its payload."""
    return _get_token_manager().verify_token(token)


def get_user_id_from_token(token):
    """Verify a token and return the user id it was issued for."""
    return _get_token_manager().extract_user_id(token)
