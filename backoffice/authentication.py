from rest_framework.authentication import BaseAuthentication
from rest_framework.exceptions import AuthenticationFailed

from conversations.exceptions import AuthenticationError
from users.services import load_user

from .tokens import get_user_id_from_token


class BearerTokenAuthentication(BaseAuthentication):
    keyword = "Bearer"

    def authenticate(self, request):
        """
        Authenticate a request using the JWT in the Authorization header.

        Returns ``None`` when no Authorization header is present so that
        permission checks answer with 401. On success the user model is
        returned as ``request.user`` and its resolved Identity (role and
        capability set) as ``request.auth``.

        Raises:
            AuthenticationFailed: If the header is malformed, the token fails
            verification, or the user no longer exists.
        """
        auth_header = request.headers.get("Authorization", "")
        if not auth_header:
            return None

        parts = auth_header.split()
        if len(parts) != 2 or parts[0] != self.keyword:
            raise AuthenticationFailed("Wrong token format. Expected 'Bearer token'")

        try:
            user_id = get_user_id_from_token(parts[1])
            user, identity = load_user(user_id)
        except AuthenticationError as e:
            raise AuthenticationFailed(e.message)

        return (user, identity)

    def authenticate_header(self, request):
        return self.keyword
