class ChatError(Exception):
    """Base class for errors raised by the conversation layer."""

    default_message = "Request failed"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationError(ChatError):
    default_message = "Authentication required"


class AuthorizationError(ChatError):
    default_message = "Access denied"


class NotFoundError(ChatError):
    default_message = "Not found"


class ValidationError(ChatError):
    default_message = "Invalid request"


class PersistenceError(ChatError):
    default_message = "Failed to save changes"
