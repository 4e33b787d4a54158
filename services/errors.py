# services/errors.py
"""Custom exception classes."""

UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred"


class FunnelError(Exception):
    """Base class: message is safe to show to the user."""

    default_message = UNEXPECTED_ERROR_MESSAGE

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)

    @property
    def user_message(self) -> str:
        return str(self)


class IdentityError(FunnelError):
    default_message = "Failed to load user data"


class AuthenticationError(IdentityError):
    """Raised when login credentials are invalid."""

    default_message = "Invalid email or password"


class SignUpError(IdentityError):
    """Raised when a new account cannot be created."""

    default_message = "Could not create your account"


class CheckoutSessionError(FunnelError):
    """Raised when the payment provider refuses or fails to create a session."""

    default_message = "Failed to create checkout session"


class DataStoreError(FunnelError):
    default_message = "Failed to load user data"


def user_message(exc: BaseException) -> str:
    """錯誤轉成一句可以顯示給使用者的話；未知錯誤一律用通用訊息。"""
    if isinstance(exc, FunnelError):
        return exc.user_message
    return UNEXPECTED_ERROR_MESSAGE
