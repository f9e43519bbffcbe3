# creator_match/errors.py
from typing import Optional


class CreatorMatchError(Exception):
    pass


class ValidationError(CreatorMatchError):
    """Missing or malformed input; raised before any side effect."""


class NotFoundError(CreatorMatchError):
    pass


class PersistenceError(CreatorMatchError):
    pass


class InvalidTransition(CreatorMatchError):
    pass


class ProviderError(CreatorMatchError):
    """
    The social platform rejected a call, timed out, or was unreachable.
    `details` carries the provider's own message when it sent one.
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        code: Optional[int] = None,
        error_type: Optional[str] = None,
        details: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code
        self.error_type = error_type
        self.details = details


class AuthError(ProviderError):
    pass


class TokenExpiredError(AuthError):
    pass


class MediaFetchError(ProviderError):
    pass
