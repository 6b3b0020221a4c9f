"""Exceptions raised by the generation services."""
from typing import Optional


class InvalidGenerationInputError(ValueError):
    """Raised when the character input or darkness selection is incomplete.

    This is a precondition failure: it is never retried and never triggers
    the local fallback.
    """


class ProviderIntegrationError(RuntimeError):
    """Raised when a provider fails to produce a narrative.

    The underlying exception, when there is one, is chained as ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        error_type: Optional[str] = None,
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_type = error_type
        self.error_code = error_code
        self.error_message = error_message
