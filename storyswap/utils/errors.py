"""Custom exception hierarchy for StorySwap.

All application exceptions inherit from :class:`StorySwapError`, which
carries an optional ``provider_name`` so error handlers can identify which
backing service (e.g. "sqlite_swap", "moderation") caused the failure.

The hierarchy is organized by how the API layer must answer:

    StorySwapError  (base -- catch-all for any StorySwap error)
    +-- NotFoundError          (unknown story / swap id)            404
    +-- ForbiddenError         (acting user lacks ownership / role) 403
    +-- SwapStateError         (illegal swap state transition)      409
    +-- ValidationFailedError  (malformed request payload)          422
    +-- ProcessingFaultError   (fault inside moderation/materialize) 500
    +-- PersistenceError       (storage layer failure)              500
    +-- ConfigurationError     (startup / missing config)           500

Submission rule violations and moderation failures are NOT raised: they
are recorded on the swap and returned as a normal rejected outcome.  Only
``ProcessingFaultError`` marks a server-side fault in the swap pipeline.
"""


class StorySwapError(Exception):
    """Base exception for all StorySwap errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name``.  ``status_code`` is the HTTP status the API
    middleware answers with when the error escapes a route handler.
    """

    status_code: int = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        # Prefix the provider name for easier log scanning.
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Caller errors
# ---------------------------------------------------------------------------

class NotFoundError(StorySwapError):
    """Raised when a story, swap, or other record id does not resolve."""

    status_code = 404

    def __init__(
        self,
        message: str = "Resource not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ForbiddenError(StorySwapError):
    """Raised when the acting user is not the owner or lacks the required role."""

    status_code = 403

    def __init__(
        self,
        message: str = "Access denied",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class SwapStateError(StorySwapError):
    """Raised when an operation is illegal for the swap's current status.

    Examples: retrying a swap that is not ``rejected``, cancelling one that
    is not ``pending``.  The swap is left untouched.
    """

    status_code = 409

    def __init__(
        self,
        message: str = "Operation not allowed in the current swap state",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ValidationFailedError(StorySwapError):
    """Raised when a request payload cannot be processed at all."""

    status_code = 422

    def __init__(
        self,
        message: str = "Request validation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Server-side faults
# ---------------------------------------------------------------------------

class ProcessingFaultError(StorySwapError):
    """Raised when the moderation or materialization pipeline faults.

    The swap being processed is rejected before this propagates, so the
    user is never left with a swap stuck in ``pending``.
    """

    def __init__(
        self,
        message: str = "Swap processing failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class PersistenceError(StorySwapError):
    """Raised when a storage operation fails unexpectedly."""

    def __init__(
        self,
        message: str = "Storage operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(StorySwapError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
