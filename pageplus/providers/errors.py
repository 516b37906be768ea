from __future__ import annotations


class ProviderError(RuntimeError):
    """Base class for failures raised by an AI provider backend."""


class ProviderUnavailable(ProviderError):
    """The backend's availability state does not allow a session."""


class SessionNotInitialized(ProviderError):
    def __init__(self, provider: str) -> None:
        super().__init__(f"{provider} session not initialized")
        self.provider = provider


class SessionDestroyed(ProviderError):
    """The runtime session was torn down while a call was in flight."""


class StructuredOutputError(ProviderError):
    def __init__(self, message: str, raw: str | None = None) -> None:
        super().__init__(message)
        self.raw = raw


class TransportError(ProviderError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def is_session_destroyed(exc: BaseException) -> bool:
    """Runtimes signal a concurrent teardown with a 'destroyed' message."""
    if isinstance(exc, SessionDestroyed):
        return True
    return "destroyed" in str(exc).lower()


__all__ = [
    "ProviderError",
    "ProviderUnavailable",
    "SessionDestroyed",
    "SessionNotInitialized",
    "StructuredOutputError",
    "TransportError",
    "is_session_destroyed",
]
