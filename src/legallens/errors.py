"""Exception hierarchy shared by the model client, analysis and session layers."""
from __future__ import annotations


class LegalLensError(RuntimeError):
    """Base exception for LegalLens failures."""

    def __init__(self, message: str, *, cause: Exception | None = None) -> None:
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause


class ModelClientError(LegalLensError):
    """Raised for failures talking to the text-generation service."""


class KeyPoolExhausted(ModelClientError):
    """Raised when every key in the pool was rate limited, or the pool is empty."""


class TransportError(ModelClientError):
    """Raised for non-quota failures returned by the model service."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.status_code = status_code


class RateLimitedError(TransportError):
    """Raised by a transport when the service signals a rate limit or quota."""


class ModelCallTimeout(TransportError):
    """Raised when a single model call exceeds the configured timeout."""


class MalformedModelOutput(ModelClientError):
    """Raised when a structured reply cannot be decoded as JSON."""

    def __init__(self, message: str, *, raw_text: str = "", cause: Exception | None = None) -> None:
        super().__init__(message, cause=cause)
        self.raw_text = raw_text


class ContextNotFound(LegalLensError):
    """Raised when no document context exists for the requested document id."""

    def __init__(self, document_id: str, message: str | None = None) -> None:
        super().__init__(message or f"Document not found: {document_id}")
        self.document_id = document_id


class SessionNotFound(ContextNotFound):
    """Raised when the document exists but its chat session does not."""

    def __init__(self, document_id: str) -> None:
        super().__init__(document_id, f"Chat session not found for document: {document_id}")


class SessionWriteConflict(LegalLensError):
    """Raised when another writer updated a chat session between read and write."""

    def __init__(self, document_id: str, expected_version: int, found_version: int) -> None:
        super().__init__(
            f"Chat session for {document_id} changed concurrently "
            f"(expected version {expected_version}, found {found_version})"
        )
        self.document_id = document_id
        self.expected_version = expected_version
        self.found_version = found_version


__all__ = [
    "ContextNotFound",
    "KeyPoolExhausted",
    "LegalLensError",
    "MalformedModelOutput",
    "ModelCallTimeout",
    "ModelClientError",
    "RateLimitedError",
    "SessionNotFound",
    "SessionWriteConflict",
    "TransportError",
]
