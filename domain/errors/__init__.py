"""Error taxonomy for the retrieval core."""
from __future__ import annotations

from typing import Any


class RetrievalError(Exception):
    """Base class for every error raised by the retrieval core."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(RetrievalError):
    """Raised for invalid or unknown configuration values."""


class EmptyContentError(RetrievalError):
    """The source has no usable text to index."""

    def __init__(self, source_name: str, details: dict[str, Any] | None = None) -> None:
        details = details or {}
        details["source_name"] = source_name
        super().__init__(f"No usable text content in source: {source_name}", details)


class ModelUnavailableError(RetrievalError):
    """The embedding model could not be acquired by the serving runtime."""

    def __init__(self, model_id: str, reason: str, details: dict[str, Any] | None = None) -> None:
        details = details or {}
        details["model_id"] = model_id
        super().__init__(f"Embedding model unavailable: {model_id} ({reason})", details)


class EmbeddingError(RetrievalError):
    """An embedding request failed after the model was available."""


class OperationTimeoutError(RetrievalError):
    """A network-bound step did not finish within its deadline."""

    def __init__(self, operation: str, timeout: float | None) -> None:
        super().__init__(
            f"{operation} timed out after {timeout}s",
            {"operation": operation, "timeout": timeout},
        )


class IngestionCancelledError(RetrievalError):
    """The request that started an ingestion was cancelled before commit."""

    def __init__(self, source_name: str) -> None:
        super().__init__(f"Ingestion cancelled: {source_name}", {"source_name": source_name})


class NotInitializedError(RetrievalError):
    """A live vector store was used before ``initialize()`` succeeded."""

    def __init__(self, operation: str) -> None:
        super().__init__(
            f"Vector store not initialized (operation: {operation})",
            {"operation": operation},
        )


class VectorStoreUnavailableError(RetrievalError):
    """The live vector backend failed while serving a request."""


class UnsupportedDocumentError(RetrievalError):
    """No text extractor is registered for the document type."""

    def __init__(self, file_type: str, allowed: list[str]) -> None:
        super().__init__(
            f"Unsupported file type: {file_type}. Allowed: {', '.join(allowed)}",
            {"file_type": file_type},
        )


__all__ = [
    "ConfigurationError",
    "EmbeddingError",
    "EmptyContentError",
    "IngestionCancelledError",
    "ModelUnavailableError",
    "NotInitializedError",
    "OperationTimeoutError",
    "RetrievalError",
    "UnsupportedDocumentError",
    "VectorStoreUnavailableError",
]
