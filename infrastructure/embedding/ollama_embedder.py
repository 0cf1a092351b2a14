"""Embedding provider backed by a local Ollama runtime."""
from __future__ import annotations

import logging
from dataclasses import dataclass

import requests

from domain.errors import EmbeddingError, ModelUnavailableError, OperationTimeoutError
from infrastructure.embedding.base_provider import BaseEmbeddingProvider, ModelReadinessGuard

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class OllamaEmbedderConfig:
    model: str = "mxbai-embed-large"
    ollama_url: str = "http://localhost:11434"
    request_timeout: float = 30.0
    pull_timeout: float = 600.0
    max_concurrency: int = 4


class OllamaEmbeddingProvider(BaseEmbeddingProvider):
    """Calls ``/api/embeddings``, pulling the model on first use."""

    def __init__(
        self,
        config: OllamaEmbedderConfig | None = None,
        *,
        session: requests.Session | None = None,
        guard: ModelReadinessGuard | None = None,
    ) -> None:
        self._config = config or OllamaEmbedderConfig()
        super().__init__(
            guard=guard,
            max_concurrency=self._config.max_concurrency,
            default_timeout=self._config.request_timeout,
        )
        self._session = session or requests.Session()
        self._base_url = self._config.ollama_url.rstrip("/")

    @property
    def model_id(self) -> str:
        return self._config.model

    def list_models(self) -> list[str]:
        """Return locally available model names, or ``[]`` if unreachable."""
        try:
            return self._fetch_model_names()
        except requests.RequestException:
            logger.exception("Failed to list Ollama models.")
            return []

    def check_connection(self) -> bool:
        try:
            self._fetch_model_names()
        except requests.RequestException as exc:
            logger.warning("Ollama connection failed: %s", exc)
            return False
        return True

    def _fetch_model_names(self) -> list[str]:
        response = self._session.get(f"{self._base_url}/api/tags", timeout=self._config.request_timeout)
        response.raise_for_status()
        payload = response.json()
        return [str(item.get("name", "")) for item in payload.get("models", [])]

    def _has_model(self, names: list[str]) -> bool:
        wanted = self._config.model
        return any(name == wanted or name.split(":", 1)[0] == wanted for name in names)

    def _acquire(self) -> None:
        model = self._config.model
        try:
            if self._has_model(self._fetch_model_names()):
                return
            logger.info("Pulling embedding model %s from %s", model, self._base_url)
            response = self._session.post(
                f"{self._base_url}/api/pull",
                json={"model": model, "stream": False},
                timeout=self._config.pull_timeout,
            )
            response.raise_for_status()
            status = response.json().get("status", "")
        except requests.RequestException as exc:
            raise ModelUnavailableError(model, str(exc)) from exc
        if status != "success":
            raise ModelUnavailableError(model, f"pull finished with status {status!r}")
        logger.info("Embedding model %s pulled successfully", model)

    def _embed_one(self, text: str, timeout: float | None) -> list[float]:
        try:
            response = self._session.post(
                f"{self._base_url}/api/embeddings",
                json={"model": self._config.model, "prompt": text},
                timeout=timeout,
            )
            response.raise_for_status()
        except requests.Timeout as exc:
            raise OperationTimeoutError("embedding request", timeout) from exc
        except requests.RequestException as exc:
            raise EmbeddingError(f"Embedding request failed: {exc}", {"model_id": self.model_id}) from exc

        embedding = response.json().get("embedding") or []
        if not embedding:
            raise EmbeddingError("Ollama returned an empty embedding", {"model_id": self.model_id})
        return [float(value) for value in embedding]


__all__ = ["OllamaEmbeddingProvider", "OllamaEmbedderConfig"]
