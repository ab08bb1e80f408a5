"""Abstract base class for structured completion providers.

The session runner interacts exclusively through this interface. It never
calls provider SDKs directly, which keeps the stream consumers testable
with scripted providers.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from pydantic import BaseModel

from hnsynth.schemas.config import GeneratorConfig


class StructuredProvider(ABC):
    """Abstract interface for a backend that streams schema-shaped output.

    Initialized from a GeneratorConfig. Exposes identity and retry budget
    plus a single ``stream_structured`` method.
    """

    def __init__(self, config: GeneratorConfig) -> None:
        self._config = config

    # ── Identity ──────────────────────────────────────────────

    @property
    def model_id(self) -> str:
        """LiteLLM model identifier used for routing."""
        return self._config.model

    @property
    def max_retries(self) -> int:
        """Backend attempts allowed per structured request."""
        return self._config.max_retries

    @property
    def config(self) -> GeneratorConfig:
        """The full GeneratorConfig backing this provider."""
        return self._config

    # ── Core interface ────────────────────────────────────────

    @abstractmethod
    def stream_structured(
        self,
        prompt: str,
        schema: type[BaseModel],
    ) -> AsyncIterator[BaseModel]:
        """Stream progressively more complete results for ``prompt``.

        Each element is a best-effort parse of the output so far, validated
        against a partial form of ``schema`` (every field optional, every
        present value checked). Later elements refine earlier ones; they
        are cumulative snapshots, not independent samples. The sequence is
        lazy, finite and not restartable: iterating it again issues a new
        backend request.

        Args:
            prompt: Non-empty instruction for the model.
            schema: Pydantic model describing the expected output.

        Raises:
            ValueError: If ``prompt`` is empty.
            BackendUnavailable: If the backend cannot be reached.
            SchemaValidationFailure: If the output cannot be coerced to
                ``schema`` within the retry budget.
        """
