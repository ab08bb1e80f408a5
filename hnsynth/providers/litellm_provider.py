"""LiteLLM adapter implementing the StructuredProvider interface.

Issues streaming completion requests through LiteLLM's unified API, with
the target schema presented either as a forced tool call or as a JSON
``response_format``. Streamed deltas are accumulated, parsed as partial
JSON and validated after every delta. Transient backend failures and
early schema failures restart the request with exponential backoff.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any

import litellm
import openai
from pydantic import BaseModel

# Suppress LiteLLM's "Give Feedback / Get Help" and "Provider List" banners
litellm.suppress_debug_info = True

from hnsynth.errors import BackendUnavailable, SchemaValidationFailure
from hnsynth.keys import get_credentials
from hnsynth.prompts import render_prompt
from hnsynth.providers.base import StructuredProvider
from hnsynth.providers.partial import parse_partial, validate_final, validate_partial
from hnsynth.schemas.config import CompletionMode, GeneratorConfig

logger = logging.getLogger(__name__)

# Name of the single function the model is forced to call in tools mode
TOOL_NAME = "value_extraction"

_BASE_BACKOFF = 1.0  # seconds

_TRANSIENT_ERRORS = (
    TimeoutError,
    litellm.Timeout,
    litellm.RateLimitError,
    litellm.ServiceUnavailableError,
    litellm.InternalServerError,
    litellm.APIConnectionError,
)


def _short_error_reason(error: Exception) -> str:
    """Extract a short, user-friendly reason from a LiteLLM or schema error."""
    if isinstance(error, SchemaValidationFailure):
        return "schema mismatch"
    error_str = str(error).lower()
    if "rate" in error_str or "429" in error_str:
        return "rate limit"
    if "timeout" in error_str or isinstance(error, TimeoutError):
        return "timeout"
    if "503" in error_str or "unavailable" in error_str:
        return "service unavailable"
    if "500" in error_str or "internal" in error_str:
        return "server error"
    if "connection" in error_str:
        return "connection error"
    return str(error)[:80]


class LiteLLMProvider(StructuredProvider):
    """Structured streaming adapter powered by LiteLLM."""

    def __init__(self, config: GeneratorConfig) -> None:
        super().__init__(config)
        self._credentials = get_credentials(config)
        self._system = render_prompt("system")

    async def stream_structured(
        self,
        prompt: str,
        schema: type[BaseModel],
    ) -> AsyncIterator[BaseModel]:
        """Stream partial results for ``prompt`` validated against ``schema``.

        An attempt is restarted from scratch on transient backend errors,
        and on schema failures only while nothing has been yielded yet.
        Once a result has reached the caller any failure is terminal,
        since a restarted stream would not extend what was already seen.

        Raises:
            ValueError: If ``prompt`` is empty.
            BackendUnavailable: On non-retryable or exhausted backend errors.
            SchemaValidationFailure: If output cannot be coerced to ``schema``.
        """
        if not prompt or not prompt.strip():
            raise ValueError("prompt must be a non-empty string")

        kwargs = self._build_completion_kwargs(prompt, schema)
        attempts = self._config.max_retries
        delivered = False
        last_error: Exception | None = None

        for attempt in range(attempts):
            try:
                async for result in self._stream_attempt(kwargs, schema):
                    delivered = True
                    yield result
                return
            except SchemaValidationFailure as e:
                if delivered:
                    raise
                last_error = e
            except litellm.AuthenticationError as e:
                raise BackendUnavailable(
                    f"Authentication failed for {self._config.model}. "
                    f"Check that {self._config.api_key_env} is set correctly."
                ) from e
            except litellm.BadRequestError as e:
                raise BackendUnavailable(
                    f"Bad request to {self._config.model}: {e}"
                ) from e
            except _TRANSIENT_ERRORS as e:
                if delivered:
                    raise BackendUnavailable(
                        f"Stream from {self._config.model} broke off: "
                        f"{_short_error_reason(e)}"
                    ) from e
                last_error = e
            except openai.APIError as e:
                # NotFound, PermissionDenied, generic provider errors
                raise BackendUnavailable(
                    f"Call to {self._config.model} failed: {_short_error_reason(e)}"
                ) from e

            if attempt < attempts - 1:
                backoff = _BASE_BACKOFF * (2**attempt)
                logger.warning(
                    "Retry %d/%d for %s (%s, backoff: %.1fs)",
                    attempt + 1, attempts, schema.__name__,
                    _short_error_reason(last_error), backoff,
                )
                await asyncio.sleep(backoff)

        if isinstance(last_error, SchemaValidationFailure):
            raise SchemaValidationFailure(
                f"{schema.__name__} output from {self._config.model} did not "
                f"validate after {attempts} attempts: {last_error}"
            ) from last_error
        raise BackendUnavailable(
            f"Streaming call to {self._config.model} failed after "
            f"{attempts} attempts: {last_error}"
        ) from last_error

    async def _stream_attempt(
        self,
        kwargs: dict,
        schema: type[BaseModel],
    ) -> AsyncIterator[BaseModel]:
        """Run one backend request and yield each changed partial result."""
        response = await litellm.acompletion(**kwargs)

        buffer = ""
        last_dump: dict[str, Any] | None = None

        async for chunk in response:
            delta = self._extract_delta(chunk)
            if not delta:
                continue
            buffer += delta

            data = parse_partial(buffer)
            if data is None:
                continue
            result = validate_partial(data, schema)

            dump = result.model_dump()
            if dump == last_dump:
                continue
            last_dump = dump
            yield result

        final = validate_final(buffer, schema)
        if final.model_dump() != last_dump:
            yield final

    def _extract_delta(self, chunk: Any) -> str:
        """Pull the new argument or content text out of a stream chunk."""
        choices = getattr(chunk, "choices", None)
        if not choices:
            return ""
        delta = getattr(choices[0], "delta", None)
        if delta is None:
            return ""

        if self._config.mode == CompletionMode.JSON:
            return getattr(delta, "content", None) or ""

        parts: list[str] = []
        for call in getattr(delta, "tool_calls", None) or []:
            function = getattr(call, "function", None)
            arguments = getattr(function, "arguments", None)
            if isinstance(arguments, str):
                parts.append(arguments)
        return "".join(parts)

    def _build_completion_kwargs(
        self,
        prompt: str,
        schema: type[BaseModel],
    ) -> dict:
        """Build the kwargs dict for litellm.acompletion."""
        kwargs: dict = {
            "model": self._config.model,
            "messages": [
                {"role": "system", "content": self._system},
                {"role": "user", "content": prompt},
            ],
            "stream": True,
            "timeout": float(self._config.timeout),
        }

        if self._credentials.api_key:
            kwargs["api_key"] = self._credentials.api_key
        if self._credentials.organization:
            kwargs["organization"] = self._credentials.organization
        if self._config.temperature is not None:
            kwargs["temperature"] = self._config.temperature

        if self._config.mode == CompletionMode.JSON:
            kwargs["response_format"] = schema
        else:
            kwargs["tools"] = [build_tool(schema)]
            kwargs["tool_choice"] = {
                "type": "function",
                "function": {"name": TOOL_NAME},
            }

        return kwargs


def build_tool(schema: type[BaseModel]) -> dict:
    """Describe ``schema`` as the single function the model must call."""
    description = (schema.__doc__ or "").strip() or f"Extract {schema.__name__}"
    return {
        "type": "function",
        "function": {
            "name": TOOL_NAME,
            "description": description,
            "parameters": schema.model_json_schema(),
        },
    }
