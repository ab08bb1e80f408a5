"""Generator configuration schema.

Loaded from ``hnsynth/config/defaults.toml`` (or a user-supplied file) and
overridden per run by CLI options.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field


class CompletionMode(StrEnum):
    """How the schema is presented to the completion backend."""

    TOOLS = "tools"
    JSON = "json"


class GeneratorConfig(BaseModel):
    """Settings for one generation session."""

    model: str = Field(default="gpt-4", description="LiteLLM model identifier")
    mode: CompletionMode = Field(
        default=CompletionMode.TOOLS,
        description="Forced tool call or JSON response_format",
    )
    max_retries: int = Field(
        default=3, ge=1, description="Backend attempts per structured request"
    )
    timeout: int = Field(default=120, gt=0, description="Per-call timeout in seconds")
    temperature: float | None = Field(
        default=None, ge=0.0, le=2.0, description="Sampling temperature (None = provider default)"
    )
    story_count: int = Field(default=5, ge=1, description="Stories to request")
    comment_count: int = Field(
        default=100, ge=1, description="Minimum comments to request per story"
    )
    api_key_env: str = Field(
        default="OPENAI_API_KEY", description="Environment variable holding the API key"
    )
    org_id_env: str = Field(
        default="OPENAI_ORG_ID",
        description="Environment variable holding the organization id",
    )
