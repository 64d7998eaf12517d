"""Provider configuration carried by a chain."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ModelSpec(BaseModel):
    """Opaque to the runners; only the provider adapter reads it."""

    model_config = ConfigDict(frozen=True)

    provider: str = Field(default="openai-compatible")
    base_url: str = Field(default="https://api.openai.com/v1")
    api_key_env: str = Field(default="OPENAI_API_KEY")
    model_name: str = Field(default="gpt-5.2")
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    max_tokens: int = Field(default=2048, gt=0)
