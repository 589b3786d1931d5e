"""Configuration model for the review gate."""

from __future__ import annotations

import shlex
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class GateSettings(BaseModel):
    """Immutable review gate configuration.

    Unknown keys are dropped. Values coming from the environment arrive as
    strings and are coerced by pydantic ("true", "0", "12", ...).
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    auto_review: bool = True
    interactive: bool = True
    max_files: int = Field(default=20, ge=0)
    reviewer_command: Optional[tuple[str, ...]] = None
    timeout_seconds: float = Field(default=300.0, gt=0)
    max_diff_chars: int = Field(default=50_000, gt=0)
    base_branch: str = "main"

    @field_validator("reviewer_command", mode="before")
    @classmethod
    def _split_command(cls, value: object) -> object:
        if isinstance(value, str):
            parts = shlex.split(value)
            return tuple(parts) if parts else None
        if isinstance(value, list) and not value:
            return None
        return value
