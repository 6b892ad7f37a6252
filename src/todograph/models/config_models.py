"""Configuration models."""

from __future__ import annotations

import re

from pydantic import BaseModel, Field, field_validator

LIST_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


class UndoConfig(BaseModel):
    """Undo history configuration."""

    max_depth: int = Field(default=50, ge=1, description="Entries kept per stack")
    retention_days: int = Field(
        default=30, ge=1, description="Entries older than this are dropped on load"
    )


class LockConfig(BaseModel):
    """Cross-process write contention configuration."""

    max_retries: int = Field(default=5, ge=1)
    initial_delay: float = Field(default=0.05, gt=0)
    max_delay: float = Field(default=1.0, gt=0)
    busy_timeout: float = Field(
        default=2.0, ge=0, description="Seconds SQLite waits on a lock per attempt"
    )


class AppConfig(BaseModel):
    """Main todograph configuration."""

    database_path: str | None = Field(
        default=None, description="SQLite file; defaults to the user data dir"
    )
    default_list: str = Field(default="tasks")
    undo: UndoConfig = Field(default_factory=UndoConfig)
    lock: LockConfig = Field(default_factory=LockConfig)

    @field_validator("default_list")
    @classmethod
    def validate_default_list(cls, v: str) -> str:
        if not LIST_NAME_PATTERN.match(v):
            raise ValueError("default_list may only contain letters, digits, '_' and '-'")
        return v
