"""Result values returned by every public operation.

The core never raises for expected outcomes: a caller always receives one of
``Success``, ``NotFound``, ``NoChange`` or ``Error``.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class Success(BaseModel):
    """The operation changed the store."""

    kind: Literal["success"] = "success"
    message: str
    task_id: str | None = None
    warnings: list[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return True


class NotFound(BaseModel):
    """A referenced task or list does not exist; nothing changed."""

    kind: Literal["not_found"] = "not_found"
    id: str
    message: str = ""

    @property
    def ok(self) -> bool:
        return False


class NoChange(BaseModel):
    """The operation was a no-op; nothing was recorded."""

    kind: Literal["no_change"] = "no_change"
    reason: str

    @property
    def ok(self) -> bool:
        return True


class Error(BaseModel):
    """The operation was rejected; the transaction was rolled back."""

    kind: Literal["error"] = "error"
    message: str

    @property
    def ok(self) -> bool:
        return False


TaskResult = Success | NotFound | NoChange | Error
