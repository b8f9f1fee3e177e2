"""Pydantic models and enums for session state and recognition events."""

import time
from enum import Enum

from pydantic import BaseModel, Field


class SessionState(str, Enum):
    """Lifecycle state of a listening session."""

    IDLE = "idle"
    LISTENING = "listening"
    ERROR = "error"


class SessionSnapshot(BaseModel):
    """Observable view of a session, published after every core mutation.

    ``last_error_code`` is only set while ``state`` is ``error``.
    """

    state: SessionState
    transcript: str
    last_error_code: str | None = None
    generation: int = 0
    timestamp: float = Field(default_factory=time.time)


class PartialResult(BaseModel):
    """A partial or final hypothesis from a recognition engine."""

    text: str


class RecognitionError(BaseModel):
    """An engine-reported failure, carried as an opaque code."""

    code: str = Field(min_length=1)
