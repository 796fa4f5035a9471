# schemas/exercise.py
"""
Exercise data model.

Persisted with camelCase keys (``currentState``, ``recentQuestions`` ...) so
records written by the browser version of the exercise load unchanged.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Dict, List, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator
from pydantic.alias_generators import to_camel

MAX_ADDEND = 99
MAX_SUM = 100
RECENT_QUESTIONS_LIMIT = 10


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StateCodeParts(NamedTuple):
    world: int
    exercise: int
    question: int


class Question(_CamelModel):
    addend1: int = Field(ge=1, le=MAX_ADDEND)
    addend2: int = Field(ge=1, le=MAX_ADDEND)
    correct_answer: int = Field(le=MAX_SUM)

    @model_validator(mode="after")
    def _check_sum(self) -> "Question":
        if self.addend1 + self.addend2 != self.correct_answer:
            raise ValueError("correctAnswer must equal addend1 + addend2")
        return self


class Attempt(_CamelModel):
    state_code: str
    question: Question
    user_answer: int
    is_correct: bool
    timestamp: int

    # The browser version wrote ISO strings ("2025-11-02T10:00:00.000Z").
    @field_validator("timestamp", mode="before")
    @classmethod
    def _iso_to_epoch_ms(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip().lstrip("-").isdigit():
            try:
                dt = datetime.fromisoformat(v.strip())
            except ValueError:
                return v
            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=UTC)
            return round(dt.timestamp() * 1000)
        return v


class ProgressRecord(_CamelModel):
    current_state: str = Field(min_length=1)
    progress: Dict[str, Attempt]
    recent_questions: List[Question] = Field(default_factory=list)
    total_correct: int = Field(default=0, ge=0)
    total_attempts: int = Field(default=0, ge=0)
    session_start: Optional[int] = None
    last_updated: Optional[int] = None

    # Older saved shapes may lack these or carry nulls.
    @field_validator("recent_questions", "total_correct", "total_attempts", mode="before")
    @classmethod
    def _backfill(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None:
            return [] if info.field_name == "recent_questions" else 0
        return v

    @model_validator(mode="after")
    def _check_counters(self) -> "ProgressRecord":
        if self.total_correct > self.total_attempts:
            raise ValueError("totalCorrect cannot exceed totalAttempts")
        return self
