# exercise_state.py
"""
Exercise progress state: state codes, attempts and persistence.

State codes are dotted triples ``world.exercise.question``. A correct answer
advances the question component; a wrong one leaves the code in place so the
same position is retried.
"""

from __future__ import annotations

import logging
import re
import time
from typing import Any, Optional

from pydantic import ValidationError

from schemas.exercise import RECENT_QUESTIONS_LIMIT, Attempt, ProgressRecord, StateCodeParts
from storage import KeyValueStorage, StorageError

STORAGE_KEY = "mathworld.additionForest.exercise1"
START_STATE_CODE = "1.1.1"

_STATE_CODE_RE = re.compile(r"(\d+)\.(\d+)\.(\d+)", re.ASCII)

logger = logging.getLogger("castle-exercise.state")


class InvalidStateCode(ValueError):
    pass


class StateCodeMismatch(ValueError):
    pass


def now_ms() -> int:
    return int(time.time() * 1000)


# --- State codes ------------------------------------------------------------------


def parse_state_code(code: Any) -> Optional[StateCodeParts]:
    """Split ``"1.1.5"`` into its parts, or return None if it is not a state code."""
    if not code or not isinstance(code, str):
        logger.error("parse_state_code: invalid code provided: %r", code)
        return None

    m = _STATE_CODE_RE.fullmatch(code)
    if m is None:
        logger.error("parse_state_code: code does not match expected format: %r", code)
        return None

    return StateCodeParts(int(m.group(1)), int(m.group(2)), int(m.group(3)))


def next_state_code(code: str) -> str:
    parts = parse_state_code(code)
    if parts is None:
        raise InvalidStateCode(f"Invalid state code format: {code!r}")
    return f"{parts.world}.{parts.exercise}.{parts.question + 1}"


# --- Records ----------------------------------------------------------------------


def initialize_state(starting_code: str) -> ProgressRecord:
    now = now_ms()
    return ProgressRecord(
        current_state=starting_code,
        progress={},
        recent_questions=[],
        total_correct=0,
        total_attempts=0,
        session_start=now,
        last_updated=now,
    )


def record_attempt(record: ProgressRecord, attempt: Attempt) -> ProgressRecord:
    """
    Return a new record with ``attempt`` applied. ``record`` is left untouched.

    Raises StateCodeMismatch if the attempt was made at a different position
    than the record's current one.
    """
    if attempt.state_code != record.current_state:
        raise StateCodeMismatch(
            f"State code mismatch: attempt is for {attempt.state_code} "
            f"but current state is {record.current_state}"
        )

    recent = [attempt.question, *record.recent_questions][:RECENT_QUESTIONS_LIMIT]
    progress = {**record.progress, attempt.state_code: attempt}

    return record.model_copy(
        update={
            "progress": progress,
            "recent_questions": recent,
            "total_attempts": record.total_attempts + 1,
            "total_correct": record.total_correct + (1 if attempt.is_correct else 0),
            "current_state": (
                next_state_code(attempt.state_code) if attempt.is_correct else record.current_state
            ),
            "last_updated": now_ms(),
        }
    )


# --- Persistence ------------------------------------------------------------------


class StateStore:
    """Reads and writes the progress record under a fixed storage key."""

    def __init__(self, storage: KeyValueStorage, key: str = STORAGE_KEY):
        self.storage = storage
        self.key = key

    def load(self) -> Optional[ProgressRecord]:
        try:
            raw = self.storage.get_item(self.key)
        except StorageError as e:
            logger.error("Failed to load state: %s", e)
            return None
        if not raw:
            return None

        try:
            return ProgressRecord.model_validate_json(raw)
        except ValidationError as e:
            # covers both malformed JSON and a wrong shape
            logger.warning("Invalid state structure in storage: %s", e.errors()[0].get("msg"))
            return None

    def save(self, record: ProgressRecord) -> bool:
        record.last_updated = now_ms()
        try:
            self.storage.set_item(self.key, record.model_dump_json(by_alias=True))
        except StorageError as e:
            logger.error("Failed to save state: %s", e)
            return False
        return True

    def clear(self) -> bool:
        try:
            self.storage.remove_item(self.key)
        except StorageError as e:
            logger.error("Failed to clear progress: %s", e)
            return False
        return True
