# coordinator.py
"""
Castle exercise flow.

Handlers take the current AppState and return the next one; nothing is kept
in module globals. ExerciseRuntime holds the live state between requests and
owns the timed transitions (auto-advance after a correct answer, input focus
after the panel opens) as cancellable scheduled tasks.
"""

from __future__ import annotations

import asyncio
import logging
import math
import random as _rnd
import re
from enum import Enum
from typing import Any, Callable, Dict, Optional, Protocol

from pydantic import BaseModel

from exercise_state import (
    START_STATE_CODE,
    StateStore,
    initialize_state,
    now_ms,
    parse_state_code,
    record_attempt,
)
from i18n import Translator
from question_generator import format_question, generate_unique_question, validate_answer
from schemas.exercise import Attempt, ProgressRecord, Question
from schemas.views import CompletionOut, ExerciseView, FeedbackOut

MAX_QUESTIONS = 10
ADVANCE_DELAY_MS = 2000
FOCUS_DELAY_MS = 300

_LEADING_INT_RE = re.compile(r"[+-]?\d+", re.ASCII)

logger = logging.getLogger("castle-exercise.coordinator")


class FeedbackKind(str, Enum):
    CORRECT = "correct"
    INCORRECT = "incorrect"
    NOT_A_NUMBER = "not_a_number"


class AppState(BaseModel):
    record: ProgressRecord
    question: Optional[Question] = None
    question_number: int = 1
    complete: bool = False
    feedback: Optional[FeedbackKind] = None
    panel_visible: bool = False
    input_focused: bool = False
    advancing: bool = False


# --- Handlers ---------------------------------------------------------------------


def start_exercise(store: StateStore, rng: Optional[_rnd.Random] = None) -> AppState:
    record = store.load()
    if record is None:
        logger.info("No saved progress found, starting at %s", START_STATE_CODE)
        record = initialize_state(START_STATE_CODE)
        store.save(record)
    state = load_next_question(AppState(record=record), store, rng)
    logger.info("Exercise initialized at %s", state.record.current_state)
    return state


def load_next_question(
    state: AppState, store: StateStore, rng: Optional[_rnd.Random] = None
) -> AppState:
    parsed = parse_state_code(state.record.current_state)
    if parsed is None:
        logger.error(
            "Failed to parse state code %r, resetting to %s",
            state.record.current_state,
            START_STATE_CODE,
        )
        record = initialize_state(START_STATE_CODE)
        store.save(record)
        return load_next_question(state.model_copy(update={"record": record}), store, rng)

    if parsed.question > MAX_QUESTIONS:
        logger.info("Exercise complete: %s", state.record.current_state)
        return state.model_copy(
            update={
                "question": None,
                "question_number": parsed.question,
                "complete": True,
                "feedback": None,
                "advancing": False,
            }
        )

    question = generate_unique_question(parsed.question, state.record.recent_questions, rng)
    logger.info(
        "Loaded question %d/%d: %s for state %s",
        parsed.question,
        MAX_QUESTIONS,
        format_question(question),
        state.record.current_state,
    )
    return state.model_copy(
        update={
            "question": question,
            "question_number": parsed.question,
            "complete": False,
            "feedback": None,
            "advancing": False,
        }
    )


def open_panel(state: AppState) -> AppState:
    return state.model_copy(update={"panel_visible": True})


def focus_input(state: AppState) -> AppState:
    if not state.panel_visible:
        return state
    return state.model_copy(update={"input_focused": True})


def close_panel(state: AppState) -> AppState:
    return state.model_copy(update={"panel_visible": False, "input_focused": False, "feedback": None})


def parse_answer(raw: Optional[str]) -> Optional[int]:
    """Leading integer of ``raw`` (``" 42abc"`` -> 42), or None."""
    if raw is None:
        return None
    m = _LEADING_INT_RE.match(raw.lstrip())
    return int(m.group(0)) if m else None


def submit_answer(state: AppState, raw_answer: Optional[str], store: StateStore) -> AppState:
    if state.question is None or state.complete or state.advancing:
        return state

    user_answer = parse_answer(raw_answer)
    if user_answer is None:
        return state.model_copy(update={"feedback": FeedbackKind.NOT_A_NUMBER})

    is_correct = validate_answer(state.question, user_answer)
    attempt = Attempt(
        state_code=state.record.current_state,
        question=state.question,
        user_answer=user_answer,
        is_correct=is_correct,
        timestamp=now_ms(),
    )
    record = record_attempt(state.record, attempt)
    store.save(record)

    return state.model_copy(
        update={
            "record": record,
            "feedback": FeedbackKind.CORRECT if is_correct else FeedbackKind.INCORRECT,
            "advancing": is_correct,
        }
    )


def restart_exercise(store: StateStore, rng: Optional[_rnd.Random] = None) -> AppState:
    record = initialize_state(START_STATE_CODE)
    store.save(record)
    logger.info("Exercise restarted at %s", START_STATE_CODE)
    return load_next_question(AppState(record=record), store, rng)


# --- Scheduling -------------------------------------------------------------------


class TaskHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TaskHandle: ...


class AsyncioScheduler:
    """Runs callbacks on the running event loop."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)


class ExerciseRuntime:
    def __init__(
        self, store: StateStore, scheduler: Scheduler, rng: Optional[_rnd.Random] = None
    ):
        self.store = store
        self.scheduler = scheduler
        self.rng = rng
        self._state: Optional[AppState] = None
        self._pending: Dict[str, TaskHandle] = {}

    @property
    def state(self) -> AppState:
        if self._state is None:
            self._state = start_exercise(self.store, self.rng)
        return self._state

    def is_pending(self, name: str) -> bool:
        return name in self._pending

    def click_castle(self) -> AppState:
        self._state = open_panel(self.state)
        self._schedule("focus", FOCUS_DELAY_MS, lambda: focus_input(self.state))
        return self._state

    def submit(self, raw_answer: Optional[str]) -> AppState:
        before = self.state
        self._state = submit_answer(before, raw_answer, self.store)
        if self._state.advancing and not before.advancing:
            self._schedule(
                "advance",
                ADVANCE_DELAY_MS,
                lambda: load_next_question(self.state, self.store, self.rng),
            )
        return self._state

    def close(self) -> AppState:
        self._cancel("focus")
        self._state = close_panel(self.state)
        return self._state

    def restart(self) -> AppState:
        self.cancel_all()
        self._state = restart_exercise(self.store, self.rng)
        return self._state

    def reset(self) -> bool:
        """Forget the live state and remove the persisted record."""
        self.cancel_all()
        self._state = None
        return self.store.clear()

    def cancel_all(self) -> None:
        for name in list(self._pending):
            self._cancel(name)

    def _cancel(self, name: str) -> None:
        handle = self._pending.pop(name, None)
        if handle is not None:
            handle.cancel()

    def _schedule(self, name: str, delay_ms: int, step: Callable[[], AppState]) -> None:
        self._cancel(name)

        def fire() -> None:
            self._pending.pop(name, None)
            self._state = step()

        self._pending[name] = self.scheduler.call_later(delay_ms / 1000, fire)


# --- Rendering --------------------------------------------------------------------

_DEFAULTS = {
    "castleExercise.progress": "Question {current} of {total}",
    "castleExercise.enterNumber": "Please enter a number",
    "castleExercise.congratulations": "🎉 Congratulations! 🎉",
    "castleExercise.completedAll": "You completed all {total} questions!",
    "castleExercise.score": "Score:",
    "castleExercise.scoreDetail": "{correct} correct out of {attempts} attempts ({percent}%)",
    "castleExercise.startOver": "Start Over",
    "castleExercise.continue": "Continue",
    "additionForest.exercise1.correctFeedback": "Correct! Well done! 🎉",
    "additionForest.exercise1.incorrectFeedback": "Not quite. Try again! 💪",
}

_FEEDBACK_KEYS = {
    FeedbackKind.CORRECT: "additionForest.exercise1.correctFeedback",
    FeedbackKind.INCORRECT: "additionForest.exercise1.incorrectFeedback",
    FeedbackKind.NOT_A_NUMBER: "castleExercise.enterNumber",
}


def score_percent(correct: int, attempts: int) -> int:
    if attempts <= 0:
        return 0
    return math.floor(correct * 100 / attempts + 0.5)


def render_view(state: AppState, translator: Translator, language: str) -> ExerciseView:
    def t(key: str, variables: Optional[Dict[str, Any]] = None) -> str:
        return translator.translate(key, variables, default=_DEFAULTS[key], language=language)

    record = state.record
    feedback = None
    if state.feedback is not None:
        feedback = FeedbackOut(kind=state.feedback.value, message=t(_FEEDBACK_KEYS[state.feedback]))

    completion = None
    progress_text = None
    question_text = None
    if state.complete:
        percent = score_percent(record.total_correct, record.total_attempts)
        completion = CompletionOut(
            title=t("castleExercise.congratulations"),
            completed_all=t("castleExercise.completedAll", {"total": MAX_QUESTIONS}),
            score_label=t("castleExercise.score"),
            score_detail=t(
                "castleExercise.scoreDetail",
                {
                    "correct": record.total_correct,
                    "attempts": record.total_attempts,
                    "percent": percent,
                },
            ),
            percent=percent,
            continue_label=t("castleExercise.continue"),
            start_over_label=t("castleExercise.startOver"),
        )
    elif state.question is not None:
        progress_text = t(
            "castleExercise.progress", {"current": state.question_number, "total": MAX_QUESTIONS}
        )
        question_text = format_question(state.question)

    return ExerciseView(
        language=language,
        state_code=record.current_state,
        question_number=state.question_number,
        total_questions=MAX_QUESTIONS,
        progress_text=progress_text,
        question_text=question_text,
        panel_visible=state.panel_visible,
        input_focused=state.input_focused,
        complete=state.complete,
        total_correct=record.total_correct,
        total_attempts=record.total_attempts,
        feedback=feedback,
        completion=completion,
        advance_in_ms=ADVANCE_DELAY_MS if state.advancing else None,
    )
