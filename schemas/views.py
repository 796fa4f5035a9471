# schemas/views.py
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel

# ---------- Exercise ----------


class AnswerRequest(BaseModel):
    answer: str


class FeedbackOut(BaseModel):
    kind: str  # "correct" | "incorrect" | "not_a_number"
    message: str


class CompletionOut(BaseModel):
    title: str
    completed_all: str
    score_label: str
    score_detail: str
    percent: int
    continue_label: str
    start_over_label: str


class ExerciseView(BaseModel):
    language: str
    state_code: str
    question_number: int
    total_questions: int
    progress_text: Optional[str] = None
    question_text: Optional[str] = None
    panel_visible: bool
    input_focused: bool
    complete: bool
    total_correct: int
    total_attempts: int
    feedback: Optional[FeedbackOut] = None
    completion: Optional[CompletionOut] = None
    # set while the next question is scheduled after a correct answer
    advance_in_ms: Optional[int] = None


# ---------- i18n ----------


class LanguageRequest(BaseModel):
    language: str


class LanguagesOut(BaseModel):
    ok: bool
    default: str
    current: str
    languages: List[str]


class TranslationOut(BaseModel):
    key: str
    language: str
    text: str
