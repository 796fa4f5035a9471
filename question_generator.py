# question_generator.py
"""
Addition questions with difficulty that grows with the question number.

The sum range widens from [12, 25] for the first question up to [50, 100]
from question 20 on; both addends stay within 1..99.
"""

from __future__ import annotations

import logging
import random as _rnd
from typing import Iterable, Optional

from schemas.exercise import MAX_ADDEND, MAX_SUM, Question

MAX_UNIQUE_ATTEMPTS = 100

logger = logging.getLogger("castle-exercise.questions")


def generate_question(question_number: int, rng: Optional[_rnd.Random] = None) -> Question:
    if question_number < 1:
        raise ValueError(f"question_number must be >= 1, got {question_number}")
    r = rng or _rnd

    max_sum = min(20 + question_number * 5, MAX_SUM)
    min_sum = min(10 + question_number * 2, 50)
    target = r.randint(min_sum, max_sum)

    # Keep the split away from 0 and from very lopsided pairs
    min_addend = max(1, target // 5)
    max_addend = min(MAX_ADDEND, (target * 4) // 5)
    addend1 = r.randint(min_addend, max_addend)
    addend2 = target - addend1

    if addend2 < 1 or addend2 > MAX_ADDEND:
        addend1 = target // 2
        addend2 = target - addend1

    return Question(addend1=addend1, addend2=addend2, correct_answer=target)


def is_duplicate(question: Question, recent: Iterable[Question]) -> bool:
    """Order-independent: 23 + 45 matches 45 + 23."""
    return any(
        (q.addend1 == question.addend1 and q.addend2 == question.addend2)
        or (q.addend1 == question.addend2 and q.addend2 == question.addend1)
        for q in recent
    )


def generate_unique_question(
    question_number: int,
    recent: Iterable[Question],
    rng: Optional[_rnd.Random] = None,
) -> Question:
    recent = list(recent)
    for _ in range(MAX_UNIQUE_ATTEMPTS):
        question = generate_question(question_number, rng)
        if not is_duplicate(question, recent):
            return question

    logger.warning(
        "Could not generate unique question after %d attempts, returning duplicate %s",
        MAX_UNIQUE_ATTEMPTS,
        format_question(question),
    )
    return question


def validate_answer(question: Question, user_answer: int) -> bool:
    return user_answer == question.correct_answer


def format_question(question: Question) -> str:
    return f"{question.addend1} + {question.addend2} = ?"
