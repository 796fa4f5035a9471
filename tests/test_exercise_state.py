import json

import pytest

from exercise_state import (
    STORAGE_KEY,
    InvalidStateCode,
    StateCodeMismatch,
    StateStore,
    initialize_state,
    next_state_code,
    parse_state_code,
    record_attempt,
)
from schemas.exercise import Attempt, Question, StateCodeParts
from storage import StorageError


def q(a, b):
    return Question(addend1=a, addend2=b, correct_answer=a + b)


def attempt_for(record, correct=True, question=None):
    question = question or q(3, 5)
    return Attempt(
        state_code=record.current_state,
        question=question,
        user_answer=question.correct_answer if correct else question.correct_answer + 1,
        is_correct=correct,
        timestamp=1_700_000_000_000,
    )


class _BrokenStorage:
    def get_item(self, key):
        raise StorageError("storage unavailable")

    def set_item(self, key, value):
        raise StorageError("quota exceeded")

    def remove_item(self, key):
        raise StorageError("storage unavailable")


# --- State codes ------------------------------------------------------------------


def test_parse_state_code_valid():
    assert parse_state_code("1.2.3") == StateCodeParts(world=1, exercise=2, question=3)
    assert parse_state_code("10.0.42") == (10, 0, 42)


@pytest.mark.parametrize(
    "code", ["1.2", "a.b.c", "", None, "1.1.1.1", "1.1.1\n", " 1.1.1", "-1.1.1", "1..1", 7]
)
def test_parse_state_code_invalid(code):
    assert parse_state_code(code) is None


@pytest.mark.parametrize("code", ["1.1.1", "1.1.9", "2.3.10", "0.0.0"])
def test_next_state_code_increments_question(code):
    w, e, qn = parse_state_code(code)
    nxt = next_state_code(code)
    assert nxt == f"{w}.{e}.{qn + 1}"
    assert parse_state_code(nxt) == (w, e, qn + 1)


def test_next_state_code_invalid_raises():
    with pytest.raises(InvalidStateCode):
        next_state_code("1.2")
    # still a ValueError for callers that only catch that
    with pytest.raises(ValueError):
        next_state_code("garbage")


# --- Records ----------------------------------------------------------------------


def test_initialize_state():
    record = initialize_state("1.1.1")
    assert record.current_state == "1.1.1"
    assert record.progress == {}
    assert record.recent_questions == []
    assert record.total_correct == 0
    assert record.total_attempts == 0
    assert record.session_start == record.last_updated
    assert record.session_start > 0


def test_correct_attempt_advances():
    record = initialize_state("1.1.1")
    new = record_attempt(record, attempt_for(record, correct=True))
    assert new.current_state == "1.1.2"
    assert new.total_attempts == 1
    assert new.total_correct == 1
    assert new.progress["1.1.1"].is_correct is True


def test_incorrect_attempt_retries_same_code():
    record = initialize_state("1.1.1")
    new = record_attempt(record, attempt_for(record, correct=False))
    assert new.current_state == "1.1.1"
    assert new.total_attempts == 1
    assert new.total_correct == 0


def test_retry_overwrites_attempt_at_same_code():
    record = initialize_state("1.1.1")
    record = record_attempt(record, attempt_for(record, correct=False))
    record = record_attempt(record, attempt_for(record, correct=True))
    assert list(record.progress) == ["1.1.1"]
    assert record.progress["1.1.1"].is_correct is True
    assert record.total_attempts == 2
    assert record.total_correct == 1


def test_record_attempt_does_not_mutate_input():
    record = initialize_state("1.1.1")
    record = record_attempt(record, attempt_for(record, correct=True, question=q(4, 9)))
    before = record.model_dump()

    record_attempt(record, attempt_for(record, correct=True, question=q(6, 7)))
    record_attempt(record, attempt_for(record, correct=False, question=q(8, 8)))

    assert record.model_dump() == before


def test_mismatch_raises_and_leaves_record_alone():
    record = initialize_state("1.1.1")
    before = record.model_dump()
    bad = Attempt(
        state_code="1.1.5",
        question=q(3, 5),
        user_answer=8,
        is_correct=True,
        timestamp=1,
    )
    with pytest.raises(StateCodeMismatch):
        record_attempt(record, bad)
    assert record.model_dump() == before


def test_recent_questions_most_recent_first_and_capped():
    record = initialize_state("1.1.1")
    for i in range(1, 13):
        record = record_attempt(record, attempt_for(record, correct=True, question=q(i, 20)))
    assert len(record.recent_questions) == 10
    assert record.recent_questions[0] == q(12, 20)
    assert record.recent_questions[-1] == q(3, 20)


def test_ten_correct_answers_finish_the_exercise():
    record = initialize_state("1.1.1")
    for _ in range(10):
        record = record_attempt(record, attempt_for(record, correct=True))
    assert record.current_state == "1.1.11"
    assert parse_state_code(record.current_state).question > 10
    assert record.total_correct == record.total_attempts == 10


# --- Persistence ------------------------------------------------------------------


def test_load_absent(store):
    assert store.load() is None


def test_save_then_load(store):
    record = initialize_state("1.1.1")
    record = record_attempt(record, attempt_for(record, correct=True))
    assert store.save(record) is True

    loaded = store.load()
    assert loaded.model_dump() == record.model_dump()
    assert loaded.current_state == "1.1.2"


def test_save_updates_last_updated(store):
    record = initialize_state("1.1.1")
    record.last_updated = 0
    store.save(record)
    assert record.last_updated > 0
    assert store.load().last_updated == record.last_updated


def test_saved_json_uses_camel_case(store, storage):
    store.save(initialize_state("1.1.1"))
    data = json.loads(storage.get_item(STORAGE_KEY))
    assert {"currentState", "progress", "recentQuestions", "totalCorrect", "totalAttempts"} <= set(
        data
    )


def test_load_backfills_missing_fields(store, storage):
    storage.set_item(STORAGE_KEY, json.dumps({"currentState": "1.1.3", "progress": {}}))
    record = store.load()
    assert record.current_state == "1.1.3"
    assert record.recent_questions == []
    assert record.total_correct == 0
    assert record.total_attempts == 0


def test_load_backfills_null_counters(store, storage):
    raw = {"currentState": "1.1.2", "progress": {}, "totalCorrect": None, "recentQuestions": None}
    storage.set_item(STORAGE_KEY, json.dumps(raw))
    record = store.load()
    assert record.total_correct == 0
    assert record.recent_questions == []


@pytest.mark.parametrize(
    "raw",
    [
        "{not json",
        "[]",
        "42",
        json.dumps({"progress": {}}),
        json.dumps({"currentState": "", "progress": {}}),
        json.dumps({"currentState": "1.1.1"}),
        json.dumps({"currentState": "1.1.1", "progress": []}),
        json.dumps({"currentState": "1.1.1", "progress": {}, "totalCorrect": 3, "totalAttempts": 1}),
        json.dumps(
            {
                "currentState": "1.1.1",
                "progress": {},
                "recentQuestions": [{"addend1": 1, "addend2": 1, "correctAnswer": 5}],
            }
        ),
    ],
)
def test_load_invalid_is_absent(store, storage, raw):
    storage.set_item(STORAGE_KEY, raw)
    assert store.load() is None


def test_clear(store):
    store.save(initialize_state("1.1.1"))
    assert store.clear() is True
    assert store.load() is None


def test_storage_failures_are_soft():
    store = StateStore(_BrokenStorage())
    assert store.load() is None
    assert store.save(initialize_state("1.1.1")) is False
    assert store.clear() is False


def test_load_browser_record_with_iso_timestamps(store, storage, rng):
    from coordinator import start_exercise

    raw = {
        "currentState": "1.1.2",
        "progress": {
            "1.1.1": {
                "stateCode": "1.1.1",
                "question": {"addend1": 7, "addend2": 8, "correctAnswer": 15},
                "userAnswer": 15,
                "isCorrect": True,
                "timestamp": "2025-11-02T10:00:00.000Z",
            }
        },
        "recentQuestions": [{"addend1": 7, "addend2": 8, "correctAnswer": 15}],
        "totalCorrect": 1,
        "totalAttempts": 1,
        "sessionStart": 1762077500000,
        "lastUpdated": 1762077600000,
    }
    storage.set_item(STORAGE_KEY, json.dumps(raw))

    record = store.load()
    assert record is not None
    assert record.progress["1.1.1"].timestamp == 1762077600000

    # resuming keeps the learner where they were
    state = start_exercise(store, rng)
    assert state.record.current_state == "1.1.2"
    assert state.record.total_attempts == 1
    assert store.load().current_state == "1.1.2"
