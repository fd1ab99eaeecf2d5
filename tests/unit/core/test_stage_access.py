"""
Tests for stage access rules and answer checks.
"""

from datetime import datetime, timedelta, timezone

import pytest

from core.exceptions import InstanceSubmittedError, InvalidRequestError, StageLockedError
from core.stage_access import (
    AnswerInput,
    check_answers,
    elapsed_seconds,
    ensure_stage_readable,
    is_time_expired,
    next_stage,
    public_question_view,
)
from database.models.assessments import InternalIntent, Question, QuestionType
from database.models.test_instances import InstanceStatus


def make_question(question_id, question_type=QuestionType.MCQ, char_limit=None, stage_index=1, position=1):
    options = []
    if question_type != QuestionType.SHORT_STRUCTURED:
        options = [
            {"id": "a", "label": "A", "is_correct": True},
            {"id": "b", "label": "B", "is_correct": False},
        ]
    return Question(
        id=question_id,
        assessment_id="assessment-1",
        stage_index=stage_index,
        position=position,
        question_type=question_type,
        prompt_text=f"Prompt {question_id}",
        options=options,
        char_limit=char_limit,
        scoring_hint="secret hint",
        internal_intent=InternalIntent.JUDGMENT,
    )


class TestStageReadable:
    def test_current_and_earlier_stages(self):
        ensure_stage_readable(InstanceStatus.IN_PROGRESS, 2, 2)
        ensure_stage_readable(InstanceStatus.IN_PROGRESS, 2, 1)

    def test_future_stage_locked(self):
        with pytest.raises(StageLockedError) as exc_info:
            ensure_stage_readable(InstanceStatus.IN_PROGRESS, 1, 2)

        assert exc_info.value.status_code == 403
        assert exc_info.value.message == "You must complete stage 1 before accessing stage 2"

    def test_submitted_instance(self):
        with pytest.raises(InstanceSubmittedError):
            ensure_stage_readable(InstanceStatus.SUBMITTED, 3, 1)

    def test_invalid_stage_checked_first(self):
        with pytest.raises(InvalidRequestError):
            ensure_stage_readable(InstanceStatus.SUBMITTED, 3, 7)


class TestCheckAnswers:
    def test_valid_batch(self):
        questions = [
            make_question("q1"),
            make_question("q2", QuestionType.SHORT_STRUCTURED, char_limit=10, position=2),
        ]
        check_answers(
            [AnswerInput("q1", selected_option_id="b"), AnswerInput("q2", answer_text="short")],
            questions,
        )

    def test_question_from_other_stage(self):
        with pytest.raises(InvalidRequestError) as exc_info:
            check_answers([AnswerInput("q9", answer_text="x")], [make_question("q1")])
        assert exc_info.value.message == "Question q9 not in current stage"

    def test_char_limit_boundary(self):
        question = make_question("q1", QuestionType.SHORT_STRUCTURED, char_limit=5)
        check_answers([AnswerInput("q1", answer_text="12345")], [question])

        with pytest.raises(InvalidRequestError) as exc_info:
            check_answers([AnswerInput("q1", answer_text="123456")], [question])
        assert exc_info.value.message == "Answer for question q1 exceeds 5 character limit"

    def test_unknown_option(self):
        with pytest.raises(InvalidRequestError):
            check_answers([AnswerInput("q1", selected_option_id="z")], [make_question("q1")])

    def test_option_on_free_text_question(self):
        question = make_question("q1", QuestionType.SHORT_STRUCTURED)
        with pytest.raises(InvalidRequestError):
            check_answers([AnswerInput("q1", selected_option_id="a")], [question])

    def test_empty_batch(self):
        check_answers([], [make_question("q1")])


class TestProgression:
    def test_next_stage(self):
        assert next_stage(1) == 2
        assert next_stage(2) == 3
        assert next_stage(3) is None

    def test_elapsed_rounds_half_up(self):
        start = datetime(2026, 1, 1, tzinfo=timezone.utc)
        assert elapsed_seconds(start, start + timedelta(seconds=90, milliseconds=500)) == 91
        assert elapsed_seconds(start, start + timedelta(seconds=90, milliseconds=499)) == 90

    def test_time_expiry_includes_grace(self):
        start = datetime(2026, 1, 1, tzinfo=timezone.utc)
        limit = start + timedelta(seconds=1800)

        assert not is_time_expired(start, 1800, limit, grace_seconds=30)
        assert not is_time_expired(start, 1800, limit + timedelta(seconds=30), grace_seconds=30)
        assert is_time_expired(start, 1800, limit + timedelta(seconds=31), grace_seconds=30)
        assert is_time_expired(start, 1800, limit + timedelta(seconds=1))


def test_public_view_hides_grading_metadata():
    view = public_question_view(make_question("q1"))

    assert "scoring_hint" not in view
    assert "internal_intent" not in view
    assert all("is_correct" not in option for option in view["options"])
    assert view["options"] == [{"id": "a", "label": "A"}, {"id": "b", "label": "B"}]
