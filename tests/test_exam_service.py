"""
Tests for grading and the server-side session service.
"""

import pytest

from api.sample_questions import SAMPLE_QUESTIONS, SAMPLE_TEST
from exam_attempt.models.result_model import Outcome
from exam_attempt.models.session_state import SessionStatus
from exam_attempt.services.exam_service import grade_question, is_passed
from exam_attempt.utils.exceptions import (
    InvalidAnswerError,
    ResultNotReadyError,
    SessionAlreadyCompletedError,
    SessionNotFoundError,
)

from conftest import TAKER

BY_ID = {q.id: q for q in SAMPLE_QUESTIONS}
ALL_CORRECT = {101: 1, 102: [2, 0], 103: 0, 104: "3.14", 105: 1, 106: "0"}


class TestGrading:

    @pytest.mark.parametrize(
        "qid, answer, outcome, awarded",
        [
            (101, 1, Outcome.CORRECT, 4),
            (101, 0, Outcome.INCORRECT, -1),
            (101, None, Outcome.UNANSWERED, 0),
            (102, [0, 2], Outcome.CORRECT, 4),
            (102, [0], Outcome.INCORRECT, -1),
            (104, "3.140", Outcome.CORRECT, 4),
            (106, "0", Outcome.CORRECT, 4),
            (106, "", Outcome.UNANSWERED, 0),
        ],
    )
    def test_grade_question(self, qid, answer, outcome, awarded):
        result = grade_question(BY_ID[qid], answer)
        assert result.outcome is outcome
        assert result.marks_awarded == awarded

    def test_is_passed_boundary(self):
        assert is_passed(60.0)
        assert not is_passed(59.99)
        assert is_passed(50.0, pass_percentage=50.0)


class TestSessionLifecycle:

    def test_start_reuses_ongoing_session(self, service, clock, session_record):
        clock.advance(120)
        again = service.start_exam(SAMPLE_TEST.id, TAKER)
        assert again.id == session_record.id
        assert again.start_time == session_record.start_time

    def test_start_unknown_test(self, service):
        with pytest.raises(SessionNotFoundError):
            service.start_exam(999, TAKER)

    def test_bootstrap_hides_correct_answers(self, service, session_record):
        boot = service.bootstrap(session_record.id, TAKER)
        assert [q.id for q in boot.questions] == [q.id for q in SAMPLE_QUESTIONS]
        assert all(q.correct_answer is None for q in boot.questions)
        assert boot.test.num_questions == len(SAMPLE_QUESTIONS)

    def test_other_taker_cannot_see_session(self, service, session_record):
        with pytest.raises(SessionNotFoundError):
            service.bootstrap(session_record.id, "intruder")
        with pytest.raises(SessionNotFoundError):
            service.save_answer(session_record.id, 101, 1, False, "intruder")

    def test_save_answer_normalizes_and_tracks_marks(self, service, session_record):
        service.save_answer(session_record.id, 102, [2, 0], True, TAKER)
        service.save_answer(session_record.id, 104, " 2.5 ", False, TAKER)
        record = service.store.get(session_record.id)
        assert record.answers == {102: [0, 2], 104: "2.5"}
        assert record.marked_for_review == [102]

        service.save_answer(session_record.id, 102, None, False, TAKER)
        record = service.store.get(session_record.id)
        assert 102 not in record.answers
        assert record.marked_for_review == []

    def test_save_answer_rejects_foreign_question(self, service, session_record):
        with pytest.raises(InvalidAnswerError):
            service.save_answer(session_record.id, 9999, 1, False, TAKER)

    def test_save_answer_rejects_wrong_shape(self, service, session_record):
        with pytest.raises(InvalidAnswerError):
            service.save_answer(session_record.id, 101, [1], False, TAKER)

    def test_result_not_ready_before_submit(self, service, session_record):
        with pytest.raises(ResultNotReadyError):
            service.get_result(session_record.id, TAKER)

    def test_submit_grades_and_completes(self, service, clock, session_record):
        for qid, answer in ALL_CORRECT.items():
            service.save_answer(session_record.id, qid, answer, False, TAKER)
        clock.advance(600)
        result = service.submit(session_record.id, TAKER)

        assert result.summary.score == 20
        assert result.summary.percentage == 100.0
        assert result.summary.passed
        record = service.store.get(session_record.id)
        assert record.status is SessionStatus.COMPLETED
        assert (record.end_time - record.start_time).total_seconds() == 600
        assert service.get_result(session_record.id, TAKER) == result

    def test_negative_marking_summary(self, service, session_record):
        service.save_answer(session_record.id, 101, 0, False, TAKER)
        service.save_answer(session_record.id, 102, [0, 2], False, TAKER)
        service.save_answer(session_record.id, 105, 3, False, TAKER)
        summary = service.submit(session_record.id, TAKER).summary

        assert summary.score == 2.5
        assert summary.percentage == 12.5
        assert not summary.passed
        assert (summary.correct_count, summary.incorrect_count, summary.unanswered_count) == (1, 2, 3)

    def test_completed_session_rejects_changes(self, service, session_record):
        service.submit(session_record.id, TAKER)
        with pytest.raises(SessionAlreadyCompletedError):
            service.submit(session_record.id, TAKER)
        with pytest.raises(SessionAlreadyCompletedError):
            service.save_answer(session_record.id, 101, 1, False, TAKER)
        with pytest.raises(SessionAlreadyCompletedError):
            service.bootstrap(session_record.id, TAKER)

    def test_new_session_after_completion(self, service, session_record):
        service.submit(session_record.id, TAKER)
        fresh = service.start_exam(SAMPLE_TEST.id, TAKER)
        assert fresh.id != session_record.id
        assert fresh.status is SessionStatus.IN_PROGRESS


class TestSessionStore:

    def test_cleanup_removes_only_expired_completed(self, service, session_record):
        other = service.start_exam(SAMPLE_TEST.id, "taker-2")
        service.submit(session_record.id, TAKER)
        service.store.ttl = -1
        assert service.store.cleanup_expired() == 1
        assert service.store.get(session_record.id) is None
        assert service.store.get(other.id) is not None
