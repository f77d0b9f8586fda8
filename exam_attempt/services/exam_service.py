"""
services/exam_service.py

서버 측 응시 세션 비즈니스 로직 (세션 시작·불러오기·답안 저장·제출·결과)과
채점 함수. 응시 엔진 입장에서는 외부 협력자이며, 참조 구현으로
FastAPI 라우터와 LocalExamBackend가 이 서비스를 사용한다.
"""

import logging
import math
import uuid
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

import config
from exam_attempt.models.question_model import (
    AnswerValue,
    ExamTest,
    Question,
    QuestionType,
    normalize_answer,
)
from exam_attempt.models.result_model import (
    Outcome,
    QuestionResult,
    ResultSummary,
    SessionResult,
)
from exam_attempt.models.session_state import Bootstrap, SessionRecord
from exam_attempt.services.answer_store import has_answer
from exam_attempt.services.clock import Clock, system_clock
from exam_attempt.utils.exceptions import (
    InvalidAnswerError,
    ResultNotReadyError,
    SessionAlreadyCompletedError,
    SessionNotFoundError,
)

logger = logging.getLogger(__name__)


# ── 채점 ─────────────────────────────────────────────────────────────────────

def is_correct(question: Question, answer: AnswerValue) -> bool:
    """
    정답 판정.

    - mcq / true_false: 보기 인덱스 일치
    - multiple_correct: 선택 집합이 정답 집합과 정확히 일치
    - numerical:        실수로 비교
    """
    expected = question.correct_answer
    qtype = question.question_type
    if qtype is QuestionType.MULTIPLE_CORRECT:
        return isinstance(answer, list) and isinstance(expected, list) and set(answer) == set(expected)
    if qtype is QuestionType.NUMERICAL:
        try:
            return math.isclose(float(answer), float(expected), rel_tol=1e-9, abs_tol=1e-9)
        except (TypeError, ValueError):
            return False
    return answer == expected


def grade_question(question: Question, answer: Optional[AnswerValue]) -> QuestionResult:
    """정답이면 배점, 오답이면 감점, 미응답은 0점."""
    if not has_answer(answer):
        outcome, awarded = Outcome.UNANSWERED, 0.0
    elif is_correct(question, answer):
        outcome, awarded = Outcome.CORRECT, question.marks
    else:
        outcome, awarded = Outcome.INCORRECT, -question.negative_marks
    return QuestionResult(
        question_id=question.id,
        outcome=outcome,
        marks_awarded=awarded,
        user_answer=answer if has_answer(answer) else None,
        correct_answer=question.correct_answer,
    )


def is_passed(percentage: float, pass_percentage: float = config.PASS_PERCENTAGE) -> bool:
    """
    합격 여부를 반환한다.

    Args:
        percentage:      총점 대비 득점률 (0.0 ~ 100.0, 감점으로 음수 가능).
        pass_percentage: 합격 기준 (기본 60.0%).
    """
    return percentage >= pass_percentage


def grade_session(
    session: SessionRecord,
    test: ExamTest,
    questions: List[Question],
    pass_percentage: float = config.PASS_PERCENTAGE,
) -> SessionResult:
    """
    세션 전체 채점.
    정답 정보가 없는 문제는 채점할 수 없으므로 제외한다.
    """
    results = [
        grade_question(q, session.answers.get(q.id))
        for q in questions
        if q.correct_answer is not None
    ]
    score = round(sum(r.marks_awarded for r in results), 2)
    total_marks = test.total_marks or sum(q.marks for q in questions)
    percentage = round(score / total_marks * 100, 2) if total_marks else 0.0

    summary = ResultSummary(
        score=score,
        total_marks=total_marks,
        percentage=percentage,
        passed=is_passed(percentage, pass_percentage),
        correct_count=sum(1 for r in results if r.outcome is Outcome.CORRECT),
        incorrect_count=sum(1 for r in results if r.outcome is Outcome.INCORRECT),
        unanswered_count=sum(1 for r in results if r.outcome is Outcome.UNANSWERED),
    )
    return SessionResult(session_id=session.id, test_id=test.id, summary=summary, questions=results)


# ── 문제은행 ─────────────────────────────────────────────────────────────────

class QuestionBank:
    """시험 ID → (시험 정보, 문제 목록). 응시 중에는 읽기 전용."""

    def __init__(self, entries: Iterable[Tuple[ExamTest, List[Question]]] = ()) -> None:
        self._tests: Dict[int, Tuple[ExamTest, List[Question]]] = {}
        for test, questions in entries:
            self.add(test, questions)

    def add(self, test: ExamTest, questions: List[Question]) -> None:
        ordered = sorted(questions, key=lambda q: q.order)
        self._tests[test.id] = (test.model_copy(update={"num_questions": len(ordered)}), ordered)

    def tests(self) -> List[ExamTest]:
        return [test for test, _ in self._tests.values()]

    def get(self, test_id: int) -> Tuple[ExamTest, List[Question]]:
        if test_id not in self._tests:
            raise SessionNotFoundError(f"시험을 찾을 수 없습니다: {test_id}")
        return self._tests[test_id]


# ── 세션 서비스 ──────────────────────────────────────────────────────────────

class ExamService:
    """
    응시 세션 서버 로직.

    Args:
        bank:  문제은행
        store: 세션 저장소 (api.session.SessionStore 호환)
        clock: 서버 시각 공급원 (start_time / end_time 발급에 사용)
    """

    def __init__(self, bank: QuestionBank, store, clock: Clock = system_clock,
                 pass_percentage: float = config.PASS_PERCENTAGE) -> None:
        self.bank = bank
        self.store = store
        self.clock = clock
        self.pass_percentage = pass_percentage

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self.clock.now(), tz=timezone.utc)

    def _owned(self, session_id: str, taker_id: Optional[str]) -> SessionRecord:
        record = self.store.get(session_id)
        # 소유자가 아니면 존재 여부도 알려 주지 않는다
        if record is None or (taker_id is not None and record.taker_id != taker_id):
            raise SessionNotFoundError(f"세션을 찾을 수 없습니다: {session_id}")
        return record

    def list_tests(self) -> List[ExamTest]:
        return self.bank.tests()

    def instructions(self, test_id: int) -> ExamTest:
        test, _ = self.bank.get(test_id)
        return test

    def start_exam(self, test_id: int, taker_id: str) -> SessionRecord:
        """
        응시 시작. 같은 응시자의 진행 중 세션이 있으면 그대로 돌려준다
        (start_time은 최초 생성 시각 유지).
        """
        self.bank.get(test_id)
        ongoing = self.store.find_ongoing(test_id, taker_id)
        if ongoing is not None:
            logger.info(f"진행 중 세션 재사용: {ongoing.id}")
            return ongoing

        record = SessionRecord(
            id=uuid.uuid4().hex,
            test_id=test_id,
            taker_id=taker_id,
            start_time=self._now(),
        )
        logger.info(f"응시 세션 생성: {record.id} (시험 {test_id})")
        return self.store.add(record)

    def find_ongoing(self, test_id: int, taker_id: str) -> Optional[SessionRecord]:
        return self.store.find_ongoing(test_id, taker_id)

    def bootstrap(self, session_id: str, taker_id: Optional[str] = None) -> Bootstrap:
        """세션 + 시험 + 문제(정답 제거)를 한 번에 반환."""
        record = self._owned(session_id, taker_id)
        if record.is_completed:
            raise SessionAlreadyCompletedError(f"이미 제출된 시험입니다: {session_id}")
        test, questions = self.bank.get(record.test_id)
        return Bootstrap(session=record, test=test, questions=[q.public() for q in questions])

    def save_answer(
        self,
        session_id: str,
        question_id: int,
        answer,
        marked_for_review: bool,
        taker_id: Optional[str] = None,
    ) -> SessionRecord:
        record = self._owned(session_id, taker_id)
        _, questions = self.bank.get(record.test_id)
        question = next((q for q in questions if q.id == question_id), None)
        if question is None:
            raise InvalidAnswerError(f"이 시험의 문제가 아닙니다: {question_id}")
        normalized = normalize_answer(question, answer)
        return self.store.save_answer(session_id, question_id, normalized, marked_for_review)

    def submit(self, session_id: str, taker_id: Optional[str] = None) -> SessionResult:
        """
        최종 제출: 채점 후 completed로 전환하고 종료 시각을 기록.
        이미 제출된 세션이면 SessionAlreadyCompletedError.
        """
        record = self._owned(session_id, taker_id)
        if record.is_completed:
            raise SessionAlreadyCompletedError(f"이미 제출된 시험입니다: {session_id}")
        test, questions = self.bank.get(record.test_id)
        result = grade_session(record, test, questions, self.pass_percentage)
        # 채점과 완료 전환 사이의 중복 제출은 store.complete가 거절한다
        self.store.complete(session_id, self._now(), result)
        logger.info(f"제출 완료: {session_id} {result.summary.score}/{result.summary.total_marks}")
        return result

    def get_result(self, session_id: str, taker_id: Optional[str] = None) -> SessionResult:
        record = self._owned(session_id, taker_id)
        if not record.is_completed or record.result is None:
            raise ResultNotReadyError(f"시험이 아직 제출되지 않았습니다: {session_id}")
        return record.result
