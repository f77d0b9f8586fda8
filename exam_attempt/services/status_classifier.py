"""
services/status_classifier.py

문제별 표시 상태 판정. 부수효과 없는 순수 함수.
문제 번호 팔레트와 제출 확인 요약이 모두 이 함수를 사용하므로
두 화면의 집계가 항상 일치한다.
"""

from enum import Enum
from typing import AbstractSet, Iterable, List, Tuple

from pydantic import BaseModel

from exam_attempt.services.answer_store import AnswerStore


class QuestionStatus(str, Enum):
    NOT_VISITED = "not-visited"
    NOT_ANSWERED = "not-answered"
    ANSWERED = "answered"
    MARKED = "marked"
    ANSWERED_MARKED = "answered-marked"


class StatusSummary(BaseModel):
    """
    상태별 문항 수. 다섯 값의 합은 항상 total과 같다.
    """
    total: int = 0
    answered: int = 0
    not_answered: int = 0
    marked: int = 0
    answered_marked: int = 0
    not_visited: int = 0

    @property
    def answered_total(self) -> int:
        """검토 표시 여부와 무관하게 답한 문항 수."""
        return self.answered + self.answered_marked

    @property
    def marked_total(self) -> int:
        """답 여부와 무관하게 검토 표시한 문항 수."""
        return self.marked + self.answered_marked


def classify(
    question_id: int,
    visited: AbstractSet[int],
    answers: AnswerStore,
    marked: AbstractSet[int],
) -> QuestionStatus:
    """
    한 문제의 상태를 판정한다.

    판정 순서:
      1. 방문한 적 없음 → not-visited (답/표시와 무관)
      2. 답 + 검토 표시 → answered-marked
      3. 검토 표시만   → marked
      4. 답만          → answered
      5. 둘 다 없음    → not-answered
    """
    if question_id not in visited:
        return QuestionStatus.NOT_VISITED

    is_answered = answers.is_answered(question_id)
    is_marked = question_id in marked

    if is_answered and is_marked:
        return QuestionStatus.ANSWERED_MARKED
    if is_marked:
        return QuestionStatus.MARKED
    if is_answered:
        return QuestionStatus.ANSWERED
    return QuestionStatus.NOT_ANSWERED


def classify_all(
    question_ids: Iterable[int],
    visited: AbstractSet[int],
    answers: AnswerStore,
    marked: AbstractSet[int],
) -> List[Tuple[int, QuestionStatus]]:
    return [(qid, classify(qid, visited, answers, marked)) for qid in question_ids]


_FIELD_BY_STATUS = {
    QuestionStatus.ANSWERED: "answered",
    QuestionStatus.NOT_ANSWERED: "not_answered",
    QuestionStatus.MARKED: "marked",
    QuestionStatus.ANSWERED_MARKED: "answered_marked",
    QuestionStatus.NOT_VISITED: "not_visited",
}


def summarize(
    question_ids: Iterable[int],
    visited: AbstractSet[int],
    answers: AnswerStore,
    marked: AbstractSet[int],
) -> StatusSummary:
    """모든 문제에 classify를 적용해 상태별로 센다."""
    counts = {field: 0 for field in _FIELD_BY_STATUS.values()}
    total = 0
    for _, status in classify_all(question_ids, visited, answers, marked):
        counts[_FIELD_BY_STATUS[status]] += 1
        total += 1
    return StatusSummary(total=total, **counts)
