"""
services/answer_store.py

문제 → 현재 답안 값의 인메모리 저장소.
화면 표시와 서버 저장 모두 이 저장소를 기준으로 한다.
"""

from typing import Dict, Iterator, List, Optional

from exam_attempt.models.question_model import AnswerValue


class _Absent:
    """키가 없음을 나타내는 표식 (None/빈 값과 구분)."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT = _Absent()


def has_answer(value) -> bool:
    """
    응답 여부 판정.

    None, "", 빈 선택, ABSENT는 미응답.
    보기 인덱스 0, 숫자 답안 "0"은 응답으로 본다. 참/거짓 평가를 쓰지 않는다.
    """
    if value is None or value is ABSENT:
        return False
    if isinstance(value, str):
        return value.strip() != ""
    if isinstance(value, (list, tuple, set, frozenset)):
        return len(value) > 0
    return True


class AnswerStore:
    """
    답안 저장소. 같은 문제에 대한 기록은 마지막 값이 이긴다 (병합 없음).
    """

    def __init__(self, answers: Optional[Dict[int, AnswerValue]] = None) -> None:
        self._answers: Dict[int, AnswerValue] = {}
        for qid, value in (answers or {}).items():
            if has_answer(value):
                self._answers[int(qid)] = value

    def get(self, question_id: int):
        """저장된 값, 없으면 ABSENT."""
        return self._answers.get(question_id, ABSENT)

    def set(self, question_id: int, value: AnswerValue) -> None:
        """이전 값을 무조건 덮어쓴다. 빈 값은 clear와 같다."""
        if not has_answer(value):
            self.clear(question_id)
            return
        if isinstance(value, (list, tuple, set, frozenset)):
            value = sorted(value)
        self._answers[question_id] = value

    def clear(self, question_id: int) -> None:
        """키 자체를 제거한다 (빈 문자열 기록이 아님)."""
        self._answers.pop(question_id, None)

    def toggle_option(self, question_id: int, option_index: int, selected: bool) -> List[int]:
        """
        복수 정답 문제의 보기 하나를 켜고/끈다.
        선택 집합 전체를 새로 써서 저장하며, 모두 해제되면 키를 제거한다.

        Returns:
            토글 후 선택된 보기 인덱스 목록 (정렬).
        """
        current = self.get(question_id)
        chosen = set(current) if isinstance(current, list) else set()
        if selected:
            chosen.add(option_index)
        else:
            chosen.discard(option_index)
        self.set(question_id, sorted(chosen))
        return sorted(chosen)

    def is_answered(self, question_id: int) -> bool:
        return has_answer(self.get(question_id))

    def snapshot(self) -> Dict[int, AnswerValue]:
        return {qid: (list(v) if isinstance(v, list) else v) for qid, v in self._answers.items()}

    def __contains__(self, question_id: int) -> bool:
        return question_id in self._answers

    def __iter__(self) -> Iterator[int]:
        return iter(self._answers)

    def __len__(self) -> int:
        return len(self._answers)
