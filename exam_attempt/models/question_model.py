import math
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, Field, model_validator

from exam_attempt.utils.exceptions import InvalidAnswerError

# 답안 값: 보기 인덱스(mcq/true_false) · 보기 인덱스 목록(multiple_correct) · 숫자 문자열(numerical)
AnswerValue = Union[int, List[int], str]


class QuestionType(str, Enum):
    MCQ = "mcq"
    MULTIPLE_CORRECT = "multiple_correct"
    TRUE_FALSE = "true_false"
    NUMERICAL = "numerical"

    @property
    def is_choice(self) -> bool:
        return self is not QuestionType.NUMERICAL


class ExamTest(BaseModel):
    """
    시험(테스트) 기본 정보.
    시험 관리 쪽 소유. 응시 엔진은 읽기만 한다.
    """
    id: int = Field(..., description="시험 ID")
    name: str = Field(..., min_length=1, description="시험명")
    subject: str = Field("", description="과목명")
    duration: int = Field(..., gt=0, description="제한 시간 (분)")
    total_marks: float = Field(..., ge=0, description="총점")
    num_questions: int = Field(..., ge=0, description="문항 수")
    description: str = Field("", description="시험 안내문")


class Question(BaseModel):
    """
    응시 중 변경되지 않는 문제 모델.
    correct_answer는 서버 채점용이며 응시자에게 내려보낼 때는 비워 둔다.
    """
    id: int = Field(
        ...,
        description="문제 ID (고유 식별자)"
    )
    question_text: str = Field(
        ...,
        min_length=1,
        description="발문/문제 내용"
    )
    question_type: QuestionType = Field(
        ...,
        description="문제 유형"
    )
    options: List[str] = Field(
        default_factory=list,
        description="보기 리스트 (선택형 문제만)"
    )
    marks: float = Field(
        1.0,
        ge=0,
        description="정답 배점"
    )
    negative_marks: float = Field(
        0.0,
        ge=0,
        description="오답 감점 (양수로 저장)"
    )
    order: int = Field(
        0,
        description="출제 순서"
    )
    correct_answer: Optional[AnswerValue] = Field(
        None,
        description="정답 (서버 전용)"
    )

    @model_validator(mode='after')
    def validate_options_for_type(self) -> 'Question':
        """
        선택형 문제는 보기가 최소 2개 이상이어야 한다.
        """
        if self.question_type.is_choice and len(self.options) < 2:
            raise ValueError(f"문제 {self.id}: 선택형 문제는 보기가 최소 2개 필요합니다.")
        return self

    def public(self) -> 'Question':
        """정답을 제거한 응시자용 사본."""
        return self.model_copy(update={"correct_answer": None})


def _option_index(question: Question, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAnswerError(f"문제 {question.id}: 보기 인덱스는 정수여야 합니다 ({value!r}).")
    if not 0 <= value < len(question.options):
        raise InvalidAnswerError(f"문제 {question.id}: 보기 범위를 벗어났습니다 ({value}).")
    return value


def normalize_answer(question: Question, value) -> Optional[AnswerValue]:
    """
    답안 값을 문제 유형에 맞게 검증하고 정규화한다.

    Returns:
        정규화된 답안. 빈 값(None, "", 빈 선택)은 None (미응답과 동일).

    Raises:
        InvalidAnswerError: 유형과 맞지 않는 값.
    """
    if value is None or value == "":
        return None

    qtype = question.question_type
    if qtype in (QuestionType.MCQ, QuestionType.TRUE_FALSE):
        return _option_index(question, value)

    if qtype is QuestionType.MULTIPLE_CORRECT:
        if not isinstance(value, (list, tuple, set, frozenset)):
            raise InvalidAnswerError(f"문제 {question.id}: 복수 정답은 보기 인덱스 목록이어야 합니다.")
        selected = sorted({_option_index(question, v) for v in value})
        return selected or None

    # numerical: 숫자로 해석 가능한 문자열만 허용 ("0" 포함)
    if isinstance(value, bool):
        raise InvalidAnswerError(f"문제 {question.id}: 숫자 답안이 아닙니다 ({value!r}).")
    text = str(value).strip()
    if not text:
        return None
    try:
        number = float(text)
    except ValueError:
        raise InvalidAnswerError(f"문제 {question.id}: 숫자 답안이 아닙니다 ({value!r}).")
    if not math.isfinite(number):
        raise InvalidAnswerError(f"문제 {question.id}: 유한한 숫자여야 합니다 ({value!r}).")
    return text
