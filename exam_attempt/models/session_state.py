"""
models/session_state.py

응시 세션(한 응시자의 한 번의 시험 시도)을 담는 OMR 카드 모델.
Pydantic BaseModel 기반 — 직렬화/역직렬화 및 타입 안전성 확보.
UI 코드 없음.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from exam_attempt.models.question_model import AnswerValue, ExamTest, Question
from exam_attempt.models.result_model import SessionResult


class SessionStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class SessionRecord(BaseModel):
    """
    서버에 저장되는 응시 세션 레코드.

    Attributes:
        id:                세션 ID.
        test_id:           응시 중인 시험 ID.
        taker_id:          응시자 ID.
        answers:           답안지. {question.id: 답안 값}
        marked_for_review: 검토 표시한 문제 ID 목록.
        status:            진행 상태. completed가 되면 더 이상 변경 불가.
        start_time:        서버가 세션 생성 시 부여한 시작 시각. 클라이언트는 절대 변경하지 않는다.
        end_time:          제출 시각.
        result:            제출 시 채점 결과.
    """

    id: str
    test_id: int
    taker_id: str
    answers: Dict[int, AnswerValue] = Field(
        default_factory=dict,
        description="답안지. key: question.id"
    )
    marked_for_review: List[int] = Field(
        default_factory=list,
        description="검토 표시한 문제 ID"
    )
    status: SessionStatus = SessionStatus.IN_PROGRESS
    start_time: datetime = Field(
        ...,
        description="시험 시작 시각 (서버 발급, UTC)"
    )
    end_time: Optional[datetime] = None
    result: Optional[SessionResult] = Field(None, exclude=True)

    @property
    def is_completed(self) -> bool:
        return self.status is SessionStatus.COMPLETED


class Bootstrap(BaseModel):
    """응시 화면 진입 시 한 번 불러오는 세션 + 시험 + 문제 묶음."""

    session: SessionRecord
    test: ExamTest
    questions: List[Question]
