"""
models/result_model.py

채점 결과 모델. 응시 엔진은 결과를 만들지 않고 결과 화면으로 넘기기만 한다.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel

from exam_attempt.models.question_model import AnswerValue


class Outcome(str, Enum):
    CORRECT = "correct"
    INCORRECT = "incorrect"
    UNANSWERED = "unanswered"


class QuestionResult(BaseModel):
    question_id: int
    outcome: Outcome
    marks_awarded: float
    user_answer: Optional[AnswerValue] = None
    correct_answer: Optional[AnswerValue] = None


class ResultSummary(BaseModel):
    score: float
    total_marks: float
    percentage: float
    passed: bool
    correct_count: int
    incorrect_count: int
    unanswered_count: int


class SessionResult(BaseModel):
    session_id: str
    test_id: int
    summary: ResultSummary
    questions: List[QuestionResult]
