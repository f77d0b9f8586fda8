"""
api/sample_questions.py — 내장 예제 시험 (문제 유형 4종)
"""

from exam_attempt.models.question_model import ExamTest, Question, QuestionType

SAMPLE_TEST = ExamTest(
    id=1,
    name="기초 수학 모의고사",
    subject="Mathematics",
    duration=30,
    total_marks=20,
    num_questions=6,
    description="객관식 · 복수 정답 · 참/거짓 · 주관식(숫자) 문제로 구성된 예제 시험입니다.",
)

SAMPLE_QUESTIONS = [
    Question(
        id=101,
        question_text="12 × 12 의 값은?",
        question_type=QuestionType.MCQ,
        options=["124", "144", "164", "196"],
        marks=4,
        negative_marks=1,
        order=1,
        correct_answer=1,
    ),
    Question(
        id=102,
        question_text="다음 중 소수를 모두 고르시오.",
        question_type=QuestionType.MULTIPLE_CORRECT,
        options=["2", "9", "11", "15"],
        marks=4,
        negative_marks=1,
        order=2,
        correct_answer=[0, 2],
    ),
    Question(
        id=103,
        question_text="0은 짝수이다.",
        question_type=QuestionType.TRUE_FALSE,
        options=["참", "거짓"],
        marks=2,
        order=3,
        correct_answer=0,
    ),
    Question(
        id=104,
        question_text="원주율을 소수점 둘째 자리까지 쓰시오.",
        question_type=QuestionType.NUMERICAL,
        marks=4,
        order=4,
        correct_answer="3.14",
    ),
    Question(
        id=105,
        question_text="삼각형 내각의 합은 몇 도인가?",
        question_type=QuestionType.MCQ,
        options=["90", "180", "270", "360"],
        marks=2,
        negative_marks=0.5,
        order=5,
        correct_answer=1,
    ),
    Question(
        id=106,
        question_text="7 - 7 의 값을 쓰시오.",
        question_type=QuestionType.NUMERICAL,
        marks=4,
        order=6,
        correct_answer="0",
    ),
]
