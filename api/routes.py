"""
api/routes.py — 응시 세션 FastAPI 엔드포인트

응시 엔진이 사용하는 외부 협력자(세션 불러오기 · 답안 저장 · 제출 · 결과)의
HTTP 구현. 응시자는 쿠키로 식별한다 (request.state.taker_id).
"""

from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from exam_attempt.services.exam_service import ExamService
from exam_attempt.utils.exceptions import (
    ExamAttemptError,
    InvalidAnswerError,
    ResultNotReadyError,
    SessionAlreadyCompletedError,
    SessionNotFoundError,
)

router = APIRouter()

# ── Pydantic request bodies ──────────────────────────────────────────────────

class StartExamBody(BaseModel):
    test_id: int

class SaveAnswerBody(BaseModel):
    question_id: int
    answer: Optional[Any] = None
    marked_for_review: bool = False


# ── 헬퍼 ─────────────────────────────────────────────────────────────────────

def _service(request: Request) -> ExamService:
    return request.app.state.exam_service


def _http_error(e: ExamAttemptError) -> HTTPException:
    if isinstance(e, SessionNotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, SessionAlreadyCompletedError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, InvalidAnswerError):
        return HTTPException(status_code=422, detail=str(e))
    if isinstance(e, ResultNotReadyError):
        return HTTPException(status_code=400, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))


# ── 엔드포인트 ───────────────────────────────────────────────────────────────

@router.get("/api/tests")
async def list_tests(request: Request):
    tests = _service(request).list_tests()
    return {"tests": [t.model_dump(mode="json") for t in tests]}


@router.get("/api/exam/test/{test_id}/instructions")
async def instructions(test_id: int, request: Request):
    service = _service(request)
    try:
        test = service.instructions(test_id)
    except ExamAttemptError as e:
        raise _http_error(e)
    ongoing = service.find_ongoing(test_id, request.state.taker_id)
    return {
        "test": test.model_dump(mode="json"),
        "ongoing_session_id": ongoing.id if ongoing else None,
    }


@router.post("/api/exam/start")
async def start_exam(body: StartExamBody, request: Request):
    try:
        record = _service(request).start_exam(body.test_id, request.state.taker_id)
    except ExamAttemptError as e:
        raise _http_error(e)
    return {"session": record.model_dump(mode="json"), "ok": True}


@router.get("/api/exam/test/{test_id}/ongoing")
async def ongoing_session(test_id: int, request: Request):
    service = _service(request)
    record = service.find_ongoing(test_id, request.state.taker_id)
    if record is None:
        raise HTTPException(status_code=404, detail="진행 중인 시험이 없습니다.")
    try:
        boot = service.bootstrap(record.id, request.state.taker_id)
    except ExamAttemptError as e:
        raise _http_error(e)
    return boot.model_dump(mode="json")


@router.get("/api/exam/session/{session_id}/details")
async def session_details(session_id: str, request: Request):
    try:
        boot = _service(request).bootstrap(session_id, request.state.taker_id)
    except ExamAttemptError as e:
        raise _http_error(e)
    return boot.model_dump(mode="json")


@router.put("/api/exam/session/{session_id}/save-answer")
async def save_answer(session_id: str, body: SaveAnswerBody, request: Request):
    try:
        record = _service(request).save_answer(
            session_id,
            body.question_id,
            body.answer,
            body.marked_for_review,
            request.state.taker_id,
        )
    except ExamAttemptError as e:
        raise _http_error(e)
    return {"ok": True, "answered_count": len(record.answers)}


@router.post("/api/exam/session/{session_id}/submit")
async def submit_exam(session_id: str, request: Request):
    try:
        result = _service(request).submit(session_id, request.state.taker_id)
    except ExamAttemptError as e:
        raise _http_error(e)
    return {"ok": True, "score": result.summary.score}


@router.get("/api/exam/session/{session_id}/result")
async def get_result(session_id: str, request: Request):
    try:
        result = _service(request).get_result(session_id, request.state.taker_id)
    except ExamAttemptError as e:
        raise _http_error(e)
    return result.model_dump(mode="json")
