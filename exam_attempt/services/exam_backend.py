"""
services/exam_backend.py

응시 엔진이 사용하는 외부 협력자 인터페이스와 구현체.

  - ExamBackend       : 세션 불러오기 · 답안 저장 · 제출 · 결과 조회 계약
  - HttpExamBackend   : FastAPI 서버(api/routes.py)를 httpx로 호출
  - LocalExamBackend  : 같은 프로세스의 ExamService를 직접 호출
"""

import logging
from typing import Any, Dict, List, Optional, Protocol

import httpx

import config
from exam_attempt.models.question_model import AnswerValue, ExamTest
from exam_attempt.models.result_model import SessionResult
from exam_attempt.models.session_state import Bootstrap, SessionRecord
from exam_attempt.services.exam_service import ExamService
from exam_attempt.utils.exceptions import (
    BackendError,
    InvalidAnswerError,
    ResultNotReadyError,
    SessionAlreadyCompletedError,
    SessionNotFoundError,
    TransientBackendError,
)

logger = logging.getLogger(__name__)


class ExamBackend(Protocol):
    async def bootstrap(self, test_id: Optional[int] = None,
                        session_id: Optional[str] = None) -> Bootstrap: ...

    async def save_answer(self, session_id: str, question_id: int,
                          answer: Optional[AnswerValue], marked_for_review: bool) -> None: ...

    async def submit(self, session_id: str) -> None: ...

    async def get_result(self, session_id: str) -> SessionResult: ...


# ── HTTP ─────────────────────────────────────────────────────────────────────

_ERRORS_BY_STATUS = {
    400: ResultNotReadyError,
    404: SessionNotFoundError,
    409: SessionAlreadyCompletedError,
    422: InvalidAnswerError,
}


class HttpExamBackend:
    """
    FastAPI 응시 서버 클라이언트.

    Args:
        base_url:  서버 주소
        taker_id:  응시자 식별 쿠키 값
        timeout:   요청 타임아웃 (초). 타임아웃은 재시도 가능한 오류로 보고된다.
        transport: httpx 전송 계층 (테스트에서 ASGITransport 주입)
    """

    def __init__(
        self,
        base_url: str = config.API_BASE_URL,
        taker_id: Optional[str] = None,
        timeout: float = config.HTTP_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.taker_id = taker_id
        self.timeout = timeout
        self.transport = transport

    async def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Any:
        cookies = {config.TAKER_COOKIE: self.taker_id} if self.taker_id else None
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                cookies=cookies,
                transport=self.transport,
            ) as client:
                response = await client.request(method, path, json=json)
                response.raise_for_status()
                if self.taker_id is None:
                    # 서버가 발급한 응시자 쿠키를 이후 요청에 사용
                    self.taker_id = response.cookies.get(config.TAKER_COOKIE) or self.taker_id
                return response.json()

        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            try:
                detail = e.response.json().get("detail", e.response.text)
            except ValueError:
                detail = e.response.text
            logger.warning(f"HTTP {status} {method} {path}: {detail}")
            if status >= 500:
                raise TransientBackendError(f"서버 오류 (HTTP {status}): {detail}")
            raise _ERRORS_BY_STATUS.get(status, BackendError)(detail)

        except httpx.TimeoutException:
            logger.warning(f"타임아웃 {method} {path}")
            raise TransientBackendError(f"요청 시간 초과: {method} {path}")

        except httpx.TransportError as e:
            logger.warning(f"네트워크 오류 {method} {path}: {e}")
            raise TransientBackendError(f"네트워크 오류: {e}")

    async def list_tests(self) -> List[ExamTest]:
        data = await self._request("GET", "/api/tests")
        return [ExamTest.model_validate(t) for t in data["tests"]]

    async def start_exam(self, test_id: int) -> SessionRecord:
        data = await self._request("POST", "/api/exam/start", json={"test_id": test_id})
        return SessionRecord.model_validate(data["session"])

    async def bootstrap(self, test_id: Optional[int] = None,
                        session_id: Optional[str] = None) -> Bootstrap:
        if session_id:
            data = await self._request("GET", f"/api/exam/session/{session_id}/details")
        elif test_id is not None:
            data = await self._request("GET", f"/api/exam/test/{test_id}/ongoing")
        else:
            raise ValueError("test_id 또는 session_id가 필요합니다.")
        return Bootstrap.model_validate(data)

    async def save_answer(self, session_id: str, question_id: int,
                          answer: Optional[AnswerValue], marked_for_review: bool) -> None:
        await self._request(
            "PUT",
            f"/api/exam/session/{session_id}/save-answer",
            json={
                "question_id": question_id,
                "answer": answer,
                "marked_for_review": marked_for_review,
            },
        )

    async def submit(self, session_id: str) -> None:
        await self._request("POST", f"/api/exam/session/{session_id}/submit")

    async def get_result(self, session_id: str) -> SessionResult:
        data = await self._request("GET", f"/api/exam/session/{session_id}/result")
        return SessionResult.model_validate(data)


# ── 인프로세스 ───────────────────────────────────────────────────────────────

class LocalExamBackend:
    """ExamService를 직접 호출하는 백엔드. 서버 없이 응시 화면/테스트를 돌릴 때 사용."""

    def __init__(self, service: ExamService, taker_id: str) -> None:
        self.service = service
        self.taker_id = taker_id

    async def list_tests(self) -> List[ExamTest]:
        return self.service.list_tests()

    async def start_exam(self, test_id: int) -> SessionRecord:
        return self.service.start_exam(test_id, self.taker_id)

    async def bootstrap(self, test_id: Optional[int] = None,
                        session_id: Optional[str] = None) -> Bootstrap:
        if not session_id:
            if test_id is None:
                raise ValueError("test_id 또는 session_id가 필요합니다.")
            ongoing = self.service.find_ongoing(test_id, self.taker_id)
            if ongoing is None:
                raise SessionNotFoundError(f"진행 중인 세션이 없습니다: 시험 {test_id}")
            session_id = ongoing.id
        return self.service.bootstrap(session_id, self.taker_id)

    async def save_answer(self, session_id: str, question_id: int,
                          answer: Optional[AnswerValue], marked_for_review: bool) -> None:
        self.service.save_answer(session_id, question_id, answer, marked_for_review, self.taker_id)

    async def submit(self, session_id: str) -> None:
        self.service.submit(session_id, self.taker_id)

    async def get_result(self, session_id: str) -> SessionResult:
        return self.service.get_result(session_id, self.taker_id)
