"""
api/app.py — FastAPI 앱 인스턴스 + 응시자 쿠키 미들웨어 + 만료 세션 정리
"""

import logging
import threading
import time
import uuid
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

import config
from api.routes import router
from api.sample_questions import SAMPLE_QUESTIONS, SAMPLE_TEST
from api.session import SessionStore
from exam_attempt.services.clock import Clock, system_clock
from exam_attempt.services.exam_service import ExamService, QuestionBank

logger = logging.getLogger(__name__)


def create_app(
    service: Optional[ExamService] = None,
    clock: Clock = system_clock,
    start_cleanup: bool = True,
) -> FastAPI:
    app = FastAPI(title="CBT Exam Attempt", docs_url=None, redoc_url=None)

    if service is None:
        bank = QuestionBank([(SAMPLE_TEST, SAMPLE_QUESTIONS)])
        service = ExamService(bank, SessionStore(), clock=clock)
    app.state.exam_service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 응시자 미들웨어: 쿠키에서 응시자 ID를 읽고, 없으면 새로 발급
    @app.middleware("http")
    async def taker_middleware(request: Request, call_next):
        taker_id = request.cookies.get(config.TAKER_COOKIE)
        if not taker_id:
            taker_id = uuid.uuid4().hex

        request.state.taker_id = taker_id
        response: Response = await call_next(request)
        response.set_cookie(
            key=config.TAKER_COOKIE,
            value=taker_id,
            httponly=True,
            samesite="lax",
        )
        return response

    app.include_router(router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    # 제출 완료 세션 주기적 정리 (5분마다)
    def _cleanup_loop():
        while True:
            time.sleep(config.CLEANUP_INTERVAL)
            removed = service.store.cleanup_expired()
            if removed:
                logger.info(f"만료 세션 {removed}개 정리")

    if start_cleanup:
        t = threading.Thread(target=_cleanup_loop, daemon=True)
        t.start()

    return app
