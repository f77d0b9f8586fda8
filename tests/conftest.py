"""
Shared fixtures: fake clock, in-memory exam service and scripted backends.
"""

import asyncio
from typing import List, Optional

import pytest

from api.sample_questions import SAMPLE_QUESTIONS, SAMPLE_TEST
from api.session import SessionStore
from exam_attempt.services.exam_backend import LocalExamBackend
from exam_attempt.services.exam_service import ExamService, QuestionBank
from exam_attempt.utils.exceptions import BackendError, TransientBackendError

T0 = 1_700_000_000.0
TAKER = "taker-1"


class FakeClock:
    """Manually advanced clock. sleep() moves time forward and yields to the loop."""

    def __init__(self, start: float = T0) -> None:
        self.t = start
        self.sleeps: List[float] = []

    def now(self) -> float:
        return self.t

    def advance(self, seconds: float) -> None:
        self.t += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.advance(seconds)
        await asyncio.sleep(0)


class ScriptedBackend(LocalExamBackend):
    """
    LocalExamBackend that records calls and can inject failures or hold calls open.
    """

    def __init__(self, service: ExamService, taker_id: str) -> None:
        super().__init__(service, taker_id)
        self.save_calls: List[tuple] = []
        self.submit_calls: List[str] = []
        self.save_failures: List[BackendError] = []
        self.submit_failures: List[BackendError] = []
        self.save_gate: Optional[asyncio.Event] = None
        self.submit_gate: Optional[asyncio.Event] = None
        self.in_flight = 0
        self.max_in_flight = 0

    async def save_answer(self, session_id, question_id, answer, marked_for_review):
        self.save_calls.append((question_id, answer, marked_for_review))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.save_gate is not None:
                await self.save_gate.wait()
            if self.save_failures:
                raise self.save_failures.pop(0)
            await super().save_answer(session_id, question_id, answer, marked_for_review)
        finally:
            self.in_flight -= 1

    async def submit(self, session_id):
        self.submit_calls.append(session_id)
        if self.submit_gate is not None:
            await self.submit_gate.wait()
        if self.submit_failures:
            raise self.submit_failures.pop(0)
        await super().submit(session_id)


def transient(message: str = "boom") -> TransientBackendError:
    return TransientBackendError(message)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def service(clock):
    bank = QuestionBank([(SAMPLE_TEST, SAMPLE_QUESTIONS)])
    return ExamService(bank, SessionStore(), clock=clock)


@pytest.fixture
def session_record(service):
    return service.start_exam(SAMPLE_TEST.id, TAKER)


@pytest.fixture
def backend(service):
    return ScriptedBackend(service, TAKER)
