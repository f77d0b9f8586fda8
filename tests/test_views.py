"""
Tests for the Streamlit component helpers and the background loop runtime.
"""

import asyncio
import threading

import pytest

import config
from api.sample_questions import SAMPLE_QUESTIONS
from exam_attempt.services.status_classifier import QuestionStatus, StatusSummary
from exam_attempt.utils.exceptions import TransientBackendError
from exam_attempt.views.components.question_card import widget_keys
from exam_attempt.views.components.sidebar import STATUS_COLORS, STATUS_LABELS, summary_rows
from exam_attempt.views.components.timer import format_clock
from exam_attempt.views.runtime import AttemptRuntime


@pytest.mark.parametrize(
    "seconds, expected",
    [(0, "00:00:00"), (59, "00:00:59"), (300, "00:05:00"), (3661, "01:01:01"), (-5, "00:00:00")],
)
def test_format_clock(seconds, expected):
    assert format_clock(seconds) == expected


def test_summary_rows_cover_every_status():
    summary = StatusSummary(total=6, answered=2, not_answered=1, marked=1, answered_marked=1, not_visited=1)
    rows = summary_rows(summary)
    assert {status for status, _ in rows} == set(QuestionStatus)
    assert sum(count for _, count in rows) == summary.total
    assert set(STATUS_COLORS) == set(STATUS_LABELS) == set(QuestionStatus)


def test_widget_keys_per_question_type():
    mcq, multi, _, numerical = SAMPLE_QUESTIONS[:4]
    assert widget_keys(mcq) == ["radio_101"]
    assert widget_keys(multi) == [f"chk_102_{i}" for i in range(4)]
    assert widget_keys(numerical) == ["num_104"]


class TestAttemptRuntime:

    @pytest.fixture
    def runtime(self):
        rt = AttemptRuntime()
        yield rt
        rt.stop()

    def test_run_returns_result(self, runtime):
        async def answer():
            return 42

        assert runtime.run(answer()) == 42
        assert runtime.call(lambda a, b: a + b, 2, 3) == 5

    def test_slow_call_raises_backend_error_and_keeps_running(self, runtime):
        gate = threading.Event()
        finished = threading.Event()

        async def slow():
            while not gate.is_set():
                await asyncio.sleep(0.01)
            finished.set()

        with pytest.raises(TransientBackendError):
            runtime.run(slow(), timeout=0.05)
        gate.set()
        assert finished.wait(timeout=2)

    def test_spawn_does_not_block(self, runtime):
        gate = threading.Event()

        async def wait_for_gate():
            while not gate.is_set():
                await asyncio.sleep(0.01)
            return True

        future = runtime.spawn(wait_for_gate())
        assert not future.done()
        gate.set()
        assert future.result(timeout=2)

    def test_default_wait_covers_a_full_save_retry_cycle(self):
        budget = (
            config.HTTP_TIMEOUT * config.SYNC_MAX_RETRIES
            + config.SYNC_BACKOFF_BASE * (2 ** (config.SYNC_MAX_RETRIES - 1) - 1)
        )
        assert config.RUNTIME_TIMEOUT > budget
