"""
Tests for the answer sync channel: single in-flight save, ordering, retries.
"""

import asyncio

import pytest

from exam_attempt.services.sync_channel import SaveRequest, SyncChannel
from exam_attempt.utils.exceptions import (
    InvalidAnswerError,
    SessionAlreadyCompletedError,
    SessionNotFoundError,
    TransientBackendError,
)

from conftest import FakeClock


async def _settle():
    for _ in range(5):
        await asyncio.sleep(0)


class RecordingSaver:
    """Save target that records calls, can hold them open and can fail."""

    def __init__(self):
        self.persisted = {}
        self.sent = []
        self.failures = []
        self.gate = None
        self.active = 0
        self.max_active = 0

    async def __call__(self, request: SaveRequest):
        self.sent.append((request.question_id, request.answer))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.failures:
                raise self.failures.pop(0)
            self.persisted[request.question_id] = request.answer
        finally:
            self.active -= 1


def _req(qid, answer, marked=False):
    return SaveRequest(question_id=qid, answer=answer, marked_for_review=marked)


class TestOrdering:

    def test_newer_edit_waits_for_in_flight_save(self):
        async def scenario():
            saver = RecordingSaver()
            saver.gate = asyncio.Event()
            channel = SyncChannel(saver, clock=FakeClock())
            channel.start()

            channel.push(_req(1, 1))
            await _settle()
            channel.push(_req(1, 2))
            assert channel.in_flight.answer == 1
            assert channel.pending_count == 1

            saver.gate.set()
            assert await channel.flush()
            await channel.close()
            return saver

        saver = asyncio.run(scenario())
        assert saver.persisted[1] == 2
        assert saver.max_active == 1
        assert saver.sent == [(1, 1), (1, 2)]

    def test_pending_edits_of_same_question_coalesce(self):
        async def scenario():
            saver = RecordingSaver()
            saver.gate = asyncio.Event()
            channel = SyncChannel(saver, clock=FakeClock())
            channel.start()

            channel.push(_req(1, 1))
            await _settle()
            channel.push(_req(1, 2))
            channel.push(_req(2, "7"))
            channel.push(_req(1, 3))

            saver.gate.set()
            await channel.flush()
            await channel.close()
            return saver

        saver = asyncio.run(scenario())
        assert [a for q, a in saver.sent if q == 1] == [1, 3]
        assert saver.persisted == {1: 3, 2: "7"}
        assert saver.max_active == 1

    def test_failed_save_superseded_by_newer_edit_is_not_retried(self):
        async def scenario():
            clock = FakeClock()
            saver = RecordingSaver()
            saver.gate = asyncio.Event()
            saver.failures = [TransientBackendError("timeout")]
            channel = SyncChannel(saver, clock=clock)
            channel.start()

            channel.push(_req(1, 1))
            await _settle()
            channel.push(_req(1, 2))
            saver.gate.set()
            assert await channel.flush()
            await channel.close()
            return saver, clock

        saver, clock = asyncio.run(scenario())
        assert saver.persisted == {1: 2}
        assert saver.sent == [(1, 1), (1, 2)]
        assert clock.sleeps == []


class TestFailures:

    def test_transient_failure_retries_with_backoff(self):
        async def scenario():
            clock = FakeClock()
            saver = RecordingSaver()
            saver.failures = [TransientBackendError("a"), TransientBackendError("b")]
            channel = SyncChannel(saver, clock=clock, max_retries=3, backoff_base=1.0)
            channel.start()
            channel.push(_req(5, 0))
            ok = await channel.flush()
            await channel.close()
            return ok, saver, clock

        ok, saver, clock = asyncio.run(scenario())
        assert ok
        assert saver.persisted == {5: 0}
        assert clock.sleeps == [1.0, 2.0]

    def test_exhausted_retries_flag_unsaved_then_flush_resends(self):
        errors = []

        async def scenario():
            saver = RecordingSaver()
            saver.failures = [TransientBackendError("down")] * 2
            channel = SyncChannel(saver, clock=FakeClock(), max_retries=2,
                                  on_error=lambda req, e: errors.append(req.question_id))
            channel.start()
            channel.push(_req(3, "1.5"))
            first = await channel.flush()
            flagged = channel.has_unsaved_changes, channel.unsaved_question_ids
            second = await channel.flush()
            await channel.close()
            return first, flagged, second, saver, channel

        first, flagged, second, saver, channel = asyncio.run(scenario())
        assert first is False
        assert flagged == (True, [3])
        assert errors == [3]
        assert second is True
        assert saver.persisted == {3: "1.5"}
        assert not channel.has_unsaved_changes

    def test_completed_session_rejection_is_not_retried(self):
        errors = []

        async def scenario():
            clock = FakeClock()
            saver = RecordingSaver()
            saver.failures = [SessionAlreadyCompletedError("done")]
            channel = SyncChannel(saver, clock=clock,
                                  on_error=lambda req, e: errors.append(type(e)))
            channel.start()
            channel.push(_req(1, 0))
            first = await channel.flush()
            second = await channel.flush()
            rejected = channel.rejected
            await channel.close()
            return first, second, saver, clock, rejected

        first, second, saver, clock, rejected = asyncio.run(scenario())
        assert rejected
        assert (first, second) == (False, False)
        assert len(saver.sent) == 1
        assert clock.sleeps == []
        assert errors == [SessionAlreadyCompletedError]

    def test_close_drains_pending_saves(self):
        async def scenario():
            saver = RecordingSaver()
            channel = SyncChannel(saver, clock=FakeClock())
            channel.start()
            channel.push(_req(1, 0))
            channel.push(_req(2, [1, 2]))
            await channel.close()
            return saver

        saver = asyncio.run(scenario())
        assert saver.persisted == {1: 0, 2: [1, 2]}

    @pytest.mark.parametrize("error", [SessionNotFoundError("gone"), InvalidAnswerError("bad shape")])
    def test_client_errors_are_reported_once_and_dropped(self, error):
        errors = []

        async def scenario():
            clock = FakeClock()
            saver = RecordingSaver()
            saver.failures = [error]
            channel = SyncChannel(saver, clock=clock, max_retries=3,
                                  on_error=lambda req, e: errors.append(e))
            channel.start()
            channel.push(_req(4, "9"))
            ok = await channel.flush()
            state = channel.has_unsaved_changes, channel.rejected
            await channel.close()
            return ok, state, saver, clock

        ok, state, saver, clock = asyncio.run(scenario())
        assert ok
        assert state == (False, False)
        assert saver.sent == [(4, "9")]
        assert clock.sleeps == []
        assert errors == [error]
