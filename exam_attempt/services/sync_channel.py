"""
services/sync_channel.py

답안 변경을 서버 세션 레코드로 밀어 넣는 저장 채널.

정책:
- 동시에 진행 중인 저장 요청은 최대 1개.
- 저장 중에 들어온 요청은 뒤에 줄을 선다. 아직 보내지 않은 같은 문제의
  요청은 최신 것 하나로 합친다. 같은 문제의 오래된 값이 새 값보다 늦게
  전송되는 일은 없다.
- 서버 응답은 로컬 답안 저장소에 쓰지 않는다. 로컬 상태가 항상 기준.
- 일시적 실패(네트워크·타임아웃·5xx)만 지수 백오프로 재시도하고,
  한도를 넘기면 "미저장" 목록에 남겨 두었다가 다음 flush 때 다시 보낸다.
- 4xx 거절은 재시도하지 않고 보고만 한다. 제출 완료 세션이라 거절되면
  채널 전체가 rejected 상태가 되어 이후 flush도 다시 보내지 않는다.
"""

import asyncio
import logging
from collections import OrderedDict
from typing import Awaitable, Callable, Dict, List, Optional

from pydantic import BaseModel

import config
from exam_attempt.models.question_model import AnswerValue
from exam_attempt.services.clock import Clock, system_clock
from exam_attempt.utils.exceptions import (
    BackendError,
    InvalidAnswerError,
    SessionAlreadyCompletedError,
    TransientBackendError,
)

logger = logging.getLogger(__name__)


class SaveRequest(BaseModel):
    question_id: int
    answer: Optional[AnswerValue] = None
    marked_for_review: bool = False


SaveFn = Callable[[SaveRequest], Awaitable[None]]
ErrorCallback = Callable[[SaveRequest, Exception], None]


class SyncChannel:
    """
    저장 요청 직렬화 채널.

    Args:
        save_fn:      실제 저장 호출 (세션 ID가 묶인 백엔드 호출)
        clock:        백오프 대기에 쓰는 시계
        max_retries:  요청 1건당 최대 시도 횟수
        backoff_base: 재시도 대기 기본값 (초). n번째 재시도는 base * 2**(n-1)
        on_error:     재시도 한도 초과 / 거절 시 호출 (치명적이지 않은 오류 보고)
        on_saved:     저장 성공 시 호출
    """

    def __init__(
        self,
        save_fn: SaveFn,
        *,
        clock: Clock = system_clock,
        max_retries: int = config.SYNC_MAX_RETRIES,
        backoff_base: float = config.SYNC_BACKOFF_BASE,
        on_error: Optional[ErrorCallback] = None,
        on_saved: Optional[Callable[[SaveRequest], None]] = None,
    ) -> None:
        self._save_fn = save_fn
        self._clock = clock
        self.max_retries = max(1, max_retries)
        self.backoff_base = backoff_base
        self._on_error = on_error
        self._on_saved = on_saved

        self._pending: "OrderedDict[int, SaveRequest]" = OrderedDict()
        self._unsaved: Dict[int, SaveRequest] = {}
        self._in_flight: Optional[SaveRequest] = None
        self._wakeup = asyncio.Event()
        self._idle = asyncio.Event()
        self._idle.set()
        self._worker: Optional[asyncio.Task] = None
        self._rejected = False

    # ── 상태 ─────────────────────────────────────────────────────────────────

    @property
    def in_flight(self) -> Optional[SaveRequest]:
        return self._in_flight

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def has_unsaved_changes(self) -> bool:
        """서버에 아직 반영되지 않은 변경이 있는지 (대기·전송 중·실패 포함)."""
        return bool(self._pending or self._unsaved) or self._in_flight is not None

    @property
    def unsaved_question_ids(self) -> List[int]:
        return sorted(self._unsaved)

    @property
    def rejected(self) -> bool:
        """세션이 이미 제출 완료되어 서버가 저장을 거절했는지."""
        return self._rejected

    # ── 수명 주기 ────────────────────────────────────────────────────────────

    def start(self) -> None:
        """실행 중인 이벤트 루프에 워커를 띄운다."""
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._run())

    async def close(self) -> None:
        """남은 저장을 모두 보낸 뒤 워커를 종료한다."""
        if self._worker is None:
            return
        await self.flush()
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None

    # ── 요청 ─────────────────────────────────────────────────────────────────

    def push(self, request: SaveRequest) -> None:
        """저장 요청을 줄에 세운다. 같은 문제의 대기 요청은 최신 값으로 교체."""
        qid = request.question_id
        self._pending.pop(qid, None)
        self._pending[qid] = request
        self._unsaved.pop(qid, None)
        self._idle.clear()
        self._wakeup.set()

    async def flush(self) -> bool:
        """
        미저장 요청을 다시 줄에 세우고 줄이 빌 때까지 기다린다.

        Returns:
            모든 변경이 저장되었으면 True.
        """
        if self._worker is None:
            self.start()
        if not self._rejected:
            for qid, request in list(self._unsaved.items()):
                if qid not in self._pending:
                    self._pending[qid] = request
            self._unsaved.clear()
        if self._pending or self._in_flight is not None:
            self._idle.clear()
            self._wakeup.set()
            await self._idle.wait()
        return not self._unsaved

    # ── 워커 ─────────────────────────────────────────────────────────────────

    async def _run(self) -> None:
        while True:
            if not self._pending:
                self._idle.set()
                self._wakeup.clear()
                await self._wakeup.wait()
                continue

            _, request = self._pending.popitem(last=False)
            self._in_flight = request
            try:
                await self._deliver(request)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception(f"문제 {request.question_id} 저장 중 예기치 못한 오류")
                self._unsaved[request.question_id] = request
                self._report(request, e)
            finally:
                self._in_flight = None

    async def _deliver(self, request: SaveRequest) -> None:
        qid = request.question_id
        for attempt in range(1, self.max_retries + 1):
            try:
                await self._save_fn(request)
            except SessionAlreadyCompletedError as e:
                # 제출 완료 세션은 재시도하지 않음
                logger.warning(f"저장 거절 (제출 완료 세션): 문제 {qid}")
                self._rejected = True
                self._unsaved[qid] = request
                self._report(request, e)
                return
            except TransientBackendError as e:
                if qid in self._pending:
                    # 같은 문제의 더 새로운 값이 대기 중이면 이 요청은 폐기
                    logger.info(f"문제 {qid} 저장 실패, 최신 요청으로 대체: {e}")
                    return
                if attempt == self.max_retries:
                    logger.error(f"문제 {qid} 저장 실패 ({attempt}/{self.max_retries}): {e}")
                    self._unsaved[qid] = request
                    self._report(request, e)
                    return
                logger.warning(f"문제 {qid} 저장 재시도 {attempt}/{self.max_retries}: {e}")
                await self._clock.sleep(self.backoff_base * 2 ** (attempt - 1))
                if qid in self._pending:
                    return
            except (BackendError, InvalidAnswerError) as e:
                # 4xx: 다시 보내도 같은 응답
                logger.error(f"문제 {qid} 저장 거절, 재시도하지 않음: {e}")
                self._report(request, e)
                return
            else:
                logger.debug(f"문제 {qid} 저장 완료")
                if self._on_saved:
                    self._on_saved(request)
                return

    def _report(self, request: SaveRequest, error: Exception) -> None:
        if self._on_error:
            self._on_error(request, error)
