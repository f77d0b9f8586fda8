"""
views/runtime.py

Streamlit 스크립트는 상호작용마다 처음부터 다시 실행되므로,
응시 컨트롤러는 별도 스레드의 이벤트 루프 하나에서 산다.
화면 코드는 모든 조작을 이 루프로 넘겨 순서대로 실행한다.
"""

import asyncio
import concurrent.futures
import logging
import threading
from typing import Any, Awaitable, Callable, Optional

import config
from exam_attempt.utils.exceptions import TransientBackendError

logger = logging.getLogger(__name__)


class AttemptRuntime:
    def __init__(self) -> None:
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self.loop.run_forever, daemon=True)
        self._thread.start()

    def spawn(self, coro: Awaitable) -> concurrent.futures.Future:
        """코루틴을 루프에 걸고 기다리지 않는다. 결과는 컨트롤러 상태로 확인."""
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def run(self, coro: Awaitable, timeout: Optional[float] = None) -> Any:
        """
        코루틴을 루프에서 실행하고 결과를 기다린다.

        Raises:
            TransientBackendError: timeout 안에 끝나지 않음. 코루틴은 루프에서 계속 진행된다.
        """
        timeout = config.RUNTIME_TIMEOUT if timeout is None else timeout
        future = self.spawn(coro)
        try:
            return future.result(timeout)
        except concurrent.futures.TimeoutError:
            logger.warning(f"백그라운드 작업 대기 시간 초과 ({timeout}초)")
            raise TransientBackendError(f"응답 대기 시간이 초과되었습니다 ({timeout:g}초).")

    def call(self, fn: Callable[..., Any], *args: Any) -> Any:
        """동기 함수를 루프 스레드에서 실행 (컨트롤러 상태를 한 스레드에서만 건드린다)."""
        async def _invoke():
            return fn(*args)
        return self.run(_invoke())

    def stop(self) -> None:
        self.loop.call_soon_threadsafe(self.loop.stop)
