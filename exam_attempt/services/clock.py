"""
services/clock.py

시각 공급원. 응시 엔진의 모든 시간 계산은 이 인터페이스만 사용한다.
테스트에서는 가짜 시계를 주입해 카운트다운을 결정적으로 진행시킨다.
"""

import asyncio
import time
from typing import Protocol


class Clock(Protocol):
    def now(self) -> float:
        """현재 시각 (Unix timestamp, 초)."""
        ...

    async def sleep(self, seconds: float) -> None:
        """주기적 깨우기용 대기."""
        ...


class SystemClock:
    """실제 벽시계."""

    def now(self) -> float:
        return time.time()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


system_clock = SystemClock()
