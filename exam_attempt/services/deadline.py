"""
services/deadline.py

서버가 발급한 시작 시각 + 제한 시간으로 절대 마감 시각을 계산한다.
남은 시간은 매 틱/매 재접속마다 start_time에서 다시 계산한다.
클라이언트가 들고 있는 카운터를 깎아 나가지 않는다.
"""

import math
from datetime import datetime
from typing import Union

Timestamp = Union[float, datetime]


def _to_timestamp(value: Timestamp) -> float:
    if isinstance(value, datetime):
        return value.timestamp()
    return float(value)


class Deadline:
    """
    시험 마감 시각.

    Args:
        start_time:       세션 시작 시각 (datetime 또는 Unix timestamp)
        duration_minutes: 시험 제한 시간 (분)
    """

    def __init__(self, start_time: Timestamp, duration_minutes: float) -> None:
        self.start_time = _to_timestamp(start_time)
        self.duration_minutes = duration_minutes
        self.at = self.start_time + duration_minutes * 60

    def remaining_seconds(self, now: float) -> int:
        """남은 시간 (초, 올림). 0이 되는 순간과 마감 시각이 일치한다."""
        return max(0, math.ceil(self.at - now))

    def is_expired(self, now: float) -> bool:
        return now >= self.at

    def __repr__(self) -> str:
        return f"Deadline(start_time={self.start_time}, duration_minutes={self.duration_minutes})"
