"""
api/session.py — 응시 세션 인메모리 저장소

세션 레코드를 ID로 보관하고, 모든 변경은 하나의 락 안에서
"제출 완료 여부 확인 → 변경"을 원자적으로 수행한다.
제출 완료 후 TTL(기본 24시간)이 지난 세션은 정리 대상.
"""

import threading
import time
from datetime import datetime
from typing import Dict, List, Optional

import config
from exam_attempt.models.question_model import AnswerValue
from exam_attempt.models.result_model import SessionResult
from exam_attempt.models.session_state import SessionRecord, SessionStatus
from exam_attempt.utils.exceptions import SessionAlreadyCompletedError, SessionNotFoundError


class SessionStore:
    def __init__(self, ttl: float = config.COMPLETED_SESSION_TTL) -> None:
        self.ttl = ttl
        self._lock = threading.Lock()
        self._sessions: Dict[str, SessionRecord] = {}
        self._completed_at: Dict[str, float] = {}

    def add(self, record: SessionRecord) -> SessionRecord:
        with self._lock:
            self._sessions[record.id] = record
            return record.model_copy(deep=True)

    def get(self, sid: str) -> Optional[SessionRecord]:
        """세션 ID로 레코드 사본을 가져옴. 없으면 None."""
        with self._lock:
            record = self._sessions.get(sid)
            return record.model_copy(deep=True) if record else None

    def find_ongoing(self, test_id: int, taker_id: str) -> Optional[SessionRecord]:
        """같은 응시자의 진행 중 세션."""
        with self._lock:
            for record in self._sessions.values():
                if (
                    record.test_id == test_id
                    and record.taker_id == taker_id
                    and record.status is SessionStatus.IN_PROGRESS
                ):
                    return record.model_copy(deep=True)
        return None

    def _require_open(self, sid: str) -> SessionRecord:
        record = self._sessions.get(sid)
        if record is None:
            raise SessionNotFoundError(f"세션을 찾을 수 없습니다: {sid}")
        if record.status is SessionStatus.COMPLETED:
            raise SessionAlreadyCompletedError(f"이미 제출된 시험입니다: {sid}")
        return record

    def save_answer(
        self,
        sid: str,
        question_id: int,
        answer: Optional[AnswerValue],
        marked_for_review: bool,
    ) -> SessionRecord:
        """답안/검토 표시 기록. answer가 None이면 답안 키를 제거."""
        with self._lock:
            record = self._require_open(sid)
            if answer is None:
                record.answers.pop(question_id, None)
            else:
                record.answers[question_id] = answer
            marked = [qid for qid in record.marked_for_review if qid != question_id]
            if marked_for_review:
                marked.append(question_id)
            record.marked_for_review = marked
            return record.model_copy(deep=True)

    def complete(self, sid: str, end_time: datetime, result: SessionResult) -> SessionRecord:
        """진행 중 → 제출 완료. 두 번째 호출은 거절."""
        with self._lock:
            record = self._require_open(sid)
            record.status = SessionStatus.COMPLETED
            record.end_time = end_time
            record.result = result
            self._completed_at[sid] = time.time()
            return record.model_copy(deep=True)

    def list(self) -> List[SessionRecord]:
        with self._lock:
            return [r.model_copy(deep=True) for r in self._sessions.values()]

    def cleanup_expired(self) -> int:
        """TTL이 지난 제출 완료 세션을 정리. 제거된 수 반환."""
        now = time.time()
        removed = 0
        with self._lock:
            expired = [sid for sid, ts in self._completed_at.items() if now - ts > self.ttl]
            for sid in expired:
                del self._sessions[sid]
                del self._completed_at[sid]
                removed += 1
        return removed
