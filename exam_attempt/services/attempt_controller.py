"""
services/attempt_controller.py

응시 세션 컨트롤러: 시험 한 번의 진행 상태 머신.

상태:
  loading → in_progress → submitting → completed
  loading    → error  (세션 없음 / 소유자 아님 / 이미 제출됨)
  submitting → in_progress (제출 실패, 재시도 가능)
  submitting → error  (예상치 못한 중복 제출 감지)

모든 이벤트(사용자 조작, 1초 틱)는 하나의 이벤트 루프에서 순서대로 처리된다.
제출은 single-flight 플래그로 세션당 동시에 한 번만 나간다.
"""

import asyncio
import logging
from enum import Enum
from typing import Callable, List, Optional, Set

from pydantic import BaseModel

import config
from exam_attempt.models.question_model import ExamTest, Question, QuestionType, normalize_answer
from exam_attempt.models.session_state import SessionRecord
from exam_attempt.services.answer_store import ABSENT, AnswerStore
from exam_attempt.services.clock import Clock, system_clock
from exam_attempt.services.deadline import Deadline
from exam_attempt.services.exam_backend import ExamBackend
from exam_attempt.services.status_classifier import (
    QuestionStatus,
    StatusSummary,
    classify,
    summarize,
)
from exam_attempt.services.sync_channel import SaveRequest, SyncChannel
from exam_attempt.utils.exceptions import (
    BackendError,
    InvalidAnswerError,
    SessionAlreadyCompletedError,
    TransientBackendError,
)

logger = logging.getLogger(__name__)


class AttemptPhase(str, Enum):
    LOADING = "loading"
    IN_PROGRESS = "in_progress"
    SUBMITTING = "submitting"
    COMPLETED = "completed"
    ERROR = "error"


class SubmitTrigger(str, Enum):
    MANUAL = "manual"
    TIMEOUT = "timeout"


class Notice(BaseModel):
    """사용자에게 보여 줄 알림. 닫을 수 있는 일시적 알림과 이동이 필요한 치명적 알림."""
    id: int
    level: str
    message: str
    redirect: Optional[str] = None


class PaletteItem(BaseModel):
    index: int
    question_id: int
    status: QuestionStatus
    is_current: bool


LISTING_VIEW = "home"


class SessionController:
    """
    Args:
        backend:           외부 협력자 (세션 불러오기 · 저장 · 제출)
        test_id:           시험 ID (session_id가 없을 때 진행 중 세션을 찾음)
        session_id:        세션 ID
        clock:             시각 공급원 겸 주기적 깨우기
        warning_threshold: 남은 시간 경고 기준 (초)
        tick_interval:     카운트다운 틱 주기 (초)
        on_completed:      제출 완료 시 세션 ID를 넘겨받는 결과 화면 협력자
    """

    def __init__(
        self,
        backend: ExamBackend,
        *,
        test_id: Optional[int] = None,
        session_id: Optional[str] = None,
        clock: Clock = system_clock,
        warning_threshold: int = config.WARNING_THRESHOLD_SECONDS,
        tick_interval: float = config.TICK_INTERVAL,
        sync_max_retries: int = config.SYNC_MAX_RETRIES,
        sync_backoff_base: float = config.SYNC_BACKOFF_BASE,
        on_completed: Optional[Callable[[str], None]] = None,
    ) -> None:
        if test_id is None and not session_id:
            raise ValueError("test_id 또는 session_id가 필요합니다.")
        self._backend = backend
        self._test_id = test_id
        self._session_id = session_id
        self._clock = clock
        self.warning_threshold = warning_threshold
        self.tick_interval = tick_interval
        self._sync_max_retries = sync_max_retries
        self._sync_backoff_base = sync_backoff_base
        self._on_completed = on_completed

        self.phase = AttemptPhase.LOADING
        self.session: Optional[SessionRecord] = None
        self.test: Optional[ExamTest] = None
        self.questions: List[Question] = []
        self.answers = AnswerStore()
        self.marked: Set[int] = set()
        self.visited: Set[int] = set()
        self.current_index = 0
        self.remaining_seconds = 0
        self.deadline: Optional[Deadline] = None
        self.notices: List[Notice] = []
        self.error: Optional[str] = None
        self.warned = False

        self._channel: Optional[SyncChannel] = None
        self._countdown_task: Optional[asyncio.Task] = None
        self._countdown_enabled = False
        self._submit_in_flight = False
        self._submit_attempts = 0
        self._notice_seq = 0

    # ── 조회 ─────────────────────────────────────────────────────────────────

    @property
    def session_id(self) -> Optional[str]:
        return self.session.id if self.session else self._session_id

    @property
    def current_question(self) -> Optional[Question]:
        if not self.questions:
            return None
        return self.questions[self.current_index]

    @property
    def is_editable(self) -> bool:
        return self.phase is AttemptPhase.IN_PROGRESS

    @property
    def is_submitting(self) -> bool:
        return self._submit_in_flight

    @property
    def has_unsaved_changes(self) -> bool:
        return bool(self._channel and self._channel.has_unsaved_changes)

    @property
    def is_time_warning(self) -> bool:
        return 0 < self.remaining_seconds <= self.warning_threshold

    def status_of(self, question_id: int) -> QuestionStatus:
        return classify(question_id, self.visited, self.answers, self.marked)

    def summary(self) -> StatusSummary:
        """팔레트 범례와 제출 확인 창이 함께 쓰는 집계."""
        return summarize((q.id for q in self.questions), self.visited, self.answers, self.marked)

    def palette(self) -> List[PaletteItem]:
        return [
            PaletteItem(
                index=i,
                question_id=q.id,
                status=self.status_of(q.id),
                is_current=i == self.current_index,
            )
            for i, q in enumerate(self.questions)
        ]

    def answer_of(self, question_id: int):
        return self.answers.get(question_id)

    # ── 알림 ─────────────────────────────────────────────────────────────────

    def _notify(self, level: str, message: str, redirect: Optional[str] = None) -> Notice:
        self._notice_seq += 1
        notice = Notice(id=self._notice_seq, level=level, message=message, redirect=redirect)
        self.notices.append(notice)
        return notice

    def dismiss_notice(self, notice_id: int) -> None:
        self.notices = [n for n in self.notices if n.id != notice_id]

    def _on_save_error(self, request: SaveRequest, error: Exception) -> None:
        if isinstance(error, SessionAlreadyCompletedError):
            # 이 컨트롤러가 제출한 적이 없으면 다른 곳에서 제출된 세션
            if self.phase is AttemptPhase.IN_PROGRESS and self._submit_attempts == 0:
                self._completed_elsewhere()
            return
        if isinstance(error, TransientBackendError):
            self._notify("warning", f"문제 {request.question_id}번 답안을 저장하지 못했습니다. 다시 시도합니다.")
        else:
            self._notify("warning", f"문제 {request.question_id}번 답안이 저장되지 않았습니다: {error}")

    def _completed_elsewhere(self) -> None:
        logger.error(f"세션 {self.session_id}: 다른 곳에서 이미 제출됨")
        self._fail("이 시험은 이미 다른 곳에서 제출되었습니다.")

    # ── 불러오기 ─────────────────────────────────────────────────────────────

    async def load(self) -> AttemptPhase:
        """
        세션 + 시험 + 문제를 한 번 불러와 상태를 채운다.
        이미 마감 시각이 지났으면 카운트다운 없이 곧바로 자동 제출한다.
        """
        if self.phase is not AttemptPhase.LOADING:
            return self.phase

        try:
            boot = await self._backend.bootstrap(test_id=self._test_id, session_id=self._session_id)
        except BackendError as e:
            logger.error(f"응시 세션 불러오기 실패: {e}")
            self._fail(f"시험 세션을 불러오지 못했습니다: {e}")
            return self.phase

        if boot.session.is_completed:
            self._fail("이미 제출된 시험입니다.")
            return self.phase

        self.session = boot.session
        self.test = boot.test
        self.questions = sorted(boot.questions, key=lambda q: q.order)
        if not self.questions:
            self._fail("문제가 없는 시험입니다.")
            return self.phase

        question_ids = {q.id for q in self.questions}
        self.answers = AnswerStore({k: v for k, v in boot.session.answers.items() if k in question_ids})
        self.marked = set(boot.session.marked_for_review) & question_ids
        # 답하거나 표시한 문제는 이전 접속에서 방문한 것
        self.visited = set(self.answers) | self.marked
        self.current_index = 0
        self.visited.add(self.questions[0].id)

        self._channel = SyncChannel(
            self._save,
            clock=self._clock,
            max_retries=self._sync_max_retries,
            backoff_base=self._sync_backoff_base,
            on_error=self._on_save_error,
        )
        self._channel.start()

        self.deadline = Deadline(boot.session.start_time, boot.test.duration)
        now = self._clock.now()
        self.remaining_seconds = self.deadline.remaining_seconds(now)
        logger.info(
            f"세션 {self.session.id} 불러옴: 문제 {len(self.questions)}개, 남은 시간 {self.remaining_seconds}초"
        )

        if self.deadline.is_expired(now):
            logger.info(f"세션 {self.session.id}: 마감 시각 경과, 자동 제출")
            await self.submit(SubmitTrigger.TIMEOUT)
            return self.phase

        self.phase = AttemptPhase.IN_PROGRESS
        self._check_warning()
        return self.phase

    def _fail(self, message: str) -> None:
        self.phase = AttemptPhase.ERROR
        self.error = message
        self._stop_countdown()
        self._notify("error", message, redirect=LISTING_VIEW)

    async def _save(self, request: SaveRequest) -> None:
        await self._backend.save_answer(
            self.session.id, request.question_id, request.answer, request.marked_for_review
        )

    # ── 카운트다운 ───────────────────────────────────────────────────────────

    def start_countdown(self) -> None:
        """주기적 틱을 이벤트 루프에 건다. 진행 중 상태에서만 의미가 있다."""
        self._countdown_enabled = True
        if self.phase is not AttemptPhase.IN_PROGRESS:
            return
        if self._countdown_task is None or self._countdown_task.done():
            self._countdown_task = asyncio.get_running_loop().create_task(self._run_countdown())

    async def open(self) -> AttemptPhase:
        """load + start_countdown."""
        await self.load()
        self.start_countdown()
        return self.phase

    async def _run_countdown(self) -> None:
        while self.phase is AttemptPhase.IN_PROGRESS:
            await self._clock.sleep(self.tick_interval)
            await self.tick()

    def _stop_countdown(self) -> None:
        task = self._countdown_task
        if task is None or task.done():
            return
        if task is asyncio.current_task():
            # 틱 안에서 제출이 시작된 경우. 상태가 바뀌면 루프가 스스로 끝난다
            return
        task.cancel()
        self._countdown_task = None

    async def tick(self) -> int:
        """
        1초 틱. 남은 시간을 마감 시각에서 다시 계산하고,
        마감이면 자동 제출을 시작한다.
        """
        if self.phase is not AttemptPhase.IN_PROGRESS:
            return self.remaining_seconds

        now = self._clock.now()
        self.remaining_seconds = self.deadline.remaining_seconds(now)
        self._check_warning()
        if self.deadline.is_expired(now):
            logger.info(f"세션 {self.session.id}: 시간 종료, 자동 제출")
            self._notify("info", "시험 시간이 종료되었습니다. 자동 제출합니다.")
            await self.submit(SubmitTrigger.TIMEOUT)
        return self.remaining_seconds

    def _check_warning(self) -> None:
        if not self.warned and self.is_time_warning:
            self.warned = True
            minutes = max(1, self.remaining_seconds // 60)
            self._notify("warning", f"남은 시간이 약 {minutes}분입니다.")

    # ── 이동 ─────────────────────────────────────────────────────────────────

    def navigate(self, index: int) -> bool:
        """현재 문제를 바꾸고 방문 처리. 범위를 벗어나면 양 끝으로 보정."""
        if not self.is_editable:
            return False
        self.current_index = max(0, min(index, len(self.questions) - 1))
        self.visited.add(self.questions[self.current_index].id)
        return True

    def next_question(self) -> bool:
        return self.navigate(self.current_index + 1)

    def previous_question(self) -> bool:
        return self.navigate(self.current_index - 1)

    # ── 답안 편집 ────────────────────────────────────────────────────────────

    def _push_current(self, question_id: int) -> None:
        value = self.answers.get(question_id)
        self._channel.push(SaveRequest(
            question_id=question_id,
            answer=None if value is ABSENT else value,
            marked_for_review=question_id in self.marked,
        ))

    def set_answer(self, value) -> bool:
        """
        현재 문제의 답안을 바꾸고 저장 채널에 넣는다.

        Raises:
            InvalidAnswerError: 문제 유형과 맞지 않는 값
        """
        if not self.is_editable:
            logger.debug(f"편집 무시 (상태: {self.phase.value})")
            return False
        question = self.current_question
        normalized = normalize_answer(question, value)
        if normalized is None:
            self.answers.clear(question.id)
        else:
            self.answers.set(question.id, normalized)
        self._push_current(question.id)
        return True

    def toggle_option(self, option_index: int, selected: bool) -> bool:
        """복수 정답 문제의 보기 하나를 켜고/끈다. 선택 전체를 다시 저장."""
        if not self.is_editable:
            return False
        question = self.current_question
        if question.question_type is not QuestionType.MULTIPLE_CORRECT:
            raise InvalidAnswerError(f"문제 {question.id}: 복수 정답 문제가 아닙니다.")
        if not 0 <= option_index < len(question.options):
            raise InvalidAnswerError(f"문제 {question.id}: 보기 범위를 벗어났습니다 ({option_index}).")
        self.answers.toggle_option(question.id, option_index, selected)
        self._push_current(question.id)
        return True

    def toggle_mark(self) -> bool:
        """검토 표시를 켜고/끈다. 현재 답안을 함께 보내 둘이 어긋나지 않게 한다."""
        if not self.is_editable:
            return False
        qid = self.current_question.id
        if qid in self.marked:
            self.marked.discard(qid)
        else:
            self.marked.add(qid)
        self._push_current(qid)
        return True

    def clear_response(self) -> bool:
        """답안 키를 제거한다. 검토 표시는 그대로."""
        if not self.is_editable:
            return False
        qid = self.current_question.id
        self.answers.clear(qid)
        self._push_current(qid)
        return True

    def save_and_next(self) -> bool:
        """현재 문제를 저장 채널에 넣고 다음 문제로 이동."""
        if not self.is_editable:
            return False
        self._push_current(self.current_question.id)
        self.next_question()
        return True

    # ── 제출 ─────────────────────────────────────────────────────────────────

    async def submit(self, trigger: SubmitTrigger = SubmitTrigger.MANUAL) -> bool:
        """
        최종 제출. 시간 종료와 수동 제출이 겹쳐도 제출 요청은 한 번만 나간다.

        Returns:
            제출이 완료(completed)되었으면 True. 억제·실패 시 False.
        """
        if self._submit_in_flight:
            logger.info(f"제출 중복 억제 ({trigger.value})")
            return False
        allowed = self.phase is AttemptPhase.IN_PROGRESS or (
            self.phase is AttemptPhase.LOADING and trigger is SubmitTrigger.TIMEOUT and self.session is not None
        )
        if not allowed:
            logger.info(f"제출 무시 (상태: {self.phase.value}, {trigger.value})")
            return False

        self._submit_in_flight = True
        self.phase = AttemptPhase.SUBMITTING
        self._stop_countdown()
        try:
            return await self._submit(trigger)
        finally:
            self._submit_in_flight = False

    async def _submit(self, trigger: SubmitTrigger) -> bool:
        session_id = self.session.id

        saved = await self._channel.flush()
        if self._channel.rejected and self._submit_attempts == 0:
            self._completed_elsewhere()
            await self._channel.close()
            return False
        if not saved and not self._channel.rejected:
            unsaved = self._channel.unsaved_question_ids
            if trigger is SubmitTrigger.MANUAL:
                logger.warning(f"세션 {session_id}: 미저장 답안 {unsaved}, 제출 보류")
                self._notify("error", "저장되지 않은 답안이 있습니다. 잠시 후 다시 제출해 주세요.")
                self._resume()
                return False
            logger.warning(f"세션 {session_id}: 미저장 답안 {unsaved} 상태로 시간 종료 제출")

        self._submit_attempts += 1
        try:
            await self._backend.submit(session_id)
        except SessionAlreadyCompletedError:
            if self._submit_attempts > 1:
                # 앞서 보낸 제출이 실제로는 처리된 경우는 성공으로 확정
                logger.info(f"세션 {session_id}: 중복 제출 응답을 완료로 처리")
            else:
                self._completed_elsewhere()
                await self._channel.close()
                return False
        except BackendError as e:
            logger.error(f"세션 {session_id} 제출 실패: {e}")
            self._notify("error", f"제출에 실패했습니다. 다시 시도해 주세요. ({e})")
            self._resume()
            return False

        self.phase = AttemptPhase.COMPLETED
        await self._channel.close()
        logger.info(f"세션 {session_id} 제출 완료 ({trigger.value})")
        if self._on_completed:
            self._on_completed(session_id)
        return True

    def _resume(self) -> None:
        """제출 실패 → 진행 중 복귀. 남은 시간은 마감 시각에서 다시 계산."""
        self.phase = AttemptPhase.IN_PROGRESS
        self.remaining_seconds = self.deadline.remaining_seconds(self._clock.now())
        if self._countdown_enabled:
            self.start_countdown()

    # ── 정리 ─────────────────────────────────────────────────────────────────

    async def close(self) -> None:
        """화면을 떠날 때: 카운트다운 중지, 남은 저장은 끝까지 보낸다."""
        self._countdown_enabled = False
        task = self._countdown_task
        self._stop_countdown()
        if task is not None and task is not asyncio.current_task():
            try:
                await task
            except asyncio.CancelledError:
                pass
        if self._channel is not None:
            await self._channel.close()
