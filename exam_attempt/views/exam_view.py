"""
views/exam_view.py — 시험 풀기 화면

레이아웃:
  - st.sidebar : 타이머 + 문제 번호 팔레트 + 최종 제출
  - 메인 영역  : 알림 + 현재 문제 카드 + 이전/검토/지우기/저장 후 다음

상태 관리:
  - st.session_state.controller (SessionController): 백그라운드 이벤트 루프에서 동작
  - st.session_state.runtime    (AttemptRuntime)
  화면은 컨트롤러 상태를 읽기만 하고, 모든 변경은 runtime을 통해 컨트롤러에 넘긴다.
"""

from __future__ import annotations

import logging

import streamlit as st

import config
from exam_attempt.services.attempt_controller import AttemptPhase, SessionController, SubmitTrigger
from exam_attempt.utils.exceptions import BackendError, InvalidAnswerError
from exam_attempt.views.components import question_card as qcard
from exam_attempt.views.components import sidebar as nav
from exam_attempt.views.components import timer as tmr
from exam_attempt.views.runtime import AttemptRuntime

logger = logging.getLogger(__name__)


def _dispatch(fn, *args):
    """컨트롤러 조작을 이벤트 루프 스레드에서 실행."""
    runtime: AttemptRuntime = st.session_state.runtime
    try:
        return runtime.call(fn, *args)
    except (InvalidAnswerError, BackendError) as e:
        st.session_state["input_error"] = str(e)
        return False


def _leave_exam(page: str) -> None:
    """컨트롤러를 정리하고 다른 화면으로 이동 (남은 저장은 끝까지 보낸다)."""
    runtime: AttemptRuntime = st.session_state.runtime
    controller: SessionController | None = st.session_state.get("controller")
    if controller is not None:
        try:
            runtime.run(controller.close())
        except BackendError as e:
            # 정리는 루프에서 계속 진행된다
            logger.warning(f"응시 화면 정리 대기 중단: {e}")
        st.session_state["result_session_id"] = controller.session_id
    for key in ["controller", "confirm_submit", "input_error", "rendered_phase"]:
        st.session_state.pop(key, None)
    for k in [k for k in st.session_state if k.startswith(("radio_", "chk_", "num_"))]:
        del st.session_state[k]
    st.session_state.page = page
    st.rerun()


def _clear_response(controller: SessionController) -> None:
    question = controller.current_question
    if _dispatch(controller.clear_response):
        for k in qcard.widget_keys(question):
            st.session_state.pop(k, None)


@st.fragment(run_every=config.TICK_INTERVAL)
def _timer_panel(controller: SessionController) -> None:
    """1초마다 남은 시간을 다시 그리고, 자동 제출·제출 결과로 상태가 바뀌면 화면 전체를 갱신."""
    if controller.phase is not st.session_state.get("rendered_phase"):
        st.rerun()
    if controller.phase is AttemptPhase.LOADING:
        st.caption("불러오는 중…")
        return
    tmr.render(controller.remaining_seconds, controller.warning_threshold)
    if controller.has_unsaved_changes:
        st.caption("💾 저장 중…")


def render() -> None:
    """시험 화면 렌더링."""

    # ── 세션 가드 ──────────────────────────────────────────────────────────
    controller: SessionController | None = st.session_state.get("controller")
    if controller is None:
        st.warning("시험 정보가 없습니다. 홈 화면으로 돌아가세요.")
        if st.button("홈으로", type="primary"):
            st.session_state.page = "home"
            st.rerun()
        return

    if controller.phase is AttemptPhase.ERROR:
        st.error(controller.error or "시험을 진행할 수 없습니다.")
        if st.button("시험 목록으로", type="primary"):
            _leave_exam("home")
        return

    if controller.phase is AttemptPhase.COMPLETED:
        _leave_exam("result")
        return

    st.session_state["rendered_phase"] = controller.phase
    if controller.phase is AttemptPhase.LOADING:
        with st.sidebar:
            _timer_panel(controller)
        st.info("시험을 불러오는 중입니다…")
        return

    editable = controller.phase is AttemptPhase.IN_PROGRESS
    summary = _dispatch(controller.summary)
    if controller.phase is AttemptPhase.SUBMITTING:
        st.info("제출 중입니다…")

    # ── 사이드바 ───────────────────────────────────────────────────────────
    with st.sidebar:
        st.markdown("### 📋 문제 목록")
        _timer_panel(controller)
        st.divider()
        nav.render(
            _dispatch(controller.palette),
            summary,
            on_select=lambda index: _dispatch(controller.navigate, index),
            disabled=not editable,
        )
        st.divider()

        if st.button("최종 제출", key="submit_sidebar", type="primary", disabled=not editable):
            st.session_state["confirm_submit"] = True
            st.rerun()

        # 제출 확인: 팔레트와 같은 집계를 보여 준다
        if st.session_state.get("confirm_submit"):
            st.warning(
                f"답함 {summary.answered_total}개 · 미답 {summary.not_answered}개 · "
                f"검토 표시 {summary.marked_total}개 · 미방문 {summary.not_visited}개\n\n"
                "제출하면 답안을 수정할 수 없습니다. 제출하시겠습니까?"
            )
            col_yes, col_no = st.columns(2)
            with col_yes:
                if st.button("제출", key="confirm_yes", type="primary"):
                    st.session_state["confirm_submit"] = False
                    runtime: AttemptRuntime = st.session_state.runtime
                    # 결과는 타이머 조각이 상태 변화로 감지
                    runtime.spawn(controller.submit(SubmitTrigger.MANUAL))
                    st.rerun()
            with col_no:
                if st.button("취소", key="confirm_no"):
                    st.session_state["confirm_submit"] = False
                    st.rerun()

    # ── 알림 ──────────────────────────────────────────────────────────────
    for notice in list(controller.notices):
        box = {"error": st.error, "warning": st.warning}.get(notice.level, st.info)
        col_msg, col_close = st.columns([12, 1])
        with col_msg:
            box(notice.message)
        with col_close:
            if st.button("✕", key=f"notice_{notice.id}"):
                _dispatch(controller.dismiss_notice, notice.id)
                st.rerun()

    if st.session_state.get("input_error"):
        st.error(st.session_state.pop("input_error"))

    # ── 문제 카드 ─────────────────────────────────────────────────────────
    question = controller.current_question
    qcard.render(
        question=question,
        question_number=controller.current_index + 1,
        total=summary.total,
        current_answer=_dispatch(controller.answer_of, question.id),
        on_answer=lambda value: _dispatch(controller.set_answer, value),
        on_toggle=lambda i, on: _dispatch(controller.toggle_option, i, on),
        disabled=not editable,
    )

    # ── 이동 / 검토 / 지우기 ──────────────────────────────────────────────
    st.markdown("<br>", unsafe_allow_html=True)
    col_prev, col_mark, col_clear, col_next = st.columns(4)

    with col_prev:
        if st.button("← 이전 문제", key="prev_btn", use_container_width=True,
                     disabled=not editable or controller.current_index == 0):
            _dispatch(controller.previous_question)
            st.rerun()

    with col_mark:
        marked = question.id in controller.marked
        if st.button("검토 해제" if marked else "검토 표시", key="mark_btn",
                     use_container_width=True, disabled=not editable):
            _dispatch(controller.toggle_mark)
            st.rerun()

    with col_clear:
        if st.button("응답 지우기", key="clear_btn", use_container_width=True, disabled=not editable):
            _clear_response(controller)
            st.rerun()

    with col_next:
        if st.button("저장 후 다음 →", key="next_btn", type="primary",
                     use_container_width=True, disabled=not editable):
            _dispatch(controller.save_and_next)
            st.rerun()
