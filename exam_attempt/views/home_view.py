"""
views/home_view.py — 시험 목록 화면

시험을 고르면 응시 세션을 시작(또는 진행 중 세션을 이어서)하고
컨트롤러를 만들어 시험 화면으로 이동한다.
"""

from __future__ import annotations

import logging

import streamlit as st

from exam_attempt.services.attempt_controller import SessionController
from exam_attempt.utils.exceptions import BackendError
from exam_attempt.views.runtime import AttemptRuntime

logger = logging.getLogger(__name__)


def _start(test_id: int) -> None:
    runtime: AttemptRuntime = st.session_state.runtime
    backend = st.session_state.backend
    try:
        record = runtime.run(backend.start_exam(test_id))
    except BackendError as e:
        st.error(f"시험을 시작하지 못했습니다: {e}")
        return

    controller = SessionController(backend, test_id=test_id, session_id=record.id)
    try:
        runtime.run(controller.open())
    except BackendError as e:
        # 불러오기는 루프에서 계속된다. 시험 화면이 loading 상태로 기다린다
        logger.warning(f"응시 화면 불러오기 대기 중단: {e}")
    st.session_state.controller = controller
    st.session_state.page = "exam"
    st.rerun()


def render() -> None:
    """홈 화면 렌더링."""
    st.markdown("## 📝 CBT 모의고사")

    runtime: AttemptRuntime = st.session_state.runtime
    try:
        tests = runtime.run(st.session_state.backend.list_tests())
    except BackendError as e:
        st.error(f"시험 목록을 불러오지 못했습니다: {e}")
        return

    if not tests:
        st.info("응시할 수 있는 시험이 없습니다.")
        return

    for test in tests:
        with st.container(border=True):
            st.markdown(f"**{test.name}**  ·  {test.subject}")
            st.caption(f"문항 {test.num_questions}개 · 제한 시간 {test.duration}분 · 총점 {test.total_marks:g}점")
            if test.description:
                st.write(test.description)
            if st.button("응시 시작", key=f"start_{test.id}", type="primary"):
                _start(test.id)
