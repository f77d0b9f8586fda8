"""
views/result_view.py — 시험 결과 화면

제출 완료된 세션 ID로 결과를 받아 요약과 문항별 채점을 보여 준다.
채점은 서버 몫이며 여기서는 표시만 한다.
"""

from __future__ import annotations

import streamlit as st

from exam_attempt.models.result_model import Outcome
from exam_attempt.utils.exceptions import BackendError
from exam_attempt.views.runtime import AttemptRuntime

_OUTCOME_LABELS = {
    Outcome.CORRECT: "✅ 정답",
    Outcome.INCORRECT: "❌ 오답",
    Outcome.UNANSWERED: "➖ 미응답",
}


def _go_home() -> None:
    st.session_state.pop("result_session_id", None)
    st.session_state.page = "home"
    st.rerun()


def render() -> None:
    """결과 화면 렌더링."""

    # ── 세션 가드 ──────────────────────────────────────────────────────────
    session_id = st.session_state.get("result_session_id")
    if not session_id:
        st.warning("결과 정보가 없습니다.")
        if st.button("홈으로", type="primary"):
            _go_home()
        return

    runtime: AttemptRuntime = st.session_state.runtime
    try:
        result = runtime.run(st.session_state.backend.get_result(session_id))
    except BackendError as e:
        st.error(f"결과를 불러오지 못했습니다: {e}")
        if st.button("홈으로", type="primary"):
            _go_home()
        return

    summary = result.summary

    # ── 점수 ───────────────────────────────────────────────────────────────
    badge = "🎉 합격" if summary.passed else "불합격"
    st.markdown(f"## {summary.score:g} / {summary.total_marks:g}점  ·  {badge}")
    st.caption(f"득점률 {summary.percentage:g}%")

    col1, col2, col3 = st.columns(3)
    col1.metric("정답", summary.correct_count)
    col2.metric("오답", summary.incorrect_count)
    col3.metric("미응답", summary.unanswered_count)

    # ── 문항별 결과 ────────────────────────────────────────────────────────
    st.divider()
    for i, item in enumerate(result.questions, start=1):
        st.markdown(
            f"**{i}.** {_OUTCOME_LABELS[item.outcome]} ({item.marks_awarded:+g}점) — "
            f"내 답: `{item.user_answer}` / 정답: `{item.correct_answer}`"
        )

    st.divider()
    if st.button("시험 목록으로", type="primary"):
        _go_home()
