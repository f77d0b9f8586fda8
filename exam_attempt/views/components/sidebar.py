"""
views/components/sidebar.py

문제 번호 팔레트 + 상태별 집계.
색상은 classify 결과 하나로만 정한다. 팔레트와 제출 확인 창의 숫자가 항상 같다.
"""

from __future__ import annotations

from typing import Callable

import streamlit as st

from exam_attempt.services.attempt_controller import PaletteItem
from exam_attempt.services.status_classifier import QuestionStatus, StatusSummary

STATUS_COLORS = {
    QuestionStatus.NOT_VISITED: "#e5e7eb",
    QuestionStatus.NOT_ANSWERED: "#fee2e2",
    QuestionStatus.ANSWERED: "#22c55e",
    QuestionStatus.MARKED: "#a855f7",
    QuestionStatus.ANSWERED_MARKED: "#3b82f6",
}

STATUS_LABELS = {
    QuestionStatus.ANSWERED: "답함",
    QuestionStatus.NOT_ANSWERED: "미답",
    QuestionStatus.MARKED: "검토 표시",
    QuestionStatus.ANSWERED_MARKED: "답함 + 검토",
    QuestionStatus.NOT_VISITED: "미방문",
}

STATUS_ICONS = {
    QuestionStatus.NOT_VISITED: "⬜",
    QuestionStatus.NOT_ANSWERED: "🟥",
    QuestionStatus.ANSWERED: "🟩",
    QuestionStatus.MARKED: "🟪",
    QuestionStatus.ANSWERED_MARKED: "🟦",
}


def summary_rows(summary: StatusSummary) -> list[tuple[QuestionStatus, int]]:
    """범례 표시 순서대로 (상태, 문항 수)."""
    return [
        (QuestionStatus.ANSWERED, summary.answered),
        (QuestionStatus.NOT_ANSWERED, summary.not_answered),
        (QuestionStatus.MARKED, summary.marked),
        (QuestionStatus.ANSWERED_MARKED, summary.answered_marked),
        (QuestionStatus.NOT_VISITED, summary.not_visited),
    ]


def render(
    palette: list[PaletteItem],
    summary: StatusSummary,
    on_select: Callable[[int], None],
    disabled: bool = False,
) -> None:
    """
    사이드바에 문제 번호 버튼 그리드와 진행 현황을 렌더링한다.
    """
    total = summary.total

    # ── 진행 현황 ──────────────────────────────────────────────────────────
    st.markdown(
        f"""
        <div style="display:flex; justify-content:space-between;
                    font-size:0.8rem; color:#6b7280; margin-bottom:4px;">
            <span>진행률</span>
            <span><b>{summary.answered_total}</b> / {total}</span>
        </div>
        """,
        unsafe_allow_html=True,
    )
    st.progress(summary.answered_total / total if total > 0 else 0)

    # ── 문제 번호 그리드 (5열) ─────────────────────────────────────────────
    cols_per_row = 5

    for row_start in range(0, len(palette), cols_per_row):
        row_items = palette[row_start : row_start + cols_per_row]
        cols = st.columns(cols_per_row)
        for col_idx, item in enumerate(row_items):
            label = f"{STATUS_ICONS[item.status]} {item.index + 1}"
            with cols[col_idx]:
                if st.button(
                    label,
                    key=f"nav_{item.index}",
                    help=STATUS_LABELS[item.status],
                    type="primary" if item.is_current else "secondary",
                    disabled=disabled,
                ):
                    on_select(item.index)
                    st.rerun()

    # ── 범례 ──────────────────────────────────────────────────────────────
    legend = "".join(
        f'<span style="display:inline-block; width:10px; height:10px; '
        f'background:{STATUS_COLORS[status]}; border-radius:2px; margin-right:5px;"></span>'
        f"{STATUS_LABELS[status]} <b>{count}</b><br>"
        for status, count in summary_rows(summary)
    )
    st.markdown(
        f'<div style="margin-top:16px; font-size:0.75rem; color:#6b7280; line-height:1.9;">{legend}</div>',
        unsafe_allow_html=True,
    )
