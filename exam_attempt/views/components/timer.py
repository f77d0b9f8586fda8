"""
views/components/timer.py

남은 시험 시간을 렌더링하는 컴포넌트.
남은 시간은 컨트롤러가 마감 시각에서 매 틱 다시 계산한 값을 그대로 쓴다.
"""

import streamlit as st

import config


def format_clock(seconds: int) -> str:
    """초 → HH:MM:SS."""
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def render(remaining: int, warning_threshold: int = config.WARNING_THRESHOLD_SECONDS) -> bool:
    """
    남은 시간 표시.

    Returns:
        True  — 시간이 남아 있음
        False — 시간 초과
    """
    is_warning = remaining <= warning_threshold  # 경고 구간이면 빨간색

    css_class = "timer-display timer-warning" if is_warning else "timer-display"
    icon = "⚠️ " if is_warning else "⏱ "

    st.markdown(
        f'<div class="{css_class}">{icon}{format_clock(remaining)}</div>',
        unsafe_allow_html=True,
    )

    if remaining <= 0:
        st.warning("⏰ 시험 시간이 종료되었습니다.")
        return False
    return True
