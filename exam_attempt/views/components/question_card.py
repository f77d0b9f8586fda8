"""
views/components/question_card.py

단일 문제(Question)를 카드 형태로 렌더링하고
사용자의 변경을 컨트롤러 콜백으로 넘기는 컴포넌트.
"""

from __future__ import annotations

from typing import Callable

import streamlit as st

from exam_attempt.models.question_model import Question, QuestionType
from exam_attempt.services.answer_store import ABSENT

TYPE_LABELS = {
    QuestionType.MCQ: "객관식",
    QuestionType.MULTIPLE_CORRECT: "복수 정답",
    QuestionType.TRUE_FALSE: "참/거짓",
    QuestionType.NUMERICAL: "숫자 입력",
}


def widget_keys(question: Question) -> list[str]:
    """이 문제의 입력 위젯 키 (응답 지우기 시 위젯 상태도 함께 비운다)."""
    if question.question_type is QuestionType.MULTIPLE_CORRECT:
        return [f"chk_{question.id}_{i}" for i in range(len(question.options))]
    if question.question_type is QuestionType.NUMERICAL:
        return [f"num_{question.id}"]
    return [f"radio_{question.id}"]


def render(
    question: Question,
    question_number: int,
    total: int,
    current_answer,
    on_answer: Callable[[object], None],
    on_toggle: Callable[[int, bool], None],
    disabled: bool = False,
) -> None:
    """
    문제 카드를 렌더링한다.

    Args:
        question:        렌더링할 Question 객체
        question_number: 전체 문제 중 몇 번째 문제인지 (1-based 표시용)
        total:           전체 문제 수
        current_answer:  컨트롤러의 현재 답안 (없으면 ABSENT)
        on_answer:       단일 값 답안 변경 콜백
        on_toggle:       복수 정답 보기 토글 콜백 (보기 인덱스, 선택 여부)
    """

    # ── 문제 헤더 ──────────────────────────────────────────────────────────
    st.markdown(
        f"""
        <div style="display:flex; align-items:center; gap:10px; margin-bottom:12px;">
            <span class="question-number-badge">문제 {question_number} / {total}</span>
            <span style="font-size:0.8rem; color:#9ca3af;">{TYPE_LABELS[question.question_type]}</span>
            <span style="font-size:0.75rem; color:#9ca3af; margin-left:auto;">
                +{question.marks:g} / -{question.negative_marks:g}
            </span>
        </div>
        """,
        unsafe_allow_html=True,
    )

    # ── 문제 본문 ──────────────────────────────────────────────────────────
    st.markdown(f'<div class="question-card"><p>{question.question_text}</p></div>',
                unsafe_allow_html=True)

    qtype = question.question_type

    # ── 단일 선택 (Radio) ─────────────────────────────────────────────────
    if qtype in (QuestionType.MCQ, QuestionType.TRUE_FALSE):
        radio_key = f"radio_{question.id}"
        saved = current_answer if isinstance(current_answer, int) else None
        # 위젯 키가 없을 때만 저장된 답으로 초기화 (재렌더 시 기존 값 유지)
        if radio_key not in st.session_state:
            st.session_state[radio_key] = saved
        selected = st.radio(
            "보기를 선택하세요",
            options=list(range(len(question.options))),
            format_func=lambda i: question.options[i],
            key=radio_key,
            label_visibility="collapsed",
            disabled=disabled,
        )
        if selected is not None and selected != saved:
            on_answer(selected)

    # ── 복수 선택 (Checkbox) ──────────────────────────────────────────────
    elif qtype is QuestionType.MULTIPLE_CORRECT:
        chosen = set(current_answer) if isinstance(current_answer, list) else set()
        for i, option in enumerate(question.options):
            checked = st.checkbox(option, value=i in chosen, key=f"chk_{question.id}_{i}",
                                  disabled=disabled)
            if checked != (i in chosen):
                on_toggle(i, checked)

    # ── 숫자 입력 ─────────────────────────────────────────────────────────
    else:
        saved = "" if current_answer is ABSENT else str(current_answer)
        value = st.text_input(
            "답을 입력하세요",
            value=saved,
            key=f"num_{question.id}",
            placeholder="숫자 입력",
            disabled=disabled,
        )
        if value.strip() != saved:
            on_answer(value)
