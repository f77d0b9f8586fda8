"""
app.py — Streamlit 응시 화면 진입점 (streamlit run exam_attempt/app.py)
"""

import os
import sys
import uuid

# ── 패키지 경로 설정 (반드시 최상단) ──────────────────────────────────────────
_BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BASE_DIR not in sys.path:
    sys.path.insert(0, _BASE_DIR)

import streamlit as st

import config
from exam_attempt.services.exam_backend import HttpExamBackend, LocalExamBackend
from exam_attempt.views import exam_view, home_view, result_view
from exam_attempt.views.runtime import AttemptRuntime


@st.cache_resource
def _local_service():
    """인프로세스 모드에서 모든 사용자 세션이 공유하는 서비스."""
    from api.sample_questions import SAMPLE_QUESTIONS, SAMPLE_TEST
    from api.session import SessionStore
    from exam_attempt.services.exam_service import ExamService, QuestionBank

    return ExamService(QuestionBank([(SAMPLE_TEST, SAMPLE_QUESTIONS)]), SessionStore())


def _init_state() -> None:
    if "runtime" not in st.session_state:
        st.session_state.runtime = AttemptRuntime()
    if "taker_id" not in st.session_state:
        st.session_state.taker_id = uuid.uuid4().hex
    if "backend" not in st.session_state:
        if config.LOCAL_BACKEND:
            st.session_state.backend = LocalExamBackend(_local_service(), st.session_state.taker_id)
        else:
            st.session_state.backend = HttpExamBackend(config.API_BASE_URL, taker_id=st.session_state.taker_id)
    st.session_state.setdefault("page", "home")


st.set_page_config(page_title="CBT Exam", page_icon="📝", layout="wide")
_init_state()

_PAGES = {
    "home": home_view.render,
    "exam": exam_view.render,
    "result": result_view.render,
}
_PAGES.get(st.session_state.page, home_view.render)()
