import os

# 기본 디렉토리 설정
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# 경로 설정
APP_DIR = os.path.join(BASE_DIR, "exam_attempt")
STREAMLIT_APP = os.path.join(APP_DIR, "app.py")
LOG_FILE = os.path.join(BASE_DIR, "launch.log")

# 서버 설정
DEFAULT_HOST = os.getenv("HOST", "127.0.0.1")
DEFAULT_PORT = int(os.getenv("PORT", "8000"))
UI_PORT = int(os.getenv("UI_PORT", "8501"))
API_BASE_URL = os.getenv("CBT_API_URL", f"http://{DEFAULT_HOST}:{DEFAULT_PORT}")
HTTP_TIMEOUT = float(os.getenv("CBT_HTTP_TIMEOUT", "10.0"))   # 저장/제출 요청 타임아웃 (초)
TAKER_COOKIE = "cbt_taker"
LOCAL_BACKEND = os.getenv("CBT_LOCAL_BACKEND", "0") == "1"   # 서버 없이 인프로세스 서비스 사용

# 시험 진행 설정
TICK_INTERVAL = 1.0                 # 카운트다운 갱신 주기 (초)
WARNING_THRESHOLD_SECONDS = 300     # 남은 시간 5분 이하이면 1회 경고

# 답안 동기화 설정
SYNC_MAX_RETRIES = int(os.getenv("CBT_SYNC_MAX_RETRIES", "3"))
SYNC_BACKOFF_BASE = float(os.getenv("CBT_SYNC_BACKOFF_BASE", "1.0"))
# UI가 백그라운드 루프 호출을 기다리는 한도: 저장 1건의 재시도 전체 + 여유 (초)
RUNTIME_TIMEOUT = HTTP_TIMEOUT * SYNC_MAX_RETRIES + SYNC_BACKOFF_BASE * (2 ** (SYNC_MAX_RETRIES - 1) - 1) + 5.0

# 세션 보관 설정
COMPLETED_SESSION_TTL = 86400       # 제출 완료 세션 보관 시간 (24시간)
CLEANUP_INTERVAL = 300              # 만료 세션 정리 주기 (5분)

# 채점 설정
PASS_PERCENTAGE = 60.0
