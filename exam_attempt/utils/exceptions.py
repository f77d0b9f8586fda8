"""
utils/exceptions.py

시험 응시 엔진 공용 예외.
서비스 계층이 발생시키고, API 라우터는 HTTP 상태 코드로,
HTTP 클라이언트는 상태 코드를 다시 예외로 변환한다.
"""


class ExamAttemptError(Exception):
    """Base exception for exam attempt errors."""

    pass


class BackendError(ExamAttemptError):
    """저장/제출 등 백엔드 호출 실패."""

    pass


class TransientBackendError(BackendError):
    """네트워크 오류, 타임아웃, 5xx. 재시도 대상."""

    pass


class SessionNotFoundError(BackendError):
    """세션이 없거나 호출자 소유가 아님."""

    pass


class SessionAlreadyCompletedError(BackendError):
    """이미 제출 완료된 세션에 대한 변경/제출 시도."""

    pass


class ResultNotReadyError(BackendError):
    """아직 제출되지 않은 세션의 결과 조회."""

    pass


class InvalidAnswerError(ExamAttemptError, ValueError):
    """문제 유형과 맞지 않는 답안 값."""

    pass
