"""
errors.py

시험 세션 엔진의 예외 계층.

  - InvalidTransition  : 현재 상태에서 허용되지 않는 동작 (호출자가 올바른 동작으로 재시도)
  - UnknownQuestion    : 문제 세트에 없는 문제 ID (호출자 버그, 상태 변경 없음)
  - OutOfRange         : 범위를 벗어난 인덱스/값 (호출자 버그, 상태 변경 없음)
  - InvalidOption      : 허용되지 않은 보기 키
  - PersistenceFailure : 저장소 쓰기 실패 (일시적, 재시도 가능)
  - AlreadySubmitting  : 동시 제출 경쟁에서 진 쪽 (무해, 추가 작업 없음)
"""


class SessionError(Exception):
    """세션 엔진 예외의 기반 클래스."""


class InvalidTransition(SessionError):
    def __init__(self, operation: str, status: str):
        self.operation = operation
        self.status = status
        super().__init__(f"'{operation}' 동작은 '{status}' 상태에서 허용되지 않습니다.")


class UnknownQuestion(SessionError):
    def __init__(self, question_id: str):
        self.question_id = question_id
        super().__init__(f"문제 세트에 없는 문제 ID입니다: {question_id}")


class OutOfRange(SessionError):
    pass


class InvalidOption(SessionError):
    pass


class AlreadySubmitting(SessionError):
    pass


class PersistenceFailure(SessionError):
    """
    저장소 쓰기 실패.

    Attributes:
        operation: 실패한 저장 동작 이름 (save_snapshot, save_submission 등).
        session_id: 대상 세션 ID.
    """

    def __init__(self, operation: str, session_id: str, detail: str = ""):
        self.operation = operation
        self.session_id = session_id
        self.detail = detail
        message = f"{operation} 실패 (session={session_id})"
        if detail:
            message += f": {detail}"
        super().__init__(message)
