"""
api/session.py — 멀티유저 인메모리 세션 (쿠키 기반)

각 사용자에게 UUID 세션 ID를 발급하고, 세션별로 독립된 시험 실행기(ExamRunner)를 유지.
TTL(기본 1시간) 동안 접근이 없으면 만료되며, 만료 시 코디네이터 스레드도 정지한다.
단, 진행 중이거나 제출 중인 시험이 있는 세션은 만료시키지 않는다.
시험이 끝나야(수동/자동 제출) TTL 이 다시 적용된다.
"""

import threading
import time
import uuid
from typing import Any

from config import SESSION_TTL
from timed_cbt.models.session_state import SessionStatus
from timed_cbt.services.exam_runner import ExamRunner

_lock = threading.Lock()
_sessions: dict[str, dict[str, Any]] = {}
_timestamps: dict[str, float] = {}

_LIVE_STATUSES = (SessionStatus.IN_PROGRESS, SessionStatus.SUBMITTING)


def _new_state() -> dict[str, Any]:
    return {
        "test_id": None,
        "runner": None,
    }


def _has_live_exam(state: dict[str, Any]) -> bool:
    runner: ExamRunner | None = state.get("runner")
    return runner is not None and runner.session.status in _LIVE_STATUSES


def _is_expired(sid: str, now: float) -> bool:
    return now - _timestamps[sid] > SESSION_TTL and not _has_live_exam(_sessions[sid])


def _shutdown(state: dict[str, Any]) -> None:
    runner: ExamRunner | None = state.get("runner")
    if runner is not None:
        runner.suspend()


def create_session() -> str:
    """새 세션을 생성하고 세션 ID를 반환."""
    sid = uuid.uuid4().hex
    with _lock:
        _sessions[sid] = _new_state()
        _timestamps[sid] = time.time()
    return sid


def get_session(sid: str) -> dict[str, Any] | None:
    """세션 ID로 세션 데이터를 가져옴. 만료되었거나 없으면 None."""
    expired = None
    with _lock:
        if sid not in _sessions:
            return None
        if _is_expired(sid, time.time()):
            expired = _sessions.pop(sid)
            del _timestamps[sid]
        else:
            _timestamps[sid] = time.time()  # 접근 시 갱신
            return _sessions[sid]
    _shutdown(expired)
    return None


def get(sid: str, key: str, default=None):
    """세션에서 값 읽기."""
    session = get_session(sid)
    if session is None:
        return default
    return session.get(key, default)


def put(sid: str, key: str, value) -> None:
    """세션에 값 쓰기."""
    with _lock:
        if sid in _sessions:
            _sessions[sid][key] = value
            _timestamps[sid] = time.time()


def reset(sid: str) -> None:
    """세션 초기화. 진행 중이던 시험의 코디네이터는 정지한다."""
    with _lock:
        if sid not in _sessions:
            return
        old = _sessions[sid]
        _sessions[sid] = _new_state()
        _timestamps[sid] = time.time()
    _shutdown(old)


def cleanup_expired() -> int:
    """만료된 세션을 정리. 제거된 수 반환. 진행 중인 시험이 있는 세션은 남겨 둔다."""
    now = time.time()
    with _lock:
        expired = [sid for sid in _timestamps if _is_expired(sid, now)]
        states = [_sessions.pop(sid) for sid in expired]
        for sid in expired:
            del _timestamps[sid]
    for state in states:
        _shutdown(state)
    return len(states)
