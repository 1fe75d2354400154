"""
services/notifier.py

남은 시간 경고/종료 알림 수신자와 네트워크 연결 상태 신호.
"""

import logging
import threading
import time
from typing import Any, Dict, List, Protocol

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def warn(self, remaining_seconds: float, message: str) -> None: ...

    def time_up(self) -> None: ...


class EventLogNotifier:
    """
    알림을 로그로 남기고 이벤트 목록에 쌓아 둔다.
    웹 계층은 drain() 으로 꺼내 클라이언트에 전달한다.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._events: List[Dict[str, Any]] = []

    def warn(self, remaining_seconds: float, message: str) -> None:
        logger.info(f"시간 경고: {message} (남은 {int(remaining_seconds)}초)")
        self._push({"type": "warning", "remaining_seconds": remaining_seconds, "message": message})

    def time_up(self) -> None:
        logger.info("시험 시간 종료")
        self._push({"type": "time_up", "remaining_seconds": 0, "message": "⏰ 시험 시간이 종료되었습니다."})

    def _push(self, event: Dict[str, Any]) -> None:
        event["at"] = time.time()
        with self._lock:
            self._events.append(event)

    def events(self) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._events)

    def drain(self) -> List[Dict[str, Any]]:
        with self._lock:
            events, self._events = self._events, []
            return events


class ConnectivitySignal:
    """온라인 여부 플래그. 자동 저장은 매 시도 전에 확인한다."""

    def __init__(self, online: bool = True):
        self._online = threading.Event()
        if online:
            self._online.set()

    def is_online(self) -> bool:
        return self._online.is_set()

    def set_online(self, online: bool) -> None:
        if online == self.is_online():
            return
        if online:
            self._online.set()
        else:
            self._online.clear()
        logger.info(f"네트워크 상태 변경: {'온라인' if online else '오프라인'}")
