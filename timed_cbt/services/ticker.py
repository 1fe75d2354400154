"""
services/ticker.py

일정 간격으로 함수를 호출하는 백그라운드 스레드.
타이머/자동 저장 코디네이터가 공통으로 사용한다.
"""

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicWorker:
    """
    interval 초마다 step() 을 호출한다. step() 이 False 를 반환하면 루프를 끝낸다.

    start()/stop() 은 여러 번 호출해도 안전하다. stop() 후 start() 하면 새 스레드로 다시 돈다.
    """

    def __init__(self, name: str, interval: float, step: Callable[[], bool], run_immediately: bool = False):
        self.name = name
        self.interval = interval
        self._step = step
        self._run_immediately = run_immediately
        self._lock = threading.Lock()
        self._stop_event: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def start(self) -> None:
        with self._lock:
            if self.is_running:
                return
            stop_event = threading.Event()
            self._stop_event = stop_event
            self._thread = threading.Thread(
                target=self._loop, args=(stop_event,), name=self.name, daemon=True
            )
            self._thread.start()
        logger.debug(f"{self.name} 시작 (간격 {self.interval}초)")

    def stop(self, timeout: float = 5.0) -> None:
        with self._lock:
            stop_event, thread = self._stop_event, self._thread
            if stop_event is not None:
                stop_event.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        logger.debug(f"{self.name} 정지")

    def _loop(self, stop_event: threading.Event) -> None:
        if not self._run_immediately and stop_event.wait(self.interval):
            return
        while not stop_event.is_set():
            try:
                keep_going = self._step()
            except Exception:
                logger.exception(f"{self.name} 틱 처리 중 오류")
                keep_going = True
            if not keep_going:
                stop_event.set()
                break
            if stop_event.wait(self.interval):
                break
