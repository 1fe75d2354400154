"""
services/timer_service.py

남은 시간 경고 / 시간 만료 코디네이터.

매 틱마다 start_epoch 기준으로 남은 시간을 다시 계산한다 (내부 카운터 없음).
따라서 틱이 얼마나 오래 멈췄다가 재개되든 남은 시간은 정확하다.
  - 경고 기준을 통과하면 notifier.warn()
  - 0 에 도달하면 notifier.time_up() 후 submit(forced=True), 그리고 틱 중단
"""

import logging
from typing import Iterable, Optional

from config import TIMER_TICK_SECONDS, WARNING_THRESHOLDS
from timed_cbt.errors import AlreadySubmitting, InvalidTransition
from timed_cbt.models.score_model import SubmissionResult
from timed_cbt.models.session_state import SessionStatus
from timed_cbt.services.notifier import Notifier
from timed_cbt.services.session_engine import ExamSession
from timed_cbt.services.ticker import PeriodicWorker
from timed_cbt.services.time_model import WarningTracker, warning_message

logger = logging.getLogger(__name__)


class TimerCoordinator:
    def __init__(
        self,
        session: ExamSession,
        notifier: Notifier,
        tick_seconds: float = TIMER_TICK_SECONDS,
        thresholds: Iterable[int] = WARNING_THRESHOLDS,
    ):
        self.session = session
        self.notifier = notifier
        self.tracker = WarningTracker(session.duration_seconds, thresholds)
        self.auto_submit_result: Optional[SubmissionResult] = None
        self._expired = False
        self._worker = PeriodicWorker(
            f"timer-{session.session_id[:8]}", tick_seconds, self._step, run_immediately=True,
        )

    @property
    def is_running(self) -> bool:
        return self._worker.is_running

    def start(self) -> None:
        self._worker.start()

    def stop(self) -> None:
        self._worker.stop()

    def _step(self) -> bool:
        return self.tick()

    def tick(self, now: Optional[float] = None) -> bool:
        """
        틱 1회 처리. 계속 돌아야 하면 True, 멈춰야 하면 False.
        """
        if self._expired or self.session.status != SessionStatus.IN_PROGRESS:
            return False

        remaining = self.session.remaining_seconds(now)
        threshold = self.tracker.observe(remaining)
        if threshold is not None and remaining > 0:
            self.notifier.warn(remaining, warning_message(threshold))

        if remaining > 0:
            return True

        self._expired = True
        self.notifier.time_up()
        try:
            self.auto_submit_result = self.session.submit(forced=True)
        except (AlreadySubmitting, InvalidTransition) as e:
            # 사용자가 먼저 제출한 경우
            logger.debug(f"자동 제출 생략: {e}")
        return False
