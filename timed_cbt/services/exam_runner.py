"""
services/exam_runner.py

세션 하나와 두 코디네이터(타이머, 자동 저장)를 묶어 실행한다.

  begin()   : 세션 시작 + 코디네이터 가동
  suspend() : 코디네이터만 정지 (세션은 메모리에 유지)
  resume()  : 코디네이터 재가동. 남은 시간은 start_epoch 에서 다시 계산된다
  submit()  : 수동 제출 후 코디네이터 정지
"""

import logging
from typing import Optional

from timed_cbt.models.score_model import SubmissionResult
from timed_cbt.models.session_state import SessionStatus
from timed_cbt.services.autosave import AutosaveCoordinator
from timed_cbt.services.notifier import ConnectivitySignal, EventLogNotifier, Notifier
from timed_cbt.services.persistence import SessionStore
from timed_cbt.services.session_engine import ExamSession
from timed_cbt.services.timer_service import TimerCoordinator

logger = logging.getLogger(__name__)


class ExamRunner:
    def __init__(
        self,
        session: ExamSession,
        store: SessionStore,
        notifier: Optional[Notifier] = None,
        connectivity: Optional[ConnectivitySignal] = None,
        timer: Optional[TimerCoordinator] = None,
        autosave: Optional[AutosaveCoordinator] = None,
    ):
        self.session = session
        self.notifier = notifier or EventLogNotifier()
        self.connectivity = connectivity or ConnectivitySignal()
        self.timer = timer or TimerCoordinator(session, self.notifier)
        self.autosave = autosave or AutosaveCoordinator(session, store, self.connectivity)

    def begin(self) -> None:
        self.session.start()
        self.resume()

    def resume(self) -> None:
        if self.session.status != SessionStatus.IN_PROGRESS:
            logger.info(f"진행 중이 아닌 세션은 재개하지 않습니다 ({self.session.status.value})")
            return
        self.timer.start()
        self.autosave.start()

    def suspend(self) -> None:
        self.timer.stop()
        self.autosave.stop()

    def submit(self) -> SubmissionResult:
        try:
            return self.session.submit(forced=False)
        finally:
            if self.session.status != SessionStatus.IN_PROGRESS:
                self.suspend()

    @property
    def result(self) -> Optional[SubmissionResult]:
        return self.session.last_result
