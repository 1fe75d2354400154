"""
services/autosave.py

진행 중 세션의 주기적 자동 저장.

- 오프라인이면 이번 틱은 건너뛴다.
- 저장 실패는 경고 로그만 남긴다. 별도 재시도 없이 다음 틱이 곧 재시도다.
- 사본은 세션 잠금 안에서 만들고, 저장 I/O 는 잠금 밖에서 한다.
  사용자 조작(답안 선택/이동)은 자동 저장 때문에 막히거나 실패하지 않는다.
"""

import logging
from typing import Optional

from config import AUTOSAVE_INTERVAL_SECONDS
from timed_cbt.errors import PersistenceFailure
from timed_cbt.models.session_state import SessionStatus
from timed_cbt.services.notifier import ConnectivitySignal
from timed_cbt.services.persistence import SessionStore
from timed_cbt.services.session_engine import ExamSession
from timed_cbt.services.ticker import PeriodicWorker

logger = logging.getLogger(__name__)


class AutosaveCoordinator:
    def __init__(
        self,
        session: ExamSession,
        store: SessionStore,
        connectivity: Optional[ConnectivitySignal] = None,
        interval_seconds: float = AUTOSAVE_INTERVAL_SECONDS,
    ):
        self.session = session
        self.store = store
        self.connectivity = connectivity or ConnectivitySignal()
        self.saved_count = 0
        self.failed_count = 0
        self.skipped_offline = 0
        self._worker = PeriodicWorker(
            f"autosave-{session.session_id[:8]}", interval_seconds, self._step,
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
        자동 저장 1회. 세션이 더 이상 진행 중이 아니면 False (루프 종료).
        """
        if self.session.status != SessionStatus.IN_PROGRESS:
            return False

        if not self.connectivity.is_online():
            self.skipped_offline += 1
            logger.info("오프라인 상태, 자동 저장 건너뜀")
            return True

        snapshot = self.session.snapshot_if_in_progress(now)
        if snapshot is None:
            return False

        try:
            self.store.save_snapshot(snapshot.session_id, snapshot)
        except PersistenceFailure as e:
            self.failed_count += 1
            logger.warning(f"자동 저장 실패 (다음 주기에 재시도): {e}")
            return True

        self.saved_count += 1
        self.session.mark_autosaved(snapshot.taken_at)
        logger.debug(
            f"자동 저장 완료 session={snapshot.session_id} 응답 {len(snapshot.answers)}개"
        )
        return True
