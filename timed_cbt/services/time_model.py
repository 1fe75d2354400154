"""
services/time_model.py

시험 남은 시간 계산.
남은 시간은 시작 시각(start_epoch)과 현재 시각으로부터 매번 다시 계산한다.
틱마다 줄어드는 카운터를 두지 않으므로, 탭 일시정지·새로고침 후에도 오차가 없다.
"""

from typing import Iterable, Optional, Set, Tuple

from config import WARNING_THRESHOLDS


def elapsed(start_epoch: float, duration_seconds: float, now: float) -> float:
    """
    경과 시간 (초). 0 ~ duration_seconds 범위로 제한된다.
    시계가 시작 시각보다 앞서 있으면 0으로 본다.
    """
    return min(float(duration_seconds), max(0.0, now - start_epoch))


def remaining(start_epoch: float, duration_seconds: float, now: float) -> float:
    """남은 시간 (초). 음수가 되지 않는다."""
    return max(0.0, duration_seconds - elapsed(start_epoch, duration_seconds, now))


def format_clock(seconds: float) -> str:
    """남은 시간을 'H:MM:SS' 또는 'MM:SS' 문자열로."""
    total = max(0, int(seconds))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def warning_message(threshold: int) -> str:
    if threshold <= 60:
        return "⏰ 마지막 1분입니다!"
    return f"⚠️ 시험 종료 {threshold // 60}분 전입니다."


class WarningTracker:
    """
    남은 시간 경고 기준 통과를 감지한다 (엣지 트리거).

    각 기준은 세션당 한 번만 발생한다. 이전 관측값이 기준보다 컸고
    이번 관측값이 기준 이하일 때만 '통과'로 본다. 첫 관측의 이전 값은
    전체 시험 시간이므로, 시험 시간이 기준보다 짧으면 그 기준은 울리지 않는다.
    """

    def __init__(self, duration_seconds: float, thresholds: Iterable[int] = WARNING_THRESHOLDS):
        self._thresholds: Tuple[int, ...] = tuple(sorted(set(thresholds), reverse=True))
        self._last_remaining = float(duration_seconds)
        self._fired: Set[int] = set()

    @property
    def fired(self) -> Set[int]:
        return set(self._fired)

    def observe(self, remaining_seconds: float) -> Optional[int]:
        """
        남은 시간을 관측하고, 새로 통과한 기준이 있으면 그중 가장 임박한 기준을 반환한다.

        일시정지 후 여러 기준을 한꺼번에 지나친 경우 모두 소진 처리하되
        알림은 가장 작은 기준 하나만 보낸다.
        """
        crossed = [
            t for t in self._thresholds
            if t not in self._fired and self._last_remaining > t >= remaining_seconds
        ]
        if remaining_seconds < self._last_remaining:
            self._last_remaining = remaining_seconds
        if not crossed:
            return None
        self._fired.update(crossed)
        return min(crossed)
