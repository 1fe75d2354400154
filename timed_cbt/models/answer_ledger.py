"""
models/answer_ledger.py

문제별 답안 기록(AnswerRecord)과 이를 보관하는 답안 원장(AnswerLedger).

원장 규칙:
  - 문제 하나당 기록은 최대 1개. 같은 문제에 다시 쓰면 기존 기록을 교체한다.
  - 정답/오답 카운터는 교체 시 이전 기록을 빼고 새 기록을 더하는 방식(delta)으로 갱신.
    같은 문제를 여러 번 답해도 중복 집계되지 않는다.
"""

from typing import Dict, Iterable, Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field

from timed_cbt.models.question_model import OptionKey


class AnswerRecord(BaseModel):
    """
    문제 하나에 대한 사용자 답안.

    Attributes:
        question_id:        대상 문제 ID.
        selected_option:    선택한 보기 키. None이면 미응답.
        is_correct:         selected_option == 정답 여부 (쓰기 시마다 재계산).
        time_spent_seconds: 해당 방문에서 답을 고르기까지 걸린 시간.
        answered_at:        기록 시각 (Unix timestamp).
    """
    model_config = ConfigDict(frozen=True)

    question_id: str
    selected_option: Optional[OptionKey] = None
    is_correct: bool = False
    time_spent_seconds: float = Field(default=0.0, ge=0)
    answered_at: float = 0.0

    @property
    def is_attempted(self) -> bool:
        return self.selected_option is not None


class AnswerLedger:
    """문제 ID → AnswerRecord 매핑과 정답/오답 누계."""

    def __init__(self, records: Iterable[AnswerRecord] = ()):
        self._records: Dict[str, AnswerRecord] = {}
        self.correct_count = 0
        self.incorrect_count = 0
        for record in records:
            self.record(record)

    def record(self, new: AnswerRecord) -> Optional[AnswerRecord]:
        """
        답안을 기록한다. 기존 기록이 있으면 교체하고 이전 기록을 반환한다.
        """
        previous = self._records.get(new.question_id)
        if previous is not None:
            self._retract(previous)
        self._records[new.question_id] = new
        self._apply(new)
        return previous

    def clear(self, question_id: str) -> Optional[AnswerRecord]:
        """답안을 지운다. 지운 기록(없으면 None)을 반환한다."""
        previous = self._records.pop(question_id, None)
        if previous is not None:
            self._retract(previous)
        return previous

    def _apply(self, record: AnswerRecord) -> None:
        if not record.is_attempted:
            return
        if record.is_correct:
            self.correct_count += 1
        else:
            self.incorrect_count += 1

    def _retract(self, record: AnswerRecord) -> None:
        if not record.is_attempted:
            return
        if record.is_correct:
            self.correct_count -= 1
        else:
            self.incorrect_count -= 1

    @property
    def attempted_count(self) -> int:
        return self.correct_count + self.incorrect_count

    def get(self, question_id: str) -> Optional[AnswerRecord]:
        return self._records.get(question_id)

    def records(self) -> Dict[str, AnswerRecord]:
        """기록 사본. 기록 자체는 불변이므로 얕은 복사로 충분하다."""
        return dict(self._records)

    def __contains__(self, question_id: object) -> bool:
        return question_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[AnswerRecord]:
        return iter(self._records.values())
