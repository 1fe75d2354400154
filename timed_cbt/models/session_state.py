"""
models/session_state.py

시험 세션 상태 관련 모델.
Pydantic BaseModel 기반. 직렬화/역직렬화 및 타입 안전성 확보.
상태 변경 로직은 services/session_engine.py 에만 존재한다.
"""

import enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from timed_cbt.models.answer_ledger import AnswerRecord
from timed_cbt.models.question_model import Question


class SessionStatus(str, enum.Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SUBMITTING = "submitting"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.FAILED)


class NavigationEvent(BaseModel):
    """문제 이동 기록 (분석 전용, 채점에 사용하지 않음)."""
    model_config = ConfigDict(frozen=True)

    from_index: int = Field(..., ge=0)
    to_index: int = Field(..., ge=0)
    at: float


class SessionSnapshot(BaseModel):
    """
    세션의 특정 시점 불변 사본.

    잠금 안에서 만들어지고, 잠금 밖에서 자동 저장/제출 I/O에 사용된다.
    문제 세트를 함께 담고 있어 이 사본만으로 세션을 복원할 수 있다.

    Attributes:
        session_id:          세션 ID.
        status:              사본 생성 시점의 세션 상태.
        questions:           문제 목록 (순서 고정).
        duration_seconds:    시험 제한 시간 (초).
        start_epoch:         시험 시작 시각. 시작 전이면 None.
        current_index:       현재 문제 인덱스 (0-based).
        answers:             문제 ID → 답안 기록.
        marked_for_review:   검토 표시한 문제 ID (표시한 순서).
        navigation_history:  최근 이동 기록.
        last_autosave_epoch: 마지막 자동 저장 성공 시각.
        taken_at:            사본 생성 시각.
        elapsed_seconds:     사본 생성 시점의 경과 시간.
    """
    model_config = ConfigDict(frozen=True)

    session_id: str
    status: SessionStatus
    questions: List[Question]
    duration_seconds: int = Field(..., ge=0)
    start_epoch: Optional[float] = None
    current_index: int = Field(default=0, ge=0)
    answers: Dict[str, AnswerRecord] = Field(default_factory=dict)
    marked_for_review: List[str] = Field(default_factory=list)
    navigation_history: List[NavigationEvent] = Field(default_factory=list)
    last_autosave_epoch: Optional[float] = None
    taken_at: float
    elapsed_seconds: float = Field(default=0.0, ge=0)

    @model_validator(mode="after")
    def validate_references(self) -> "SessionSnapshot":
        """손상된 사본을 조기에 걸러낸다."""
        if self.questions and self.current_index >= len(self.questions):
            raise ValueError(f"current_index({self.current_index})가 문제 수를 벗어났습니다.")
        known = {q.id for q in self.questions}
        unknown = [qid for qid in self.answers if qid not in known]
        if unknown:
            raise ValueError(f"문제 세트에 없는 답안이 포함되어 있습니다: {unknown}")
        unknown_marks = [qid for qid in self.marked_for_review if qid not in known]
        if unknown_marks:
            raise ValueError(f"문제 세트에 없는 검토 표시가 포함되어 있습니다: {unknown_marks}")
        if self.status != SessionStatus.NOT_STARTED and self.start_epoch is None:
            # 시작 시각이 없으면 마감 시각도 없다
            raise ValueError(f"'{self.status.value}' 상태의 사본에는 start_epoch 가 필요합니다.")
        return self
