"""
models/score_model.py

채점 결과와 제출 결과 모델.
"""

import enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from timed_cbt.models.session_state import SessionSnapshot


class CompletionType(str, enum.Enum):
    MANUAL = "manual_submit"
    AUTO = "auto_submit"


class GroupStats(BaseModel):
    """과목별/난이도별 집계 한 줄."""
    model_config = ConfigDict(frozen=True)

    name: str
    total: int = 0
    attempted: int = 0
    correct: int = 0
    incorrect: int = 0
    accuracy: float = 0.0           # 정답 / 응답 * 100
    avg_time_seconds: float = 0.0   # 응답한 문제당 평균 소요 시간


class NavigationPattern(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_navigations: int = 0
    backtrack_count: int = 0    # 이전 번호로 돌아간 횟수
    jump_count: int = 0         # 두 칸 이상 건너뛴 횟수


class ScoreReport(BaseModel):
    """
    채점 엔진 출력. 같은 입력이면 항상 같은 값이 나온다.

    subject_stats 는 정확도 내림차순 정렬(표시용).
    """
    model_config = ConfigDict(frozen=True)

    total_questions: int
    attempted: int
    correct: int
    incorrect: int
    skipped: int
    marked_count: int = 0
    score: int
    percentage: float
    attempt_percentage: float
    time_spent_seconds: float = 0.0
    avg_time_per_question: float = 0.0
    subject_stats: List[GroupStats] = Field(default_factory=list)
    difficulty_stats: List[GroupStats] = Field(default_factory=list)
    top_subject: Optional[str] = None
    navigation: NavigationPattern = Field(default_factory=NavigationPattern)


class QuestionOutcome(BaseModel):
    """제출 시 저장되는 문항별 결과 행. 미응답 문제도 포함된다."""
    model_config = ConfigDict(frozen=True)

    question_id: str
    question_order: int
    user_answer: Optional[str] = None
    correct_answer: str
    is_correct: bool = False
    is_attempted: bool = False
    time_taken: float = 0.0
    marked_for_review: bool = False
    subject: str
    topic: str
    difficulty: str

    @computed_field
    @property
    def response_type(self) -> str:
        return "answered" if self.is_attempted else "skipped"


class SubmissionRecord(BaseModel):
    """최종 제출 집계 레코드 (중요 쓰기 대상)."""
    model_config = ConfigDict(frozen=True)

    session_id: str
    completion_type: CompletionType
    submitted_at: float
    duration_taken_minutes: int = Field(..., ge=1)
    report: ScoreReport


class SubmissionBackup(BaseModel):
    """제출 실패 시 로컬 백업에 기록되는 내용."""
    session_id: str
    completion_type: CompletionType
    written_at: float
    error: str
    snapshot: SessionSnapshot
    report: ScoreReport


class SubmissionStatus(str, enum.Enum):
    COMPLETED = "completed"
    FAILED = "failed"


class SubmissionResult(BaseModel):
    """
    제출 파이프라인 결과.

    FAILED 이면 backup_written 으로 로컬 백업 여부를 알 수 있다.
    COMPLETED 라도 failed_batches 가 비어 있지 않으면 일부 문항 결과 저장이 실패한 것이다.
    """
    model_config = ConfigDict(frozen=True)

    session_id: str
    status: SubmissionStatus
    completion_type: CompletionType
    report: ScoreReport
    outcomes_saved: int = 0
    failed_batches: List[int] = Field(default_factory=list)
    backup_written: bool = False
    error: Optional[str] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status == SubmissionStatus.COMPLETED
