"""
services/session_engine.py

시험 세션 상태 머신.

상태: NOT_STARTED → IN_PROGRESS → SUBMITTING → COMPLETED | FAILED
  - 시간 만료는 별도 상태가 아니라 IN_PROGRESS → SUBMITTING 전이를 강제하는 계기다.
  - FAILED 에서는 같은 채점 결과로 제출을 한 번 더 시도할 수 있다.

동시성:
  사용자 조작, 타이머 코디네이터, 자동 저장 코디네이터가 같은 세션을 건드린다.
  세션당 잠금 하나로 답안/현재 위치/검토 표시/상태 변경과 사본 생성을 직렬화하고,
  저장소 I/O 는 항상 잠금을 놓은 뒤에 수행한다.
"""

import logging
import threading
import time
import uuid
from collections import deque
from typing import Callable, Deque, Dict, List, Optional, Sequence, Union

from config import EXAM_DURATION_SECONDS, MAX_SUBMIT_RETRIES, NAVIGATION_HISTORY_LIMIT, POINTS_PER_QUESTION
from timed_cbt.errors import (
    AlreadySubmitting,
    InvalidOption,
    InvalidTransition,
    OutOfRange,
    UnknownQuestion,
)
from timed_cbt.models.answer_ledger import AnswerLedger, AnswerRecord
from timed_cbt.models.question_model import OptionKey, Question, QuestionSet
from timed_cbt.models.score_model import CompletionType, ScoreReport, SubmissionResult, SubmissionStatus
from timed_cbt.models.session_state import NavigationEvent, SessionSnapshot, SessionStatus
from timed_cbt.services import time_model
from timed_cbt.services.scoring_service import score_snapshot
from timed_cbt.services.submission import FAILURE_MESSAGE, SubmissionPipeline

logger = logging.getLogger(__name__)


def parse_option(option: Union[str, OptionKey]) -> OptionKey:
    if isinstance(option, OptionKey):
        return option
    try:
        return OptionKey(str(option).strip().upper())
    except ValueError:
        raise InvalidOption(f"허용되지 않는 보기입니다: {option!r}") from None


class ExamSession:
    """
    한 참가자의 한 번의 시험 응시.

    Args:
        questions:           문제 세트 (최소 1문항).
        duration_seconds:    제한 시간 (초). 시작 후 변경 불가.
        pipeline:            제출 파이프라인.
        session_id:          세션 ID. 없으면 새로 발급.
        clock:               현재 시각 함수 (Unix timestamp). 테스트에서 주입.
        points_per_question: 정답 1개당 점수.
        max_submit_retries:  제출 실패 후 허용되는 재시도 횟수.
    """

    def __init__(
        self,
        questions: Union[QuestionSet, Sequence[Question]],
        duration_seconds: int = EXAM_DURATION_SECONDS,
        *,
        pipeline: SubmissionPipeline,
        session_id: Optional[str] = None,
        clock: Callable[[], float] = time.time,
        points_per_question: int = POINTS_PER_QUESTION,
        max_submit_retries: int = MAX_SUBMIT_RETRIES,
    ):
        if not isinstance(questions, QuestionSet):
            questions = QuestionSet.from_list(list(questions))
        if len(questions) == 0:
            raise ValueError("문제가 없는 시험은 만들 수 없습니다.")
        if duration_seconds < 0:
            raise ValueError("duration_seconds 는 0 이상이어야 합니다.")

        self.session_id = session_id or uuid.uuid4().hex
        self.questions = questions
        self.duration_seconds = int(duration_seconds)
        self.pipeline = pipeline
        self.clock = clock
        self.points_per_question = points_per_question

        self._lock = threading.Lock()
        self._status = SessionStatus.NOT_STARTED
        self._start_epoch: Optional[float] = None
        self._current_index = 0
        self._ledger = AnswerLedger()
        self._marked: Dict[str, None] = {}      # 표시 순서를 유지하는 집합
        self._history: Deque[NavigationEvent] = deque(maxlen=NAVIGATION_HISTORY_LIMIT)
        self._visit_started_at: Optional[float] = None
        self._last_autosave_epoch: Optional[float] = None

        # 제출 시 고정되는 값. 재시도에서 그대로 재사용한다.
        self._frozen: Optional[SessionSnapshot] = None
        self._report: Optional[ScoreReport] = None
        self._completion_type: Optional[CompletionType] = None
        self._retries_left = max_submit_retries
        self._last_result: Optional[SubmissionResult] = None

    # ── 조회 ────────────────────────────────────────────────────────────────

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def start_epoch(self) -> Optional[float]:
        return self._start_epoch

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def current_question(self) -> Question:
        return self.questions[self._current_index]

    @property
    def correct_count(self) -> int:
        return self._ledger.correct_count

    @property
    def incorrect_count(self) -> int:
        return self._ledger.incorrect_count

    @property
    def answered_count(self) -> int:
        return self._ledger.attempted_count

    @property
    def last_autosave_epoch(self) -> Optional[float]:
        return self._last_autosave_epoch

    @property
    def report(self) -> Optional[ScoreReport]:
        """제출 시 고정된 채점 결과. 제출 전이면 None."""
        return self._report

    @property
    def last_result(self) -> Optional[SubmissionResult]:
        return self._last_result

    def answer_for(self, question_id: str) -> Optional[AnswerRecord]:
        with self._lock:
            return self._ledger.get(question_id)

    def is_marked(self, question_id: str) -> bool:
        with self._lock:
            return question_id in self._marked

    def marked_for_review(self) -> List[str]:
        with self._lock:
            return list(self._marked)

    def navigation_history(self) -> List[NavigationEvent]:
        with self._lock:
            return list(self._history)

    def remaining_seconds(self, now: Optional[float] = None) -> float:
        """남은 시간. 읽기 전용이며 상태를 바꾸지 않는다. 시작 전에는 제한 시간 전체."""
        if self._start_epoch is None:
            return float(self.duration_seconds)
        return time_model.remaining(self._start_epoch, self.duration_seconds, self._now(now))

    def elapsed_seconds(self, now: Optional[float] = None) -> float:
        if self._start_epoch is None:
            return 0.0
        return time_model.elapsed(self._start_epoch, self.duration_seconds, self._now(now))

    def _now(self, now: Optional[float]) -> float:
        return self.clock() if now is None else now

    # ── 상태 전이 ───────────────────────────────────────────────────────────

    def _require(self, operation: str, *allowed: SessionStatus) -> None:
        if self._status not in allowed:
            raise InvalidTransition(operation, self._status.value)

    def start(self) -> None:
        with self._lock:
            self._require("start", SessionStatus.NOT_STARTED)
            now = self.clock()
            self._start_epoch = now
            self._visit_started_at = now
            self._status = SessionStatus.IN_PROGRESS
        logger.info(
            f"시험 시작 session={self.session_id} "
            f"({len(self.questions)}문항, {self.duration_seconds}초)"
        )

    def select_answer(
        self,
        question_id: str,
        option: Union[str, OptionKey, None],
        elapsed_seconds: Optional[float] = None,
    ) -> Optional[AnswerRecord]:
        """
        답안을 기록하거나(option 지정) 지운다(option=None).

        같은 문제에 대한 이전 답안은 교체되며 정답/오답 누계도 함께 조정된다.
        elapsed_seconds 를 생략하면 현재 문제의 이번 방문 경과 시간을 쓴다.

        Returns:
            새로 기록된 AnswerRecord. 지운 경우 None.
        """
        question = self.questions.get(question_id)
        with self._lock:
            self._require("select_answer", SessionStatus.IN_PROGRESS)
            if question is None:
                raise UnknownQuestion(question_id)

            if option is None:
                self._ledger.clear(question_id)
                logger.debug(f"답안 삭제 q={question_id}")
                return None

            key = parse_option(option)
            now = self.clock()
            if elapsed_seconds is None:
                elapsed_seconds = self._visit_elapsed(question, now)
            elif elapsed_seconds < 0:
                raise OutOfRange(f"elapsed_seconds 는 음수일 수 없습니다: {elapsed_seconds}")

            record = AnswerRecord(
                question_id=question_id,
                selected_option=key,
                is_correct=key == question.correct_option,
                time_spent_seconds=elapsed_seconds,
                answered_at=now,
            )
            self._ledger.record(record)
        logger.debug(f"답안 기록 q={question_id} option={key.value}")
        return record

    def _visit_elapsed(self, question: Question, now: float) -> float:
        if question.order != self._current_index or self._visit_started_at is None:
            return 0.0
        return max(0.0, now - self._visit_started_at)

    def navigate(self, target_index: int) -> None:
        """
        target_index 문제로 이동한다. 범위를 벗어나면 보정하지 않고 OutOfRange.
        """
        with self._lock:
            self._require("navigate", SessionStatus.IN_PROGRESS)
            if (
                isinstance(target_index, bool)
                or not isinstance(target_index, int)
                or not 0 <= target_index < len(self.questions)
            ):
                raise OutOfRange(
                    f"문제 인덱스 {target_index} 는 0 ~ {len(self.questions) - 1} 범위를 벗어났습니다."
                )
            now = self.clock()
            self._history.append(NavigationEvent(
                from_index=self._current_index, to_index=target_index, at=now,
            ))
            self._current_index = target_index
            self._visit_started_at = now

    def next_question(self) -> None:
        self.navigate(self._current_index + 1)

    def previous_question(self) -> None:
        self.navigate(self._current_index - 1)

    def toggle_mark_for_review(self, question_id: str) -> bool:
        """검토 표시를 뒤집고 새 표시 여부를 반환한다."""
        with self._lock:
            self._require("toggle_mark_for_review", SessionStatus.IN_PROGRESS)
            if self.questions.get(question_id) is None:
                raise UnknownQuestion(question_id)
            if question_id in self._marked:
                del self._marked[question_id]
                return False
            self._marked[question_id] = None
            return True

    # ── 사본 ────────────────────────────────────────────────────────────────

    def snapshot(self, now: Optional[float] = None) -> SessionSnapshot:
        with self._lock:
            return self._snapshot_locked(self._now(now))

    def snapshot_if_in_progress(self, now: Optional[float] = None) -> Optional[SessionSnapshot]:
        """진행 중일 때만 사본을 만든다. 상태 확인과 사본 생성이 한 잠금 안에서 일어난다."""
        with self._lock:
            if self._status != SessionStatus.IN_PROGRESS:
                return None
            return self._snapshot_locked(self._now(now))

    def _snapshot_locked(self, now: float) -> SessionSnapshot:
        return SessionSnapshot(
            session_id=self.session_id,
            status=self._status,
            questions=list(self.questions),
            duration_seconds=self.duration_seconds,
            start_epoch=self._start_epoch,
            current_index=self._current_index,
            answers=self._ledger.records(),
            marked_for_review=list(self._marked),
            navigation_history=list(self._history),
            last_autosave_epoch=self._last_autosave_epoch,
            taken_at=now,
            elapsed_seconds=self.elapsed_seconds(now),
        )

    def mark_autosaved(self, at: float) -> None:
        with self._lock:
            if self._last_autosave_epoch is None or at > self._last_autosave_epoch:
                self._last_autosave_epoch = at

    @classmethod
    def from_snapshot(
        cls,
        snapshot: SessionSnapshot,
        *,
        pipeline: SubmissionPipeline,
        clock: Callable[[], float] = time.time,
        points_per_question: int = POINTS_PER_QUESTION,
        max_submit_retries: int = MAX_SUBMIT_RETRIES,
    ) -> "ExamSession":
        """
        자동 저장 사본으로 세션을 복원한다 (새로고침/재접속).
        시작 시각을 그대로 가져오므로 남은 시간은 끊긴 시간만큼 줄어 있다.
        """
        if snapshot.status not in (SessionStatus.NOT_STARTED, SessionStatus.IN_PROGRESS):
            raise ValueError(f"'{snapshot.status.value}' 상태의 사본은 복원할 수 없습니다.")

        session = cls(
            snapshot.questions,
            snapshot.duration_seconds,
            pipeline=pipeline,
            session_id=snapshot.session_id,
            clock=clock,
            points_per_question=points_per_question,
            max_submit_retries=max_submit_retries,
        )
        session._status = snapshot.status
        session._start_epoch = snapshot.start_epoch
        session._current_index = snapshot.current_index
        session._ledger = AnswerLedger(snapshot.answers.values())
        session._marked = dict.fromkeys(snapshot.marked_for_review)
        session._history.extend(snapshot.navigation_history)
        session._last_autosave_epoch = snapshot.last_autosave_epoch
        if snapshot.status == SessionStatus.IN_PROGRESS:
            session._visit_started_at = clock()
        return session

    # ── 제출 ────────────────────────────────────────────────────────────────

    def submit(self, forced: bool = False) -> SubmissionResult:
        """
        시험을 제출한다. forced=True 는 시간 만료에 의한 자동 제출.

        IN_PROGRESS → SUBMITTING 전이는 잠금 안의 비교-교환으로 한 번만 일어난다.
        동시에 들어온 나머지 호출은 AlreadySubmitting 을 받고 아무 작업도 하지 않는다.
        FAILED 상태에서는 max_submit_retries 횟수만큼 같은 사본/채점 결과로 재시도한다.

        Raises:
            AlreadySubmitting: 다른 호출이 제출을 진행 중.
            InvalidTransition: 시작 전, 완료 후, 또는 재시도 횟수 소진.
        """
        with self._lock:
            if self._status == SessionStatus.SUBMITTING:
                raise AlreadySubmitting(f"session={self.session_id} 제출이 이미 진행 중입니다.")

            if self._status == SessionStatus.IN_PROGRESS:
                self._status = SessionStatus.SUBMITTING
                self._frozen = self._snapshot_locked(self.clock())
                self._report = score_snapshot(self._frozen, self.points_per_question)
                self._completion_type = CompletionType.AUTO if forced else CompletionType.MANUAL
            elif self._status == SessionStatus.FAILED and self._retries_left > 0:
                self._retries_left -= 1
                self._status = SessionStatus.SUBMITTING
                logger.info(f"제출 재시도 session={self.session_id}")
            else:
                raise InvalidTransition("submit", self._status.value)

            frozen, report, completion_type = self._frozen, self._report, self._completion_type

        try:
            result = self.pipeline.run(frozen, report, completion_type)
        except Exception as e:
            logger.exception(f"제출 파이프라인 오류 session={self.session_id}")
            with self._lock:
                self._status = SessionStatus.FAILED
                self._last_result = SubmissionResult(
                    session_id=self.session_id,
                    status=SubmissionStatus.FAILED,
                    completion_type=completion_type,
                    report=report,
                    error=str(e),
                    message=FAILURE_MESSAGE,
                )
            raise

        with self._lock:
            self._status = SessionStatus.COMPLETED if result.ok else SessionStatus.FAILED
            self._last_result = result
        return result

    @property
    def can_retry_submit(self) -> bool:
        return self._status == SessionStatus.FAILED and self._retries_left > 0
