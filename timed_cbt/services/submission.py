"""
services/submission.py

최종 제출 파이프라인.

순서:
  1. 문항별 결과 목록 생성 (미응답 포함, 문제 수만큼)
  2. 제출 집계 레코드 저장 (중요 쓰기). 실패하면 로컬 백업 후 FAILED 반환
  3. 문항별 결과를 배치 단위로 저장. 배치 실패는 기록만 하고 계속 진행
  4. 성공 시 이전 실패로 남은 로컬 백업 삭제

설계 원칙:
- 사용자의 답안이 조용히 사라지는 경로가 없어야 한다.
- 모든 I/O 는 세션 잠금 밖에서 수행된다 (호출자는 불변 사본만 넘긴다).
"""

import logging
import math
import time
from typing import Callable, List, Sequence

from config import OUTCOME_BATCH_SIZE
from timed_cbt.errors import PersistenceFailure
from timed_cbt.models.score_model import (
    CompletionType,
    QuestionOutcome,
    ScoreReport,
    SubmissionBackup,
    SubmissionRecord,
    SubmissionResult,
    SubmissionStatus,
)
from timed_cbt.models.session_state import SessionSnapshot
from timed_cbt.services.persistence import BackupStore, SessionStore
from timed_cbt.services.scoring_service import performance_message

logger = logging.getLogger(__name__)

FAILURE_MESSAGE = "제출에 실패했습니다. 답안은 안전하게 보관되어 있으니 다시 시도하거나 고객센터에 문의해 주세요."


def build_outcomes(snapshot: SessionSnapshot) -> List[QuestionOutcome]:
    """문제마다 결과 행 하나. 답하지 않은 문제는 is_attempted=False 로 포함된다."""
    marked = set(snapshot.marked_for_review)
    outcomes = []
    for q in snapshot.questions:
        record = snapshot.answers.get(q.id)
        attempted = record is not None and record.is_attempted
        outcomes.append(QuestionOutcome(
            question_id=q.id,
            question_order=q.order,
            user_answer=record.selected_option.value if attempted else None,
            correct_answer=q.correct_option.value,
            is_correct=attempted and record.is_correct,
            is_attempted=attempted,
            time_taken=record.time_spent_seconds if record is not None else 0.0,
            marked_for_review=q.id in marked,
            subject=q.subject,
            topic=q.topic,
            difficulty=q.difficulty,
        ))
    return outcomes


def _chunks(items: Sequence[QuestionOutcome], size: int) -> List[Sequence[QuestionOutcome]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


class SubmissionPipeline:
    """
    Args:
        store:      제출 레코드/문항 결과를 받는 저장소.
        backup:     중요 쓰기 실패 시 사용하는 로컬 백업.
        batch_size: 문항 결과 저장 배치 크기.
        clock:      현재 시각 함수 (테스트 주입용).
    """

    def __init__(
        self,
        store: SessionStore,
        backup: BackupStore,
        batch_size: int = OUTCOME_BATCH_SIZE,
        clock: Callable[[], float] = time.time,
    ):
        if batch_size < 1:
            raise ValueError("batch_size 는 1 이상이어야 합니다.")
        self.store = store
        self.backup = backup
        self.batch_size = batch_size
        self.clock = clock

    def run(
        self,
        snapshot: SessionSnapshot,
        report: ScoreReport,
        completion_type: CompletionType,
    ) -> SubmissionResult:
        session_id = snapshot.session_id
        outcomes = build_outcomes(snapshot)

        record = SubmissionRecord(
            session_id=session_id,
            completion_type=completion_type,
            submitted_at=self.clock(),
            duration_taken_minutes=max(1, math.ceil(snapshot.elapsed_seconds / 60)),
            report=report,
        )

        try:
            self.store.save_submission(session_id, record)
        except PersistenceFailure as e:
            logger.error(f"제출 레코드 저장 실패, 로컬 백업으로 전환: {e}")
            return self._fail(snapshot, report, completion_type, e)
        except Exception as e:
            logger.exception(f"제출 레코드 저장 중 예기치 못한 오류, 로컬 백업으로 전환: {e}")
            return self._fail(snapshot, report, completion_type, e)

        failed_batches: List[int] = []
        saved = 0
        for idx, batch in enumerate(_chunks(outcomes, self.batch_size), start=1):
            try:
                self.store.save_outcomes(session_id, batch)
                saved += len(batch)
            except PersistenceFailure as e:
                logger.error(f"문항 결과 배치 {idx} 저장 실패: {e}")
                failed_batches.append(idx)

        self.backup.delete(session_id)
        logger.info(
            f"제출 완료 session={session_id} ({completion_type.value}) "
            f"score={report.score} 문항 결과 {saved}/{len(outcomes)} 저장"
        )
        return SubmissionResult(
            session_id=session_id,
            status=SubmissionStatus.COMPLETED,
            completion_type=completion_type,
            report=report,
            outcomes_saved=saved,
            failed_batches=failed_batches,
            message=performance_message(report),
        )

    def _fail(
        self,
        snapshot: SessionSnapshot,
        report: ScoreReport,
        completion_type: CompletionType,
        error: Exception,
    ) -> SubmissionResult:
        backup = SubmissionBackup(
            session_id=snapshot.session_id,
            completion_type=completion_type,
            written_at=self.clock(),
            error=str(error),
            snapshot=snapshot,
            report=report,
        )
        backup_written = True
        try:
            self.backup.write(snapshot.session_id, backup)
        except PersistenceFailure as backup_error:
            backup_written = False
            logger.critical(f"로컬 백업까지 실패했습니다 session={snapshot.session_id}: {backup_error}")

        return SubmissionResult(
            session_id=snapshot.session_id,
            status=SubmissionStatus.FAILED,
            completion_type=completion_type,
            report=report,
            backup_written=backup_written,
            error=str(error),
            message=FAILURE_MESSAGE,
        )
