"""
services/persistence.py

세션 저장소와 로컬 백업.

저장소 프로토콜 (SessionStore):
  - save_snapshot(session_id, snapshot)     : 자동 저장. 마지막 쓰기가 이긴다.
  - save_submission(session_id, record)     : 최종 제출 집계 (중요 쓰기).
  - save_outcomes(session_id, outcomes)     : 문항별 결과 행 (배치 단위 호출).
각 동작은 실패 시 PersistenceFailure 를 던진다.

구현:
  - InMemoryStore   : 스레드 안전 딕셔너리. 웹 세션/테스트용.
  - JsonFileStore   : 디렉토리 아래 JSON 파일.
  - FileBackupStore : 제출 실패 시 쓰는 로컬 백업 (test_backup_<session_id>.json).
"""

import json
import logging
import os
import tempfile
import threading
from typing import Any, Dict, List, Optional, Protocol, Sequence

from pydantic import ValidationError

from timed_cbt.errors import PersistenceFailure
from timed_cbt.models.score_model import QuestionOutcome, SubmissionBackup, SubmissionRecord
from timed_cbt.models.session_state import SessionSnapshot

logger = logging.getLogger(__name__)


class SessionStore(Protocol):
    def save_snapshot(self, session_id: str, snapshot: SessionSnapshot) -> None: ...

    def save_submission(self, session_id: str, record: SubmissionRecord) -> None: ...

    def save_outcomes(self, session_id: str, outcomes: Sequence[QuestionOutcome]) -> None: ...


class BackupStore(Protocol):
    def write(self, session_id: str, backup: SubmissionBackup) -> None: ...

    def read(self, session_id: str) -> Optional[SubmissionBackup]: ...

    def delete(self, session_id: str) -> None: ...


# ── 인메모리 저장소 ──────────────────────────────────────────────────────────

class InMemoryStore:
    """
    스레드 안전 인메모리 저장소.

    fail_next 에 동작 이름을 넣으면 해당 동작의 다음 호출 1회가 실패한다
    (예: {"save_submission": 1}). 장애 복구 흐름 점검용.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.snapshots: Dict[str, SessionSnapshot] = {}
        self.submissions: Dict[str, SubmissionRecord] = {}
        self.outcomes: Dict[str, List[QuestionOutcome]] = {}
        self.fail_next: Dict[str, int] = {}
        self.write_count = 0

    def _maybe_fail(self, operation: str, session_id: str) -> None:
        remaining = self.fail_next.get(operation, 0)
        if remaining > 0:
            self.fail_next[operation] = remaining - 1
            raise PersistenceFailure(operation, session_id, "injected failure")

    def save_snapshot(self, session_id: str, snapshot: SessionSnapshot) -> None:
        with self._lock:
            self._maybe_fail("save_snapshot", session_id)
            self.snapshots[session_id] = snapshot
            self.write_count += 1

    def save_submission(self, session_id: str, record: SubmissionRecord) -> None:
        with self._lock:
            self._maybe_fail("save_submission", session_id)
            self.submissions[session_id] = record
            self.write_count += 1

    def save_outcomes(self, session_id: str, outcomes: Sequence[QuestionOutcome]) -> None:
        with self._lock:
            self._maybe_fail("save_outcomes", session_id)
            self.outcomes.setdefault(session_id, []).extend(outcomes)
            self.write_count += 1


# ── 파일 저장소 ──────────────────────────────────────────────────────────────

def _atomic_write_json(path: str, payload: Any) -> None:
    """임시 파일에 쓴 뒤 os.replace 로 교체한다. 중간에 죽어도 반쯤 쓰인 파일이 남지 않는다."""
    directory = os.path.dirname(path)
    os.makedirs(directory, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


class JsonFileStore:
    """
    디렉토리 기반 저장소.

      <root>/snapshots/<session_id>.json
      <root>/submissions/<session_id>.json
      <root>/outcomes/<session_id>.jsonl   (배치마다 이어 쓰기)
    """

    def __init__(self, root_dir: str):
        self.root_dir = root_dir

    def _path(self, kind: str, session_id: str, ext: str = "json") -> str:
        return os.path.join(self.root_dir, kind, f"{session_id}.{ext}")

    def save_snapshot(self, session_id: str, snapshot: SessionSnapshot) -> None:
        try:
            _atomic_write_json(self._path("snapshots", session_id), snapshot.model_dump(mode="json"))
        except OSError as e:
            raise PersistenceFailure("save_snapshot", session_id, str(e)) from e

    def save_submission(self, session_id: str, record: SubmissionRecord) -> None:
        try:
            _atomic_write_json(self._path("submissions", session_id), record.model_dump(mode="json"))
        except OSError as e:
            raise PersistenceFailure("save_submission", session_id, str(e)) from e

    def save_outcomes(self, session_id: str, outcomes: Sequence[QuestionOutcome]) -> None:
        path = self._path("outcomes", session_id, ext="jsonl")
        lines = "".join(
            json.dumps(o.model_dump(mode="json"), ensure_ascii=False) + "\n" for o in outcomes
        )
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, "a", encoding="utf-8") as f:
                f.write(lines)
        except OSError as e:
            raise PersistenceFailure("save_outcomes", session_id, str(e)) from e

    def load_snapshot(self, session_id: str) -> Optional[SessionSnapshot]:
        """자동 저장된 사본 읽기. 없으면 None."""
        path = self._path("snapshots", session_id)
        if not os.path.exists(path):
            return None
        with open(path, encoding="utf-8") as f:
            return SessionSnapshot.model_validate(json.load(f))


# ── 로컬 백업 ────────────────────────────────────────────────────────────────

class FileBackupStore:
    """
    제출 실패 시 사용하는 로컬 내구성 백업.

    세션당 파일 하나. 실패할 때마다 덮어쓰며, 제출 성공 시 삭제된다.
    읽기는 별도 복구 흐름에서 한다.
    """

    def __init__(self, backup_dir: str):
        self.backup_dir = backup_dir

    def path_for(self, session_id: str) -> str:
        return os.path.join(self.backup_dir, f"test_backup_{session_id}.json")

    def write(self, session_id: str, backup: SubmissionBackup) -> None:
        try:
            _atomic_write_json(self.path_for(session_id), backup.model_dump(mode="json"))
        except OSError as e:
            raise PersistenceFailure("write_backup", session_id, str(e)) from e
        logger.info(f"로컬 백업 저장: {self.path_for(session_id)}")

    def read(self, session_id: str) -> Optional[SubmissionBackup]:
        path = self.path_for(session_id)
        if not os.path.exists(path):
            return None
        try:
            with open(path, encoding="utf-8") as f:
                return SubmissionBackup.model_validate(json.load(f))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.error(f"백업 파일 손상 ({path}): {e}")
            return None

    def delete(self, session_id: str) -> None:
        path = self.path_for(session_id)
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"백업 파일 삭제 실패 ({path}): {e}")
