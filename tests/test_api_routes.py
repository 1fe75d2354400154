import json
import threading
import time

import pytest
from fastapi.testclient import TestClient

import api.session as web_session
from api.app import create_app
from helpers import wait_for
from timed_cbt.models.score_model import CompletionType
from timed_cbt.models.session_state import SessionStatus
from timed_cbt.services.exam_runner import ExamRunner
from timed_cbt.services.notifier import EventLogNotifier
from timed_cbt.services.persistence import FileBackupStore, InMemoryStore
from timed_cbt.services.question_source import JsonQuestionSource
from timed_cbt.services.timer_service import TimerCoordinator


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def client(tmp_path, store):
    questions_dir = tmp_path / "questions"
    questions_dir.mkdir()
    (questions_dir / "mini.json").write_text(json.dumps([
        {"id": "m1", "subject": "Networks", "correct_option": "A"},
        {"id": "m2", "subject": "Networks", "correct_option": "B"},
    ]), encoding="utf-8")

    app = create_app(
        store=store,
        backup=FileBackupStore(str(tmp_path / "backup")),
        question_source=JsonQuestionSource(str(questions_dir)),
        cleanup_interval=3600,
    )
    with TestClient(app) as c:
        yield c
        c.post("/api/reset")


def test_full_exam_flow(client, store):
    res = client.post("/api/start-exam", json={})
    assert res.status_code == 200
    body = res.json()
    assert body["total"] == 6
    assert body["duration_seconds"] == 5400
    sid = body["session_id"]

    q = client.get("/api/question/0").json()
    assert q["id"] == "ds-001"
    assert "correct_option" not in q
    assert q["saved_answer"] is None

    assert client.post("/api/save-answer", json={"question_id": "ds-001", "answer": "b"}).json()["answered_count"] == 1
    client.post("/api/save-answer", json={"question_id": "ds-002", "answer": "A"})
    assert client.post("/api/mark-review", json={"question_id": "os-001"}).json()["marked"] is True
    assert client.post("/api/navigate", json={"index": 2}).json()["index"] == 2

    state = client.get("/api/exam-state").json()
    assert state["status"] == "in_progress"
    assert state["current_index"] == 2
    assert state["marked_for_review"] == ["os-001"]
    assert state["answered_count"] == 2
    assert 0 < state["remaining_seconds"] <= 5400

    assert client.get("/api/question/0").json()["saved_answer"] == "B"

    submitted = client.post("/api/submit-exam").json()
    assert submitted["ok"] is True
    assert submitted["status"] == "completed"
    assert submitted["score"] == 100
    assert submitted["percentage"] == 16.67

    results = client.get("/api/results").json()
    assert results["report"]["correct"] == 1
    assert results["report"]["incorrect"] == 1
    assert results["report"]["marked_count"] == 1
    assert [o["response_type"] for o in results["outcomes"]][:3] == ["answered", "answered", "skipped"]
    assert store.submissions[sid].completion_type.value == "manual_submit"

    assert client.get("/api/question/0").json()["correct_option"] == "B"


def test_error_codes(client):
    assert client.get("/api/exam-state").status_code == 404

    client.post("/api/start-exam", json={"test_id": "mini"})
    assert client.get("/api/question/5").status_code == 404
    assert client.post("/api/save-answer", json={"question_id": "zzz", "answer": "A"}).status_code == 404
    assert client.post("/api/save-answer", json={"question_id": "m1", "answer": "E"}).status_code == 422
    assert client.post("/api/navigate", json={"index": 7}).status_code == 422
    assert client.get("/api/results").status_code == 400

    client.post("/api/submit-exam")
    assert client.post("/api/submit-exam").status_code == 409
    assert client.post("/api/save-answer", json={"question_id": "m1", "answer": "A"}).status_code == 409


def test_unknown_or_invalid_test_id(client):
    assert client.post("/api/start-exam", json={"test_id": "nope"}).status_code == 404
    assert client.post("/api/start-exam", json={"test_id": "../x"}).status_code == 422


def test_empty_answer_clears_selection(client):
    client.post("/api/start-exam", json={"test_id": "mini"})
    client.post("/api/save-answer", json={"question_id": "m1", "answer": "A"})
    res = client.post("/api/save-answer", json={"question_id": "m1", "answer": ""})
    assert res.json()["answered_count"] == 0


def test_failed_submission_can_be_retried(client, store):
    client.post("/api/start-exam", json={"test_id": "mini"})
    client.post("/api/save-answer", json={"question_id": "m1", "answer": "A"})
    store.fail_next["save_submission"] = 1

    failed = client.post("/api/submit-exam").json()
    assert failed["ok"] is False
    assert failed["status"] == "failed"
    assert failed["can_retry"] is True
    assert client.get("/api/results").json()["backup_written"] is True

    retried = client.post("/api/submit-exam").json()
    assert retried["ok"] is True
    assert retried["score"] == failed["score"] == 100
    assert retried["can_retry"] is False


def test_time_up_auto_submits(client, store):
    sid = client.post("/api/start-exam", json={"test_id": "mini", "duration_seconds": 1}).json()["session_id"]

    assert wait_for(lambda: client.get("/api/exam-state").json()["status"] == "completed", timeout=5)

    events = client.get("/api/events").json()["events"]
    assert events[-1]["type"] == "time_up"
    assert store.submissions[sid].completion_type.value == "auto_submit"
    assert client.get("/api/events").json()["events"] == []


def test_suspend_resume_and_connectivity(client):
    client.post("/api/start-exam", json={"test_id": "mini"})

    assert client.post("/api/suspend").json()["ok"] is True
    resumed = client.post("/api/resume").json()
    assert 0 < resumed["remaining_seconds"] <= 5400

    assert client.post("/api/connectivity", json={"online": False}).json()["online"] is False
    assert client.get("/api/exam-state").json()["online"] is False


def test_reset_drops_runner(client):
    client.post("/api/start-exam", json={})
    client.post("/api/reset")
    assert client.get("/api/exam-state").status_code == 404


def test_idle_cookie_session_keeps_running_exam(monkeypatch, make_session, store, clock):
    exam = make_session(duration=5400)
    runner = ExamRunner(exam, store, timer=TimerCoordinator(exam, EventLogNotifier(), tick_seconds=0.05))
    runner.begin()
    sid = web_session.create_session()
    web_session.put(sid, "runner", runner)
    monkeypatch.setattr(web_session, "SESSION_TTL", -1)

    web_session.cleanup_expired()
    assert web_session.get_session(sid) is not None
    assert runner.timer.is_running

    clock.advance(5410)
    assert wait_for(lambda: exam.status == SessionStatus.COMPLETED)
    assert store.submissions[exam.session_id].completion_type == CompletionType.AUTO

    # 시험이 끝나면 TTL 이 다시 적용된다
    web_session.cleanup_expired()
    assert web_session.get_session(sid) is None
    assert not runner.autosave.is_running


class SlowSubmitStore(InMemoryStore):
    def __init__(self):
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def save_submission(self, session_id, record):
        self.entered.set()
        self.release.wait(5)
        super().save_submission(session_id, record)


def test_slow_submit_does_not_block_other_requests(tmp_path):
    slow = SlowSubmitStore()
    app = create_app(
        store=slow,
        backup=FileBackupStore(str(tmp_path / "backup")),
        question_source=JsonQuestionSource(str(tmp_path)),
        cleanup_interval=3600,
    )
    with TestClient(app) as c:
        c.post("/api/start-exam", json={})
        submitter = threading.Thread(target=c.post, args=("/api/submit-exam",))
        submitter.start()
        try:
            assert slow.entered.wait(5)
            started_at = time.monotonic()
            state = c.get("/api/exam-state").json()
            latency = time.monotonic() - started_at
        finally:
            slow.release.set()
            submitter.join(5)

        assert latency < 1.0
        assert state["status"] == "submitting"
        assert c.get("/api/results").json()["status"] == "completed"
        c.post("/api/reset")
