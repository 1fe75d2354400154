"""
처음부터 끝까지 이어지는 응시 시나리오.
"""

from helpers import make_questions
from timed_cbt.models.score_model import CompletionType, SubmissionStatus
from timed_cbt.models.session_state import SessionStatus
from timed_cbt.services.autosave import AutosaveCoordinator
from timed_cbt.services.notifier import EventLogNotifier
from timed_cbt.services.scoring_service import score_snapshot
from timed_cbt.services.session_engine import ExamSession
from timed_cbt.services.timer_service import TimerCoordinator


def test_manual_submit_half_correct(make_session, store, clock):
    session = make_session(n=10, duration=5400)
    session.start()
    for i in range(10):
        session.navigate(i)
        clock.advance(30)
        session.select_answer(f"q{i}", "A" if i < 5 else "B")

    result = session.submit()

    assert result.ok
    assert result.report.score == 500
    assert result.report.percentage == 50.0
    assert store.submissions[session.session_id].duration_taken_minutes == 5
    assert len(store.outcomes[session.session_id]) == 10


def test_time_runs_out_with_partial_answers(make_session, store, clock):
    session = make_session(n=10, duration=900)
    session.start()
    notifier = EventLogNotifier()
    timer = TimerCoordinator(session, notifier)
    session.select_answer("q0", "A")
    session.select_answer("q1", "A")
    session.select_answer("q2", "C")

    for _ in range(900):
        clock.advance(1)
        if not timer.tick():
            break

    assert [e["type"] for e in notifier.events()] == ["warning", "warning", "warning", "time_up"]
    assert session.status == SessionStatus.COMPLETED
    result = timer.auto_submit_result
    assert result.completion_type == CompletionType.AUTO
    assert (result.report.correct, result.report.incorrect, result.report.skipped) == (2, 1, 7)
    assert store.submissions[session.session_id].duration_taken_minutes == 15


def test_skipping_everything(make_session):
    session = make_session(n=6)
    session.start()
    report = session.submit().report

    assert report.attempted == 0
    assert report.skipped == 6
    assert report.percentage == 0.0


def test_storage_outage_then_retry(make_session, store, backup):
    session = make_session()
    session.start()
    session.select_answer("q0", "A")
    store.fail_next["save_submission"] = 1

    first = session.submit()
    assert first.status == SubmissionStatus.FAILED
    assert backup.read(session.session_id) is not None

    second = session.submit()
    assert second.ok
    assert second.report == first.report
    assert backup.read(session.session_id) is None
    assert store.submissions[session.session_id].report == first.report


def test_resume_from_autosave_after_reload(store, backup, clock, pipeline):
    session = ExamSession(make_questions(8), 1200, pipeline=pipeline, clock=clock)
    session.start()
    session.select_answer("q0", "A")
    session.select_answer("q1", "D")
    session.toggle_mark_for_review("q5")
    clock.advance(100)
    AutosaveCoordinator(session, store).tick()

    clock.advance(60)   # 새로고침
    restored = ExamSession.from_snapshot(store.snapshots[session.session_id], pipeline=pipeline, clock=clock)

    assert restored.remaining_seconds() == 1040
    assert restored.marked_for_review() == ["q5"]
    restored.select_answer("q2", "A")
    result = restored.submit()
    assert (result.report.correct, result.report.incorrect) == (2, 1)
    assert score_snapshot(store.snapshots[session.session_id]).correct == 1
