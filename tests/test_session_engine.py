import pytest
from pydantic import ValidationError

from config import NAVIGATION_HISTORY_LIMIT
from helpers import make_questions
from timed_cbt.errors import InvalidOption, InvalidTransition, OutOfRange, UnknownQuestion
from timed_cbt.models.question_model import OptionKey
from timed_cbt.models.session_state import SessionSnapshot, SessionStatus
from timed_cbt.services.scoring_service import score_snapshot
from timed_cbt.services.session_engine import ExamSession


def test_start_sets_epoch_once(make_session, clock):
    session = make_session()
    assert session.status == SessionStatus.NOT_STARTED
    assert session.remaining_seconds() == 600

    session.start()
    first_epoch = session.start_epoch
    clock.advance(10)

    with pytest.raises(InvalidTransition):
        session.start()
    assert session.start_epoch == first_epoch == clock.now - 10
    assert session.status == SessionStatus.IN_PROGRESS


def test_operations_before_start_are_rejected(make_session):
    session = make_session()
    with pytest.raises(InvalidTransition):
        session.select_answer("q0", "A")
    with pytest.raises(InvalidTransition):
        session.navigate(1)
    with pytest.raises(InvalidTransition):
        session.toggle_mark_for_review("q0")
    with pytest.raises(InvalidTransition):
        session.submit()


def test_select_answer_records_correctness(started):
    record = started.select_answer("q0", "a", elapsed_seconds=4)

    assert record.selected_option == OptionKey.A
    assert record.is_correct is True
    assert record.time_spent_seconds == 4
    assert started.correct_count == 1

    started.select_answer("q1", "C")
    assert started.incorrect_count == 1
    assert started.answered_count == 2


def test_changing_answer_replaces_previous(started):
    started.select_answer("q0", "B")
    started.select_answer("q0", "A")
    started.select_answer("q0", "D")

    assert started.answer_for("q0").selected_option == OptionKey.D
    assert started.correct_count == 0
    assert started.incorrect_count == 1


def test_none_clears_answer(started):
    started.select_answer("q0", "A")
    assert started.select_answer("q0", None) is None
    assert started.answer_for("q0") is None
    assert started.answered_count == 0


def test_caller_errors_do_not_mutate(started):
    with pytest.raises(UnknownQuestion):
        started.select_answer("nope", "A")
    with pytest.raises(InvalidOption):
        started.select_answer("q0", "E")
    with pytest.raises(OutOfRange):
        started.select_answer("q0", "A", elapsed_seconds=-1)
    assert started.answered_count == 0


def test_elapsed_time_is_tracked_per_visit(started, clock):
    clock.advance(12)
    assert started.select_answer("q0", "A").time_spent_seconds == 12

    started.navigate(3)
    clock.advance(5)
    assert started.select_answer("q3", "A").time_spent_seconds == 5
    # 현재 문제가 아닌 곳에 답하면 방문 시간이 없다
    assert started.select_answer("q1", "A").time_spent_seconds == 0


def test_navigate_rejects_out_of_range(started):
    started.navigate(4)
    for bad in (-1, 10, 99, True, 1.0):
        with pytest.raises(OutOfRange):
            started.navigate(bad)
    assert started.current_index == 4
    assert len(started.navigation_history()) == 1


def test_next_and_previous_do_not_clamp(started):
    with pytest.raises(OutOfRange):
        started.previous_question()
    started.next_question()
    assert started.current_index == 1
    started.navigate(9)
    with pytest.raises(OutOfRange):
        started.next_question()


def test_navigation_history_is_bounded(started):
    for i in range(NAVIGATION_HISTORY_LIMIT + 10):
        started.navigate((i + 1) % 10)

    history = started.navigation_history()
    assert len(history) == NAVIGATION_HISTORY_LIMIT
    assert history[-1].to_index == started.current_index


def test_toggle_mark_for_review(started):
    assert started.toggle_mark_for_review("q2") is True
    assert started.toggle_mark_for_review("q5") is True
    assert started.marked_for_review() == ["q2", "q5"]
    assert started.toggle_mark_for_review("q2") is False
    assert started.is_marked("q2") is False
    assert started.status == SessionStatus.IN_PROGRESS
    with pytest.raises(UnknownQuestion):
        started.toggle_mark_for_review("nope")


def test_reading_time_never_changes_state(started, clock):
    clock.advance(100)
    assert started.remaining_seconds() == 500
    clock.advance(10_000)
    assert started.remaining_seconds() == 0
    assert started.elapsed_seconds() == 600
    assert started.status == SessionStatus.IN_PROGRESS


def test_terminal_session_rejects_mutation(started):
    started.select_answer("q0", "A")
    started.submit()
    assert started.status == SessionStatus.COMPLETED

    with pytest.raises(InvalidTransition):
        started.select_answer("q0", "B")
    with pytest.raises(InvalidTransition):
        started.navigate(1)
    with pytest.raises(InvalidTransition):
        started.toggle_mark_for_review("q1")
    assert started.answer_for("q0").selected_option == OptionKey.A


def test_snapshot_round_trip_scores_identically(started, pipeline, clock):
    started.select_answer("q0", "A", elapsed_seconds=3)
    started.select_answer("q4", "C", elapsed_seconds=8)
    started.toggle_mark_for_review("q7")
    started.navigate(7)
    clock.advance(42)

    snap = started.snapshot()
    restored_snap = SessionSnapshot.model_validate_json(snap.model_dump_json())
    restored = ExamSession.from_snapshot(restored_snap, pipeline=pipeline, clock=clock)

    assert score_snapshot(restored.snapshot(now=snap.taken_at)) == score_snapshot(snap)
    assert restored.current_index == 7
    assert restored.marked_for_review() == ["q7"]
    assert restored.correct_count == 1
    assert restored.incorrect_count == 1


def test_restored_session_keeps_start_epoch_deadline(started, pipeline, clock):
    clock.advance(100)
    snap = started.snapshot()
    clock.advance(200)  # 새로고침 등으로 끊긴 시간

    restored = ExamSession.from_snapshot(snap, pipeline=pipeline, clock=clock)

    assert restored.start_epoch == started.start_epoch
    assert restored.remaining_seconds() == 300


def test_from_snapshot_rejects_finished_sessions(started, pipeline):
    started.submit()
    with pytest.raises(ValueError):
        ExamSession.from_snapshot(started.snapshot(), pipeline=pipeline)


def test_session_requires_questions(pipeline):
    with pytest.raises(ValueError):
        ExamSession([], 600, pipeline=pipeline)
    with pytest.raises(ValueError):
        ExamSession(make_questions(2), -1, pipeline=pipeline)


def test_snapshot_rejects_inconsistent_data(started):
    data = started.snapshot().model_dump(mode="json")

    # 시작 시각 없는 진행 중 사본은 마감이 없는 세션이 된다
    with pytest.raises(ValidationError):
        SessionSnapshot.model_validate({**data, "start_epoch": None})
    with pytest.raises(ValidationError):
        SessionSnapshot.model_validate({**data, "marked_for_review": ["nope"]})
    assert SessionSnapshot.model_validate(data).start_epoch == started.start_epoch
