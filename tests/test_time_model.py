from timed_cbt.services.time_model import (
    WarningTracker,
    elapsed,
    format_clock,
    remaining,
    warning_message,
)

START = 1_700_000_000.0


def test_remaining_at_start_is_full_duration():
    assert remaining(START, 600, START) == 600


def test_remaining_is_zero_at_and_after_deadline():
    for k in (0, 1, 59.5, 10_000):
        assert remaining(START, 600, START + 600 + k) == 0


def test_remaining_is_monotonic_and_never_negative():
    values = [remaining(START, 600, START + t * 7.3) for t in range(200)]
    assert all(v >= 0 for v in values)
    assert all(a >= b for a, b in zip(values, values[1:]))


def test_clock_behind_start_counts_as_no_time_elapsed():
    assert elapsed(START, 600, START - 30) == 0
    assert remaining(START, 600, START - 30) == 600


def test_elapsed_is_capped_by_duration():
    assert elapsed(START, 600, START + 120) == 120
    assert elapsed(START, 600, START + 5000) == 600


def test_warnings_fire_once_when_crossed():
    tracker = WarningTracker(900, (600, 300, 60))

    assert tracker.observe(700) is None
    assert tracker.observe(600) == 600
    assert tracker.observe(599) is None
    assert tracker.observe(600) is None
    assert tracker.observe(300) == 300
    assert tracker.observe(200) is None
    assert tracker.observe(59) == 60
    assert tracker.observe(0) is None
    assert tracker.fired == {600, 300, 60}


def test_skipped_thresholds_emit_only_the_most_urgent():
    tracker = WarningTracker(900, (600, 300, 60))

    assert tracker.observe(50) == 60
    assert tracker.fired == {600, 300, 60}
    assert tracker.observe(10) is None


def test_thresholds_above_duration_never_fire():
    tracker = WarningTracker(200, (600, 300, 60))

    assert tracker.observe(199) is None
    assert tracker.observe(60) == 60
    assert tracker.fired == {60}


def test_format_clock():
    assert format_clock(3725) == "1:02:05"
    assert format_clock(65) == "01:05"
    assert format_clock(-3) == "00:00"


def test_warning_messages():
    assert "10분" in warning_message(600)
    assert "5분" in warning_message(300)
    assert "1분" in warning_message(60)
