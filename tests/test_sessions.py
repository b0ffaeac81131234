"""Tests for binge session detection."""

from datetime import timedelta

from apps.tracker.sessions import detect_sessions, detect_user_sessions

from conftest import NOW, days_ago, event


def hourly(start, count, show_id=1, season=1):
    return [event(season, i + 1, start + timedelta(hours=i), show_id=show_id) for i in range(count)]


def test_three_events_an_hour_apart_make_one_session() -> None:
    sessions = detect_sessions(1, hourly(days_ago(1), 3), NOW)

    assert len(sessions) == 1
    assert sessions[0].episodes_in_session == 3
    assert sessions[0].session_start == days_ago(1)
    assert sessions[0].total_runtime_minutes == 135
    assert sessions[0].is_active is True


def test_two_events_are_not_a_session() -> None:
    assert detect_sessions(1, hourly(days_ago(1), 2), NOW) == []


def test_chain_extends_past_a_day_from_its_start() -> None:
    """Each gap is under 24h, so the session keeps going even though it spans three days."""
    start = days_ago(5)
    events = [event(1, i + 1, start + timedelta(hours=20 * i)) for i in range(4)]

    sessions = detect_sessions(1, events, NOW)

    assert len(sessions) == 1
    assert sessions[0].episodes_in_session == 4


def test_long_gap_splits_sessions() -> None:
    first = hourly(days_ago(20), 3)
    second = hourly(days_ago(2), 4, season=2)

    sessions = detect_sessions(1, list(reversed(first + second)), NOW)

    assert [s.episodes_in_session for s in sessions] == [3, 4]
    assert sessions[0].is_active is False
    assert sessions[1].is_active is True
    assert sessions[1].season_numbers_touched == [2]


def test_lookback_window_controls_activity() -> None:
    sessions = detect_sessions(1, hourly(days_ago(10), 3), NOW, active_days=14)

    assert sessions[0].is_active is True


def test_user_sessions_grouped_by_show() -> None:
    events = hourly(days_ago(3), 3, show_id=1) + hourly(days_ago(1), 3, show_id=2) + hourly(days_ago(1), 2, show_id=3)

    sessions = detect_user_sessions(events, NOW)

    assert [s.show_id for s in sessions] == [2, 1]
