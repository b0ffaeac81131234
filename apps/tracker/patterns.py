from datetime import datetime, timedelta
from typing import Iterable, List

from apps.tracker.schemas import WatchingPattern
from config import settings, ContinueWatchingSettings


def _has_binge_window(timestamps: List[datetime], since: datetime, cfg: ContinueWatchingSettings) -> bool:
    """True when some run of BINGE_MIN_EPISODES events fits inside BINGE_WINDOW_HOURS and ends after `since`."""
    window = timedelta(hours=cfg.BINGE_WINDOW_HOURS)
    span = cfg.BINGE_MIN_EPISODES - 1
    for i in range(len(timestamps) - span):
        end = timestamps[i + span]
        if end - timestamps[i] <= window and end >= since:
            return True
    return False


def _active_weeks(timestamps: List[datetime], now: datetime, weeks: int) -> int:
    # Weeks are rolling 7-day buckets counted back from `now`; bucket 0 is the last 7 days.
    buckets = set()
    for ts in timestamps:
        index = max(int((now - ts).total_seconds() // (7 * 86400)), 0)
        if index < weeks:
            buckets.add(index)
    return len(buckets)


def classify_pattern(timestamps: Iterable[datetime], now: datetime,
                     config: ContinueWatchingSettings = None) -> WatchingPattern:
    """
    Classify the viewing cadence for one show. Rules are checked in order:
    inactive, binge, regular, casual.
    """
    cfg = config or settings.continue_watching
    ordered = sorted(timestamps)

    recent_cutoff = now - timedelta(days=cfg.INACTIVE_AFTER_DAYS)
    if not any(ts >= recent_cutoff for ts in ordered):
        return WatchingPattern.INACTIVE

    if _has_binge_window(ordered, now - timedelta(days=cfg.BINGE_RECENT_DAYS), cfg):
        return WatchingPattern.BINGE_WATCHING

    if _active_weeks(ordered, now, cfg.REGULAR_LOOKBACK_WEEKS) >= cfg.REGULAR_MIN_WEEKS:
        return WatchingPattern.REGULAR_WATCHING

    return WatchingPattern.CASUAL_WATCHING


def watching_streak(timestamps: Iterable[datetime], config: ContinueWatchingSettings = None) -> int:
    """Distinct days with a watch in the STREAK_WINDOW_DAYS ending at the most recent watch."""
    cfg = config or settings.continue_watching
    ordered = list(timestamps)
    if not ordered:
        return 0
    cutoff = max(ordered) - timedelta(days=cfg.STREAK_WINDOW_DAYS)
    return len({ts.date() for ts in ordered if ts >= cutoff})
