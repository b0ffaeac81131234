from datetime import datetime, timedelta
from typing import Dict, Iterable, List

from apps.tracker.schemas import WatchEvent, BingeSession
from config import settings, ContinueWatchingSettings


def _close_session(show_id: int, chain: List[WatchEvent], now: datetime, lookback: timedelta,
                   minutes_per_episode: int) -> BingeSession:
    last = chain[-1].watched_at
    return BingeSession(
        show_id=show_id,
        session_start=chain[0].watched_at,
        session_end=last,
        episodes_in_session=len(chain),
        total_runtime_minutes=len(chain) * minutes_per_episode,
        season_numbers_touched=sorted({e.season_number for e in chain}),
        is_active=now - last <= lookback,
    )


def detect_sessions(show_id: int, events: Iterable[WatchEvent], now: datetime,
                    active_days: float = None, config: ContinueWatchingSettings = None) -> List[BingeSession]:
    """
    Split one show's watches into binge sessions.

    A session is a chain of watches where each one follows the previous
    within SESSION_GAP_HOURS. Chains shorter than SESSION_MIN_EPISODES
    are dropped.
    """
    cfg = config or settings.continue_watching
    gap = timedelta(hours=cfg.SESSION_GAP_HOURS)
    lookback = timedelta(days=cfg.SESSION_LOOKBACK_DAYS if active_days is None else active_days)

    sessions = []
    chain: List[WatchEvent] = []
    for event in sorted(events, key=lambda e: e.watched_at):
        if chain and event.watched_at - chain[-1].watched_at > gap:
            if len(chain) >= cfg.SESSION_MIN_EPISODES:
                sessions.append(_close_session(show_id, chain, now, lookback, cfg.DEFAULT_EPISODE_MINUTES))
            chain = []
        chain.append(event)

    if len(chain) >= cfg.SESSION_MIN_EPISODES:
        sessions.append(_close_session(show_id, chain, now, lookback, cfg.DEFAULT_EPISODE_MINUTES))
    return sessions


def detect_user_sessions(events: Iterable[WatchEvent], now: datetime, active_days: float = None,
                         config: ContinueWatchingSettings = None) -> List[BingeSession]:
    """Run session detection for every show in a user's ledger, most recent sessions first."""
    by_show: Dict[int, List[WatchEvent]] = {}
    for event in events:
        by_show.setdefault(event.show_id, []).append(event)

    sessions = []
    for show_id, show_events in by_show.items():
        sessions.extend(detect_sessions(show_id, show_events, now, active_days, config))
    sessions.sort(key=lambda s: s.session_start, reverse=True)
    return sessions
