from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Set

from apps.tracker.schemas import WatchEvent, TrendingShow


def trending_among_follows(events: Iterable[WatchEvent], now: datetime, days: int = 7,
                           limit: int = 10) -> List[TrendingShow]:
    """Rank shows by how many followed users watched them in the last `days`."""
    cutoff = now - timedelta(days=days)
    watchers: Dict[int, Set[int]] = {}
    episodes: Dict[int, int] = {}

    for event in events:
        if event.watched_at < cutoff:
            continue
        watchers.setdefault(event.show_id, set()).add(event.user_id)
        episodes[event.show_id] = episodes.get(event.show_id, 0) + 1

    ranked = sorted(
        (TrendingShow(show_id=show_id, watchers_count=len(users), recent_episodes=episodes[show_id])
         for show_id, users in watchers.items()),
        key=lambda t: (t.watchers_count, t.recent_episodes),
        reverse=True,
    )
    return ranked[:limit]
