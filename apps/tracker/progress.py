"""
Progress aggregation over the episode ledger.

"Latest" is decided by (season, episode) ordering, never by watched_at,
so episodes recorded out of order do not move the next-episode pointer
backwards.
"""
from typing import Iterable, List, Optional, Tuple

from apps.tracker.schemas import (
    WatchEvent, ShowMetadata, ShowProgress, ShowSummary, SeasonProgress,
    NextEpisodeInfo, WatchingPattern,
)
from config import settings


def next_episode_after(season_number: int, episode_number: int,
                       metadata: Optional[ShowMetadata]) -> Tuple[Optional[int], Optional[int], bool]:
    """
    Returns (next_season, next_episode, metadata_incomplete).

    A (None, None) pointer means the show has nothing left according to
    its metadata.
    """
    episode_count = metadata.episode_count(season_number) if metadata else None

    if episode_count is None:
        # Without a count for this season we cannot know where it ends
        return season_number, episode_number + 1, True

    if episode_number + 1 <= episode_count:
        return season_number, episode_number + 1, False

    if metadata.total_seasons is None:
        return season_number + 1, 1, True
    if season_number + 1 > metadata.total_seasons:
        return None, None, False
    return season_number + 1, 1, False


def aggregate_progress(show_id: int, events: Iterable[WatchEvent],
                       metadata: Optional[ShowMetadata] = None) -> Optional[ShowProgress]:
    events = list(events)
    if not events:
        return None

    latest_season, latest_episode = max((e.season_number, e.episode_number) for e in events)
    last_watched_at = max(e.watched_at for e in events)
    next_season, next_episode, incomplete = next_episode_after(latest_season, latest_episode, metadata)

    return ShowProgress(
        show_id=show_id,
        total_episodes_watched=len(events), # Rewatches count individually
        last_watched_at=last_watched_at,
        latest_season_watched=latest_season,
        latest_episode_in_season=latest_episode,
        naive_next_season=next_season,
        naive_next_episode=next_episode,
        metadata_incomplete=incomplete,
    )


def season_breakdown(events: Iterable[WatchEvent], metadata: Optional[ShowMetadata]) -> List[SeasonProgress]:
    watched = {}
    for e in events:
        watched.setdefault(e.season_number, set()).add(e.episode_number)

    season_numbers = set(watched)
    if metadata:
        season_numbers.update(s for s in metadata.episodes_per_season if s > 0)

    seasons = []
    for number in sorted(season_numbers):
        total = metadata.episode_count(number) if metadata else None
        count = len(watched.get(number, ()))
        percentage = round(min(count, total) / total * 100, 1) if total else None
        seasons.append(SeasonProgress(
            season_number=number,
            total_episodes=total,
            watched_episodes=count,
            percentage_complete=percentage,
            is_complete=bool(total) and count >= total,
        ))
    return seasons


def summarize_show(show_id: int, events: Iterable[WatchEvent], metadata: Optional[ShowMetadata],
                   pattern: WatchingPattern, days_since_last_episode: float,
                   next_episode: Optional[NextEpisodeInfo] = None) -> Optional[ShowSummary]:
    """Per-season completion for one show, with an estimate of the viewing time left."""
    events = list(events)
    progress = aggregate_progress(show_id, events, metadata)
    if progress is None:
        return None

    seasons = season_breakdown(events, metadata)
    regular = [s for s in seasons if s.season_number > 0]

    total_episodes = None
    if metadata and metadata.total_seasons is not None and all(s.total_episodes is not None for s in regular):
        total_episodes = sum(s.total_episodes for s in regular)

    watched_episodes = sum(s.watched_episodes for s in regular)
    overall = None
    estimate = None
    if total_episodes:
        overall = round(min(watched_episodes, total_episodes) / total_episodes * 100, 1)
        runtime = (metadata.episode_runtime if metadata else None) or settings.continue_watching.DEFAULT_EPISODE_MINUTES
        estimate = max(total_episodes - watched_episodes, 0) * runtime

    if next_episode is None and progress.has_next:
        next_episode = NextEpisodeInfo(
            season_number=progress.naive_next_season,
            episode_number=progress.naive_next_episode,
        )

    return ShowSummary(
        show_id=show_id,
        show_name=metadata.name if metadata else None,
        total_seasons=metadata.total_seasons if metadata else None,
        total_episodes=total_episodes,
        watched_episodes=watched_episodes,
        overall_percentage=overall,
        current_season=progress.latest_season_watched,
        seasons=seasons,
        next_episode=next_episode,
        is_complete=not progress.has_next and not progress.metadata_incomplete,
        watching_pattern=pattern,
        days_since_last_episode=days_since_last_episode,
        estimated_time_to_complete=estimate,
    )
