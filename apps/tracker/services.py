import asyncio
import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlmodel import Session

from apps.core.exceptions import MetadataUnavailableError, InvalidOverrideError
from apps.core.timeutils import utc_now, as_naive_utc
from apps.tracker.feed import (
    build_item, assemble_feed, categorized_feed, attention_needed, recommend, watching_stats,
)
from apps.tracker.patterns import classify_pattern
from apps.tracker.progress import aggregate_progress, summarize_show
from apps.tracker.schemas import (
    WatchEvent, ShowMetadata, ShowProgress, ShowSummary, OverrideState, OverrideUpdate,
    ContinueWatchingItem, QueryOptions, CategorizedFeed, BingeSession, WatchingStats,
    WatchingRecommendation, TrendingShow, NextEpisodeInfo,
)
from apps.tracker.scoring import days_since
from apps.tracker.sessions import detect_user_sessions
from apps.tracker.social import trending_among_follows
from apps.tracker.store import WatchStore
from config import settings

logger = logging.getLogger(__name__)


class ContinueWatchingService:
    """
    Reads the ledger and overrides, pulls show metadata and hands
    everything to the pure feed functions. Every call recomputes from
    stored data; nothing derived is persisted.
    """

    def __init__(self, session: Session, metadata, config=None):
        self.store = WatchStore(session)
        self.metadata = metadata
        self.config = config or settings.continue_watching

    async def _metadata_for(self, show_id: int) -> Optional[ShowMetadata]:
        try:
            return await self.metadata.get_show_metadata(show_id)
        except MetadataUnavailableError as e:
            logger.warning(f"[ContinueWatching] Metadata unavailable for show {show_id}, degrading: {e}")
            return None

    async def _metadata_map(self, show_ids: List[int]) -> Dict[int, Optional[ShowMetadata]]:
        results = await asyncio.gather(*(self._metadata_for(show_id) for show_id in show_ids))
        return dict(zip(show_ids, results))

    async def build_items(self, user_id: int, now: Optional[datetime] = None) -> List[ContinueWatchingItem]:
        """One item per show the user has any watch for, unfiltered and unsorted."""
        now = as_naive_utc(now) or utc_now()
        events = self.store.list_events(user_id)
        overrides = self.store.list_overrides(user_id)

        by_show: Dict[int, List[WatchEvent]] = {}
        for event in events:
            by_show.setdefault(event.show_id, []).append(event)

        metadata = await self._metadata_map(list(by_show))

        items = []
        for show_id, show_events in by_show.items():
            show_meta = metadata.get(show_id)
            progress = aggregate_progress(show_id, show_events, show_meta)
            if progress is None:
                continue
            items.append(build_item(
                progress,
                [e.watched_at for e in show_events],
                overrides.get(show_id),
                now,
                metadata=show_meta,
                config=self.config,
            ))

        logger.info(f"[ContinueWatching] Built {len(items)} items for user {user_id}")
        return items

    async def get_feed(self, user_id: int, options: Optional[QueryOptions] = None,
                       now: Optional[datetime] = None) -> List[ContinueWatchingItem]:
        items = await self.build_items(user_id, now)
        return assemble_feed(items, options, self.config)

    async def get_categorized_feed(self, user_id: int, options: Optional[QueryOptions] = None,
                                   now: Optional[datetime] = None) -> List[CategorizedFeed]:
        items = await self.build_items(user_id, now)
        return categorized_feed(items, options)

    async def get_attention_needed(self, user_id: int, min_days: Optional[float] = None,
                                   now: Optional[datetime] = None) -> List[ContinueWatchingItem]:
        items = await self.build_items(user_id, now)
        return attention_needed(items, min_days, self.config)

    async def get_recommendations(self, user_id: int, limit: int = 3,
                                  now: Optional[datetime] = None) -> List[WatchingRecommendation]:
        items = await self.build_items(user_id, now)
        return recommend(items, limit, self.config)

    async def get_stats(self, user_id: int, now: Optional[datetime] = None) -> WatchingStats:
        items = await self.build_items(user_id, now)
        return watching_stats(items)

    async def get_show_progress(self, user_id: int, show_id: int) -> Optional[ShowProgress]:
        events = self.store.list_events(user_id, show_id)
        if not events:
            return None
        return aggregate_progress(show_id, events, await self._metadata_for(show_id))

    async def get_show_summary(self, user_id: int, show_id: int,
                               now: Optional[datetime] = None) -> Optional[ShowSummary]:
        now = as_naive_utc(now) or utc_now()
        events = self.store.list_events(user_id, show_id)
        if not events:
            return None

        metadata = await self._metadata_for(show_id)
        progress = aggregate_progress(show_id, events, metadata)
        timestamps = [e.watched_at for e in events]
        pattern = classify_pattern(timestamps, now, self.config)

        override = self.store.get_override(user_id, show_id)
        if override.has_next_override:
            season, episode = override.next_season_override, override.next_episode_override
        else:
            season, episode = progress.naive_next_season, progress.naive_next_episode

        next_episode = None
        if season is not None and episode is not None:
            try:
                next_episode = await self.metadata.get_episode_details(show_id, season, episode)
            except MetadataUnavailableError as e:
                logger.warning(f"[ContinueWatching] No details for show {show_id} S{season}E{episode}: {e}")
            if next_episode is None:
                next_episode = NextEpisodeInfo(season_number=season, episode_number=episode)

        return summarize_show(show_id, events, metadata, pattern,
                              days_since(progress.last_watched_at, now), next_episode)

    async def get_sessions(self, user_id: int, active_days: Optional[float] = None,
                           now: Optional[datetime] = None) -> List[BingeSession]:
        now = as_naive_utc(now) or utc_now()
        events = self.store.list_events(user_id)
        return detect_user_sessions(events, now, active_days, self.config)

    async def get_trending_among_follows(self, user_id: int, days: int = 7,
                                         now: Optional[datetime] = None) -> List[TrendingShow]:
        now = as_naive_utc(now) or utc_now()
        following = self.store.following_ids(user_id)
        if not following:
            return []
        events = self.store.list_events_for_users(following, since=now - timedelta(days=days))
        return trending_among_follows(events, now, days)

    # --- Override actions ---

    def get_override(self, user_id: int, show_id: int) -> OverrideState:
        return self.store.get_override(user_id, show_id)

    def update_override(self, user_id: int, show_id: int, update: OverrideUpdate) -> OverrideState:
        return self.store.upsert_override(user_id, show_id, update)

    def hide(self, user_id: int, show_id: int, hidden: bool = True) -> OverrideState:
        return self.store.upsert_override(user_id, show_id, OverrideUpdate(is_hidden=hidden))

    def mark_completed(self, user_id: int, show_id: int, completed: bool = True) -> OverrideState:
        return self.store.upsert_override(user_id, show_id, OverrideUpdate(is_completed=completed))

    def set_next_episode(self, user_id: int, show_id: int, season_number: int, episode_number: int,
                         notes: Optional[str] = None) -> OverrideState:
        if season_number < 1 or episode_number < 1:
            raise InvalidOverrideError("Season and episode numbers start at 1")
        fields = {"next_season_override": season_number, "next_episode_override": episode_number}
        if notes is not None:
            fields["notes"] = notes
        return self.store.upsert_override(user_id, show_id, fields)

    def set_priority(self, user_id: int, show_id: int, priority: int) -> OverrideState:
        if priority < 1 or priority > 10:
            raise InvalidOverrideError("Priority must be between 1 and 10")
        return self.store.upsert_override(user_id, show_id, {"priority_override": priority})

    # --- Ledger actions ---

    def mark_watched(self, user_id: int, show_id: int, season_number: int, episode_number: int,
                     watched_at: Optional[datetime] = None) -> WatchEvent:
        return self.store.record_watch(user_id, show_id, season_number, episode_number, watched_at)

    def unmark_watched(self, user_id: int, show_id: int, season_number: int, episode_number: int,
                       watched_at: Optional[datetime] = None) -> int:
        return self.store.remove_watch(user_id, show_id, season_number, episode_number, watched_at)

    # --- Social graph ---

    def follow(self, user_id: int, other_id: int) -> bool:
        return self.store.follow(user_id, other_id)

    def unfollow(self, user_id: int, other_id: int) -> bool:
        return self.store.unfollow(user_id, other_id)
