"""
Continue-watching feed assembly: per-show items, filters, ordering,
categories, and the small derived views built on top of the feed
(attention list, recommendations, stats).
"""
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from apps.tracker.patterns import classify_pattern, watching_streak
from apps.tracker.schemas import (
    ContinueWatchingItem, ShowProgress, OverrideState, ShowMetadata, QueryOptions,
    CategorizedFeed, FeedCategory, WatchingPattern, UrgencyLevel, RecommendationStrength,
    WatchingRecommendation, RecommendationType, WatchingStats,
)
from apps.tracker.scoring import score_show
from config import settings, ContinueWatchingSettings


def build_item(progress: ShowProgress, timestamps: Iterable[datetime], override: Optional[OverrideState],
               now: datetime, metadata: Optional[ShowMetadata] = None,
               config: ContinueWatchingSettings = None) -> ContinueWatchingItem:
    cfg = config or settings.continue_watching
    timestamps = list(timestamps)
    pattern = classify_pattern(timestamps, now, cfg)
    score = score_show(progress, pattern, override, now, cfg)

    if override is not None and override.has_next_override:
        next_season, next_episode = override.next_season_override, override.next_episode_override
    else:
        next_season, next_episode = progress.naive_next_season, progress.naive_next_episode

    return ContinueWatchingItem(
        show_id=progress.show_id,
        show_name=metadata.name if metadata else None,
        poster_path=metadata.poster_path if metadata else None,
        total_episodes_watched=progress.total_episodes_watched,
        last_watched_at=progress.last_watched_at,
        latest_season_watched=progress.latest_season_watched,
        latest_episode_in_season=progress.latest_episode_in_season,
        final_next_season=next_season,
        final_next_episode=next_episode,
        is_hidden=override.is_hidden if override else False,
        is_completed=override.is_completed if override else False,
        priority_override=override.priority_override if override else None,
        notes=override.notes if override else None,
        watching_pattern=pattern,
        days_since_last_episode=score.days_since_last_episode,
        watching_streak=watching_streak(timestamps, cfg),
        final_priority_score=score.final_priority_score,
        urgency_level=score.urgency_level,
        recommendation_strength=score.recommendation_strength,
        needs_finish=score.needs_finish,
        metadata_incomplete=progress.metadata_incomplete,
    )


def filter_items(items: Iterable[ContinueWatchingItem], options: QueryOptions) -> List[ContinueWatchingItem]:
    result = list(items)

    # Visibility first, then numeric/date filters, then patterns
    if not options.include_hidden:
        result = [i for i in result if not i.is_hidden]
    if not options.include_completed:
        result = [i for i in result if not i.is_completed]

    if options.min_priority is not None:
        result = [i for i in result if i.final_priority_score >= options.min_priority]
    if options.max_days_since_last_episode is not None:
        result = [i for i in result if i.days_since_last_episode <= options.max_days_since_last_episode]

    if options.watching_patterns:
        allowed = set(options.watching_patterns)
        result = [i for i in result if i.watching_pattern in allowed]

    return result


def sort_items(items: Iterable[ContinueWatchingItem]) -> List[ContinueWatchingItem]:
    """Highest score first; equal scores fall back to the most recent watch."""
    return sorted(items, key=lambda i: (i.final_priority_score, i.last_watched_at), reverse=True)


def paginate(items: List[ContinueWatchingItem], options: QueryOptions,
             config: ContinueWatchingSettings = None) -> List[ContinueWatchingItem]:
    cfg = config or settings.continue_watching
    limit = options.limit or cfg.DEFAULT_FEED_LIMIT
    return items[options.offset:options.offset + limit]


def assemble_feed(items: Iterable[ContinueWatchingItem], options: QueryOptions = None,
                  config: ContinueWatchingSettings = None) -> List[ContinueWatchingItem]:
    options = options or QueryOptions()
    return paginate(sort_items(filter_items(items, options)), options, config)


def category_for(item: ContinueWatchingItem) -> FeedCategory:
    if item.needs_finish:
        return FeedCategory.FINISH_THE_SERIES
    if item.urgency_level == UrgencyLevel.FRESH and item.recommendation_strength == RecommendationStrength.HIGH:
        return FeedCategory.UP_NEXT
    if item.watching_pattern == WatchingPattern.BINGE_WATCHING:
        return FeedCategory.BINGE_WORTHY
    if item.total_episodes_watched <= 5 and item.days_since_last_episode <= 7:
        return FeedCategory.RECENTLY_STARTED
    if item.urgency_level == UrgencyLevel.OLD:
        return FeedCategory.TAKING_BREAK
    if item.urgency_level == UrgencyLevel.STALE:
        return FeedCategory.SEASONAL_RETURNS
    return FeedCategory.UP_NEXT


def categorize(items: Iterable[ContinueWatchingItem]) -> List[CategorizedFeed]:
    """Group already-sorted items; empty categories are left out and item order is kept."""
    groups: Dict[FeedCategory, List[ContinueWatchingItem]] = {category: [] for category in FeedCategory}
    for item in items:
        groups[category_for(item)].append(item)

    return [
        CategorizedFeed(category=category, items=members, count=len(members))
        for category, members in groups.items()
        if members
    ]


def categorized_feed(items: Iterable[ContinueWatchingItem], options: QueryOptions = None) -> List[CategorizedFeed]:
    options = options or QueryOptions()
    return categorize(sort_items(filter_items(items, options)))


def attention_needed(items: Iterable[ContinueWatchingItem], min_days: float = None,
                     config: ContinueWatchingSettings = None) -> List[ContinueWatchingItem]:
    """Shows still inside the active window that have not been touched for a while."""
    cfg = config or settings.continue_watching
    min_days = cfg.ATTENTION_AFTER_DAYS if min_days is None else min_days
    options = QueryOptions(max_days_since_last_episode=cfg.ACTIVE_WINDOW_DAYS)
    candidates = sort_items(filter_items(items, options))
    return [i for i in candidates if i.days_since_last_episode >= min_days]


def recommend(items: Iterable[ContinueWatchingItem], limit: int = 3,
              config: ContinueWatchingSettings = None) -> List[WatchingRecommendation]:
    cfg = config or settings.continue_watching
    minutes = f"{cfg.DEFAULT_EPISODE_MINUTES} minutes"
    recommendations = []

    for item in sort_items(filter_items(items, QueryOptions()))[:limit]:
        if item.watching_pattern == WatchingPattern.BINGE_WATCHING:
            kind, urgency = RecommendationType.CONTINUE_BINGE, 9
            reasoning = "You've been binge watching this show! Keep the momentum going."
        elif item.days_since_last_episode > 14:
            kind, urgency = RecommendationType.CATCH_UP, 7
            reasoning = (f"It's been {int(item.days_since_last_episode)} days since your last episode. "
                         "Time to catch up!")
        elif item.total_episodes_watched >= 20:
            kind, urgency = RecommendationType.FINISHING_TOUCH, 8
            reasoning = "You've invested a lot of time in this show. See how it ends!"
        else:
            kind, urgency = RecommendationType.NEW_SEASON, 6
            reasoning = "Perfect time to continue your journey with this show."

        recommendations.append(WatchingRecommendation(
            show_id=item.show_id,
            recommendation_type=kind,
            reasoning=reasoning,
            urgency_score=urgency,
            time_commitment=minutes,
        ))
    return recommendations


def watching_stats(items: Iterable[ContinueWatchingItem]) -> WatchingStats:
    items = list(items)
    if not items:
        return WatchingStats()

    patterns = [i.watching_pattern for i in items]
    total = sum(i.total_episodes_watched for i in items)
    return WatchingStats(
        active_shows=sum(1 for i in items if not i.is_completed),
        completed_shows=sum(1 for i in items if i.is_completed),
        total_episodes_watched=total,
        longest_streak=max(i.watching_streak for i in items),
        average_episodes_per_show=round(total / len(items), 2),
        binge_shows=patterns.count(WatchingPattern.BINGE_WATCHING),
        regular_shows=patterns.count(WatchingPattern.REGULAR_WATCHING),
        casual_shows=patterns.count(WatchingPattern.CASUAL_WATCHING),
        inactive_shows=patterns.count(WatchingPattern.INACTIVE),
    )


# --- Display helpers ---

def format_days_since(days: float) -> str:
    if days < 1:
        return "Today"
    if days < 2:
        return "Yesterday"
    if days < 7:
        return f"{int(days)} days ago"
    if days < 30:
        return f"{int(days // 7)} weeks ago"
    if days < 365:
        return f"{int(days // 30)} months ago"
    return f"{int(days // 365)} years ago"


def format_streak(streak: int) -> str:
    if streak == 0:
        return "No streak"
    if streak == 1:
        return "1 day streak"
    if streak < 7:
        return f"{streak} day streak"
    if streak < 30:
        return f"{streak // 7} week streak"
    return f"{streak // 30} month streak"


def episode_label(season_number: int, episode_number: int) -> str:
    return f"S{season_number:02d}E{episode_number:02d}"


def time_to_finish(remaining_episodes: int, minutes_per_episode: int = 45) -> str:
    total = remaining_episodes * minutes_per_episode
    hours, minutes = divmod(total, 60)
    if hours == 0:
        return f"{minutes}m"
    if minutes == 0:
        return f"{hours}h"
    return f"{hours}h {minutes}m"
