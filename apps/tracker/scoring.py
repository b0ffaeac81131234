from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from apps.tracker.schemas import (
    ShowProgress, OverrideState, WatchingPattern, UrgencyLevel, RecommendationStrength,
)
from config import settings, ContinueWatchingSettings


@dataclass(frozen=True)
class Score:
    final_priority_score: float
    recommendation_strength: RecommendationStrength
    urgency_level: UrgencyLevel
    days_since_last_episode: float
    needs_finish: bool


def days_since(last_watched_at: datetime, now: datetime) -> float:
    return max((now - last_watched_at).total_seconds() / 86400, 0.0)


def urgency_for(days: float, config: ContinueWatchingSettings = None) -> UrgencyLevel:
    cfg = config or settings.continue_watching
    if days < cfg.FRESH_BEFORE_DAYS:
        return UrgencyLevel.FRESH
    if days < cfg.RECENT_BEFORE_DAYS:
        return UrgencyLevel.RECENT
    if days < cfg.OLD_BEFORE_DAYS:
        return UrgencyLevel.OLD
    return UrgencyLevel.STALE


def strength_for(score: float, config: ContinueWatchingSettings = None) -> RecommendationStrength:
    cfg = config or settings.continue_watching
    if score >= cfg.HIGH_STRENGTH_SCORE:
        return RecommendationStrength.HIGH
    if score >= cfg.MEDIUM_STRENGTH_SCORE:
        return RecommendationStrength.MEDIUM
    return RecommendationStrength.LOW


def computed_priority(pattern: WatchingPattern, days: float, config: ContinueWatchingSettings = None) -> float:
    cfg = config or settings.continue_watching
    weight = cfg.PATTERN_WEIGHTS.get(pattern.value, 0)
    return max(weight - cfg.DECAY_PER_DAY * days, 0.0)


def score_show(progress: ShowProgress, pattern: WatchingPattern, override: Optional[OverrideState],
               now: datetime, config: ContinueWatchingSettings = None) -> Score:
    """
    Priority for feed ordering. A manual priority replaces the computed
    score instead of adding to it, and always reads as a strong pick.
    """
    cfg = config or settings.continue_watching
    days = days_since(progress.last_watched_at, now)

    if override is not None and override.priority_override is not None:
        score = override.priority_override * cfg.OVERRIDE_SCALE
        strength = RecommendationStrength.HIGH
    else:
        score = computed_priority(pattern, days, cfg)
        strength = strength_for(score, cfg)

    has_manual_pointer = override is not None and override.has_next_override
    completed = override is not None and override.is_completed
    needs_finish = not progress.has_next and not has_manual_pointer and not completed

    return Score(
        final_priority_score=score,
        recommendation_strength=strength,
        urgency_level=urgency_for(days, cfg),
        days_since_last_episode=days,
        needs_finish=needs_finish,
    )
