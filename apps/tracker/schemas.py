from typing import Optional, List, Dict
from datetime import datetime
from enum import Enum
from pydantic import BaseModel, Field, model_validator


class WatchingPattern(str, Enum):
    BINGE_WATCHING = "binge_watching"
    REGULAR_WATCHING = "regular_watching"
    CASUAL_WATCHING = "casual_watching"
    INACTIVE = "inactive"

class UrgencyLevel(str, Enum):
    FRESH = "fresh"
    RECENT = "recent"
    OLD = "old"
    STALE = "stale"

class RecommendationStrength(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

class FeedCategory(str, Enum):
    FINISH_THE_SERIES = "finish_the_series"
    UP_NEXT = "up_next"
    BINGE_WORTHY = "binge_worthy"
    RECENTLY_STARTED = "recently_started"
    TAKING_BREAK = "taking_break"
    SEASONAL_RETURNS = "seasonal_returns"

class RecommendationType(str, Enum):
    CONTINUE_BINGE = "continue_binge"
    CATCH_UP = "catch_up"
    FINISHING_TOUCH = "finishing_touch"
    NEW_SEASON = "new_season"


# --- Inputs from collaborators ---

class WatchEvent(BaseModel):
    show_id: int
    season_number: int
    episode_number: int
    watched_at: datetime
    user_id: Optional[int] = None

class ShowMetadata(BaseModel):
    show_id: int
    name: Optional[str] = None
    poster_path: Optional[str] = None
    total_seasons: Optional[int] = None
    episodes_per_season: Dict[int, int] = Field(default_factory=dict)
    episode_runtime: Optional[int] = None # Minutes

    def episode_count(self, season_number: int) -> Optional[int]:
        return self.episodes_per_season.get(season_number)

class OverrideState(BaseModel):
    """Persisted override as the engine sees it. Defaults mean "no override row"."""
    show_id: int
    next_season_override: Optional[int] = None
    next_episode_override: Optional[int] = None
    is_hidden: bool = False
    is_completed: bool = False
    priority_override: Optional[int] = None
    notes: Optional[str] = None
    updated_at: Optional[datetime] = None

    @property
    def has_next_override(self) -> bool:
        return self.next_season_override is not None and self.next_episode_override is not None

class OverrideUpdate(BaseModel):
    """Partial update. Only fields explicitly set are written."""
    next_season_override: Optional[int] = Field(default=None, ge=1)
    next_episode_override: Optional[int] = Field(default=None, ge=1)
    is_hidden: Optional[bool] = None
    is_completed: Optional[bool] = None
    priority_override: Optional[int] = Field(default=None, ge=1, le=10)
    notes: Optional[str] = Field(default=None, max_length=2000)

    @model_validator(mode="after")
    def _next_pointer_pair(self):
        season_set = "next_season_override" in self.model_fields_set
        episode_set = "next_episode_override" in self.model_fields_set
        if season_set != episode_set:
            raise ValueError("next_season_override and next_episode_override must be set together")
        return self


# --- Derived ---

class ShowProgress(BaseModel):
    show_id: int
    total_episodes_watched: int
    last_watched_at: datetime
    latest_season_watched: int
    latest_episode_in_season: int
    naive_next_season: Optional[int] = None
    naive_next_episode: Optional[int] = None
    metadata_incomplete: bool = False

    @property
    def has_next(self) -> bool:
        return self.naive_next_season is not None and self.naive_next_episode is not None

class NextEpisodeInfo(BaseModel):
    season_number: int
    episode_number: int
    name: Optional[str] = None
    overview: Optional[str] = None
    air_date: Optional[str] = None
    still_path: Optional[str] = None
    runtime: Optional[int] = None
    vote_average: Optional[float] = None

class ContinueWatchingItem(BaseModel):
    show_id: int
    show_name: Optional[str] = None
    poster_path: Optional[str] = None
    total_episodes_watched: int
    last_watched_at: datetime
    latest_season_watched: int
    latest_episode_in_season: int
    final_next_season: Optional[int] = None
    final_next_episode: Optional[int] = None
    is_hidden: bool = False
    is_completed: bool = False
    priority_override: Optional[int] = None
    notes: Optional[str] = None
    watching_pattern: WatchingPattern
    days_since_last_episode: float
    watching_streak: int = 0
    final_priority_score: float
    urgency_level: UrgencyLevel
    recommendation_strength: RecommendationStrength
    needs_finish: bool = False
    metadata_incomplete: bool = False

class QueryOptions(BaseModel):
    include_hidden: bool = False
    include_completed: bool = False
    min_priority: Optional[float] = None
    max_days_since_last_episode: Optional[float] = None
    watching_patterns: Optional[List[WatchingPattern]] = None
    limit: Optional[int] = Field(default=None, ge=1, le=200)
    offset: int = Field(default=0, ge=0)

class CategorizedFeed(BaseModel):
    category: FeedCategory
    items: List[ContinueWatchingItem]
    count: int

class BingeSession(BaseModel):
    show_id: int
    session_start: datetime
    session_end: datetime
    episodes_in_session: int
    total_runtime_minutes: int
    season_numbers_touched: List[int]
    is_active: bool

class WatchingStats(BaseModel):
    active_shows: int = 0
    completed_shows: int = 0
    total_episodes_watched: int = 0
    longest_streak: int = 0
    average_episodes_per_show: float = 0
    binge_shows: int = 0
    regular_shows: int = 0
    casual_shows: int = 0
    inactive_shows: int = 0

class WatchingRecommendation(BaseModel):
    show_id: int
    recommendation_type: RecommendationType
    reasoning: str
    urgency_score: int
    time_commitment: str

class SeasonProgress(BaseModel):
    season_number: int
    total_episodes: Optional[int] = None
    watched_episodes: int
    percentage_complete: Optional[float] = None
    is_complete: bool

class ShowSummary(BaseModel):
    show_id: int
    show_name: Optional[str] = None
    total_seasons: Optional[int] = None
    total_episodes: Optional[int] = None
    watched_episodes: int
    overall_percentage: Optional[float] = None
    current_season: int
    seasons: List[SeasonProgress]
    next_episode: Optional[NextEpisodeInfo] = None
    is_complete: bool
    watching_pattern: WatchingPattern
    days_since_last_episode: float
    estimated_time_to_complete: Optional[int] = None # Minutes

class TrendingShow(BaseModel):
    show_id: int
    watchers_count: int
    recent_episodes: int
