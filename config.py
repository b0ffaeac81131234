import os
from dotenv import load_dotenv
from typing import Dict
from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class ContinueWatchingSettings(BaseModel):
    # Pattern classification windows
    INACTIVE_AFTER_DAYS: int = 90
    BINGE_WINDOW_HOURS: float = 24
    BINGE_MIN_EPISODES: int = 3
    BINGE_RECENT_DAYS: int = 14
    REGULAR_LOOKBACK_WEEKS: int = 4
    REGULAR_MIN_WEEKS: int = 3
    STREAK_WINDOW_DAYS: int = 30

    # Priority score
    PATTERN_WEIGHTS: Dict[str, float] = {
        "binge_watching": 40,
        "regular_watching": 25,
        "casual_watching": 10,
        "inactive": 0,
    }
    DECAY_PER_DAY: float = 1.0
    OVERRIDE_SCALE: float = 4.0 # priority 10 -> 40, same range as the binge weight
    HIGH_STRENGTH_SCORE: float = 30
    MEDIUM_STRENGTH_SCORE: float = 15

    # Urgency buckets (days since last episode)
    FRESH_BEFORE_DAYS: float = 2
    RECENT_BEFORE_DAYS: float = 7
    OLD_BEFORE_DAYS: float = 30

    # Binge sessions
    SESSION_GAP_HOURS: float = 24
    SESSION_MIN_EPISODES: int = 3
    SESSION_LOOKBACK_DAYS: int = 7

    # Feed
    ACTIVE_WINDOW_DAYS: int = 90
    ATTENTION_AFTER_DAYS: int = 14
    DEFAULT_FEED_LIMIT: int = 20
    DEFAULT_EPISODE_MINUTES: int = 45


class Settings(BaseSettings):
    PROJECT_NAME: str = "Continue Watching"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///data/continue_watching.db")

    # TMDB
    TMDB_API_KEY: str = os.getenv("TMDB_API_KEY", "")
    TMDB_BASE_URL: str = "https://api.themoviedb.org/3"
    TMDB_TIMEOUT_SECONDS: float = 10.0
    METADATA_CACHE_TTL_SECONDS: int = 6 * 60 * 60

    continue_watching: ContinueWatchingSettings = ContinueWatchingSettings()

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
