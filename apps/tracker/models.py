from typing import Optional
from datetime import datetime
from sqlmodel import SQLModel, Field, UniqueConstraint

from apps.core.timeutils import utc_now


class EpisodeWatch(SQLModel, table=True):
    """One row per time a user watched an episode. Rewatches are separate rows."""
    __table_args__ = (
        UniqueConstraint("user_id", "show_id", "season_number", "episode_number", "watched_at",
                         name="unique_episode_watch"),
    )
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    show_id: int = Field(index=True) # TMDB TV id

    season_number: int
    episode_number: int
    watched_at: datetime = Field(default_factory=utc_now, index=True)
    created_at: datetime = Field(default_factory=utc_now)


class ShowOverride(SQLModel, table=True):
    __table_args__ = (
        UniqueConstraint("user_id", "show_id", name="unique_show_override"),
    )
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    show_id: int = Field(index=True)

    # Manual "next episode" pointer
    next_season_override: Optional[int] = None
    next_episode_override: Optional[int] = None

    is_hidden: bool = Field(default=False)
    is_completed: bool = Field(default=False)
    priority_override: Optional[int] = Field(default=None, ge=1, le=10) # 1-10, 10 = highest
    notes: Optional[str] = None

    last_updated_by_user: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
