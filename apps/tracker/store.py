import logging
from datetime import datetime
from typing import Dict, List, Optional, Union

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, col, select

from apps.core.exceptions import CollaboratorUnavailableError, InvalidOverrideError
from apps.core.timeutils import utc_now, as_naive_utc
from apps.tracker.models import EpisodeWatch, ShowOverride
from apps.tracker.schemas import WatchEvent, OverrideState, OverrideUpdate
from apps.users.models import Follow, User

logger = logging.getLogger(__name__)


def _to_event(row: EpisodeWatch) -> WatchEvent:
    return WatchEvent(
        user_id=row.user_id,
        show_id=row.show_id,
        season_number=row.season_number,
        episode_number=row.episode_number,
        watched_at=row.watched_at,
    )


def _to_state(row: ShowOverride) -> OverrideState:
    return OverrideState(
        show_id=row.show_id,
        next_season_override=row.next_season_override,
        next_episode_override=row.next_episode_override,
        is_hidden=row.is_hidden,
        is_completed=row.is_completed,
        priority_override=row.priority_override,
        notes=row.notes,
        updated_at=row.updated_at,
    )


class WatchStore:
    """
    Ledger, override and follow-graph access on top of a SQLModel session.
    Reads never write; overrides are only created by `upsert_override`.
    """

    def __init__(self, session: Session):
        self.session = session

    def _ensure_user(self, user_id: int) -> None:
        """Users are identified by id only; their row is created on first write."""
        if self.session.get(User, user_id) is None:
            self.session.add(User(id=user_id))
            self.session.flush()

    # --- Ledger ---

    def list_events(self, user_id: int, show_id: Optional[int] = None,
                    since: Optional[datetime] = None) -> List[WatchEvent]:
        query = select(EpisodeWatch).where(EpisodeWatch.user_id == user_id)
        if show_id is not None:
            query = query.where(EpisodeWatch.show_id == show_id)
        if since is not None:
            query = query.where(EpisodeWatch.watched_at >= as_naive_utc(since))
        query = query.order_by(EpisodeWatch.watched_at)

        try:
            rows = self.session.exec(query).all()
        except SQLAlchemyError as e:
            logger.warning(f"[WatchStore] Ledger read failed for user {user_id}: {e}")
            raise CollaboratorUnavailableError("store", "Episode ledger is unavailable") from e
        return [_to_event(row) for row in rows]

    def list_events_for_users(self, user_ids: List[int], since: Optional[datetime] = None) -> List[WatchEvent]:
        if not user_ids:
            return []
        query = select(EpisodeWatch).where(col(EpisodeWatch.user_id).in_(user_ids))
        if since is not None:
            query = query.where(EpisodeWatch.watched_at >= as_naive_utc(since))
        try:
            rows = self.session.exec(query.order_by(col(EpisodeWatch.watched_at).desc())).all()
        except SQLAlchemyError as e:
            raise CollaboratorUnavailableError("store", "Episode ledger is unavailable") from e
        return [_to_event(row) for row in rows]

    def record_watch(self, user_id: int, show_id: int, season_number: int, episode_number: int,
                     watched_at: Optional[datetime] = None) -> WatchEvent:
        """Append a watch. Recording the exact same event twice is a no-op."""
        watched_at = as_naive_utc(watched_at) or utc_now()
        try:
            existing = self.session.exec(
                select(EpisodeWatch).where(
                    EpisodeWatch.user_id == user_id,
                    EpisodeWatch.show_id == show_id,
                    EpisodeWatch.season_number == season_number,
                    EpisodeWatch.episode_number == episode_number,
                    EpisodeWatch.watched_at == watched_at,
                )
            ).first()
        except SQLAlchemyError as e:
            raise CollaboratorUnavailableError("store", "Episode ledger is unavailable") from e
        if existing:
            return _to_event(existing)

        row = EpisodeWatch(
            user_id=user_id,
            show_id=show_id,
            season_number=season_number,
            episode_number=episode_number,
            watched_at=watched_at,
        )
        try:
            self._ensure_user(user_id)
            self.session.add(row)
            self.session.commit()
            self.session.refresh(row)
        except IntegrityError:
            # Lost a race against an identical insert
            self.session.rollback()
            return WatchEvent(user_id=user_id, show_id=show_id, season_number=season_number,
                              episode_number=episode_number, watched_at=watched_at)
        except SQLAlchemyError as e:
            self.session.rollback()
            raise CollaboratorUnavailableError("store", "Could not record watch") from e

        logger.debug(f"[WatchStore] User {user_id} watched show {show_id} S{season_number}E{episode_number}")
        return _to_event(row)

    def remove_watch(self, user_id: int, show_id: int, season_number: int, episode_number: int,
                     watched_at: Optional[datetime] = None) -> int:
        """
        Remove one specific watch, or every watch of that episode when no
        timestamp is given. Returns how many rows went away.
        """
        query = select(EpisodeWatch).where(
            EpisodeWatch.user_id == user_id,
            EpisodeWatch.show_id == show_id,
            EpisodeWatch.season_number == season_number,
            EpisodeWatch.episode_number == episode_number,
        )
        if watched_at is not None:
            query = query.where(EpisodeWatch.watched_at == as_naive_utc(watched_at))

        try:
            rows = self.session.exec(query).all()
            for row in rows:
                self.session.delete(row)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise CollaboratorUnavailableError("store", "Could not remove watch") from e
        return len(rows)

    # --- Overrides ---

    def _override_row(self, user_id: int, show_id: int) -> Optional[ShowOverride]:
        return self.session.exec(
            select(ShowOverride).where(ShowOverride.user_id == user_id, ShowOverride.show_id == show_id)
        ).first()

    def get_override(self, user_id: int, show_id: int) -> OverrideState:
        """Stored override, or an all-defaults one when the user never touched this show."""
        try:
            row = self._override_row(user_id, show_id)
        except SQLAlchemyError as e:
            raise CollaboratorUnavailableError("store", "Override store is unavailable") from e
        return _to_state(row) if row else OverrideState(show_id=show_id)

    def list_overrides(self, user_id: int) -> Dict[int, OverrideState]:
        try:
            rows = self.session.exec(select(ShowOverride).where(ShowOverride.user_id == user_id)).all()
        except SQLAlchemyError as e:
            raise CollaboratorUnavailableError("store", "Override store is unavailable") from e
        return {row.show_id: _to_state(row) for row in rows}

    def upsert_override(self, user_id: int, show_id: int,
                        update: Union[OverrideUpdate, Dict]) -> OverrideState:
        if not isinstance(update, OverrideUpdate):
            try:
                update = OverrideUpdate.model_validate(update)
            except ValidationError as e:
                raise InvalidOverrideError(str(e)) from e

        changes = update.model_dump(exclude_unset=True)
        if changes.get("priority_override") is not None and not 1 <= changes["priority_override"] <= 10:
            raise InvalidOverrideError("Priority must be between 1 and 10")
        # Booleans are never nullable in the table
        for flag in ("is_hidden", "is_completed"):
            if flag in changes and changes[flag] is None:
                del changes[flag]

        try:
            row = self._override_row(user_id, show_id)
        except SQLAlchemyError as e:
            raise CollaboratorUnavailableError("store", "Override store is unavailable") from e
        if row is None:
            row = ShowOverride(user_id=user_id, show_id=show_id)

        for field, value in changes.items():
            setattr(row, field, value)
        now = utc_now()
        row.updated_at = now
        row.last_updated_by_user = now

        try:
            self._ensure_user(user_id)
            self.session.add(row)
            self.session.commit()
            self.session.refresh(row)
        except SQLAlchemyError as e:
            self.session.rollback()
            raise CollaboratorUnavailableError("store", "Could not save override") from e

        logger.info(f"[WatchStore] Override for user {user_id} show {show_id}: {sorted(changes)}")
        return _to_state(row)

    # --- Follow graph ---

    def following_ids(self, user_id: int) -> List[int]:
        try:
            return list(self.session.exec(select(Follow.following_id).where(Follow.follower_id == user_id)).all())
        except SQLAlchemyError as e:
            raise CollaboratorUnavailableError("store", "Follow graph is unavailable") from e

    def _follow_row(self, follower_id: int, following_id: int) -> Optional[Follow]:
        return self.session.exec(
            select(Follow).where(Follow.follower_id == follower_id, Follow.following_id == following_id)
        ).first()

    def follow(self, follower_id: int, following_id: int) -> bool:
        if follower_id == following_id:
            return False
        try:
            if self._follow_row(follower_id, following_id):
                return False
            self._ensure_user(follower_id)
            self._ensure_user(following_id)
            self.session.add(Follow(follower_id=follower_id, following_id=following_id))
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            return False
        except SQLAlchemyError as e:
            self.session.rollback()
            raise CollaboratorUnavailableError("store", "Could not follow user") from e
        return True

    def unfollow(self, follower_id: int, following_id: int) -> bool:
        try:
            row = self._follow_row(follower_id, following_id)
            if not row:
                return False
            self.session.delete(row)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise CollaboratorUnavailableError("store", "Could not unfollow user") from e
        return True
