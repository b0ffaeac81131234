from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlmodel import Session

from apps.tracker.schemas import (
    ContinueWatchingItem, CategorizedFeed, WatchingRecommendation, WatchingStats, BingeSession,
    TrendingShow, ShowProgress, ShowSummary, OverrideState, OverrideUpdate, QueryOptions,
    WatchingPattern, WatchEvent,
)
from apps.tracker.services import ContinueWatchingService
from database import get_session

router = APIRouter(prefix="/tracker", tags=["tracker"])


def get_metadata(request: Request):
    return request.app.state.metadata


def get_service(session: Session = Depends(get_session), metadata=Depends(get_metadata)) -> ContinueWatchingService:
    return ContinueWatchingService(session, metadata)


def feed_options(
    include_hidden: bool = False,
    include_completed: bool = False,
    min_priority: Optional[float] = None,
    max_days_since_last_episode: Optional[float] = None,
    watching_patterns: Optional[List[WatchingPattern]] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> QueryOptions:
    return QueryOptions(
        include_hidden=include_hidden,
        include_completed=include_completed,
        min_priority=min_priority,
        max_days_since_last_episode=max_days_since_last_episode,
        watching_patterns=watching_patterns,
        limit=limit,
        offset=offset,
    )


# --- Continue watching ---

@router.get("/users/{user_id}/continue-watching", response_model=List[ContinueWatchingItem])
async def continue_watching(
    user_id: int,
    options: QueryOptions = Depends(feed_options),
    service: ContinueWatchingService = Depends(get_service),
):
    return await service.get_feed(user_id, options)

@router.get("/users/{user_id}/continue-watching/categories", response_model=List[CategorizedFeed])
async def continue_watching_categories(
    user_id: int,
    options: QueryOptions = Depends(feed_options),
    service: ContinueWatchingService = Depends(get_service),
):
    return await service.get_categorized_feed(user_id, options)

@router.get("/users/{user_id}/continue-watching/recommendations", response_model=List[WatchingRecommendation])
async def continue_watching_recommendations(
    user_id: int,
    limit: int = Query(3, ge=1, le=20),
    service: ContinueWatchingService = Depends(get_service),
):
    return await service.get_recommendations(user_id, limit)

@router.get("/users/{user_id}/continue-watching/attention", response_model=List[ContinueWatchingItem])
async def shows_needing_attention(
    user_id: int,
    min_days: Optional[float] = Query(None, ge=0),
    service: ContinueWatchingService = Depends(get_service),
):
    return await service.get_attention_needed(user_id, min_days)

@router.get("/users/{user_id}/stats", response_model=WatchingStats)
async def watching_stats(user_id: int, service: ContinueWatchingService = Depends(get_service)):
    return await service.get_stats(user_id)

@router.get("/users/{user_id}/sessions", response_model=List[BingeSession])
async def binge_sessions(
    user_id: int,
    active_days: Optional[float] = Query(None, gt=0),
    service: ContinueWatchingService = Depends(get_service),
):
    return await service.get_sessions(user_id, active_days)

@router.get("/users/{user_id}/trending", response_model=List[TrendingShow])
async def trending_among_follows(user_id: int, service: ContinueWatchingService = Depends(get_service)):
    return await service.get_trending_among_follows(user_id)

# --- Per show ---

@router.get("/users/{user_id}/shows/{show_id}/progress", response_model=ShowProgress)
async def show_progress(user_id: int, show_id: int, service: ContinueWatchingService = Depends(get_service)):
    progress = await service.get_show_progress(user_id, show_id)
    if progress is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No watched episodes for this show")
    return progress

@router.get("/users/{user_id}/shows/{show_id}/summary", response_model=ShowSummary)
async def show_summary(user_id: int, show_id: int, service: ContinueWatchingService = Depends(get_service)):
    summary = await service.get_show_summary(user_id, show_id)
    if summary is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No watched episodes for this show")
    return summary

@router.get("/users/{user_id}/shows/{show_id}/override", response_model=OverrideState)
def get_override(user_id: int, show_id: int, service: ContinueWatchingService = Depends(get_service)):
    return service.get_override(user_id, show_id)

@router.patch("/users/{user_id}/shows/{show_id}/override", response_model=OverrideState)
def update_override(
    user_id: int,
    show_id: int,
    update: OverrideUpdate,
    service: ContinueWatchingService = Depends(get_service),
):
    return service.update_override(user_id, show_id, update)

@router.post("/users/{user_id}/shows/{show_id}/hide", response_model=OverrideState)
def hide_show(user_id: int, show_id: int, hidden: bool = True,
              service: ContinueWatchingService = Depends(get_service)):
    return service.hide(user_id, show_id, hidden)

@router.post("/users/{user_id}/shows/{show_id}/complete", response_model=OverrideState)
def complete_show(user_id: int, show_id: int, completed: bool = True,
                  service: ContinueWatchingService = Depends(get_service)):
    return service.mark_completed(user_id, show_id, completed)

# --- Episodes ---

@router.post("/users/{user_id}/shows/{show_id}/episodes/{season_number}/{episode_number}",
             response_model=WatchEvent, status_code=status.HTTP_201_CREATED)
def mark_episode_watched(
    user_id: int,
    show_id: int,
    season_number: int,
    episode_number: int,
    watched_at: Optional[datetime] = None,
    service: ContinueWatchingService = Depends(get_service),
):
    return service.mark_watched(user_id, show_id, season_number, episode_number, watched_at)

@router.delete("/users/{user_id}/shows/{show_id}/episodes/{season_number}/{episode_number}")
def unmark_episode_watched(
    user_id: int,
    show_id: int,
    season_number: int,
    episode_number: int,
    watched_at: Optional[datetime] = None,
    service: ContinueWatchingService = Depends(get_service),
):
    removed = service.unmark_watched(user_id, show_id, season_number, episode_number, watched_at)
    if not removed:
        return Response(status_code=404)
    return {"removed": removed}

# --- Follows ---

@router.post("/users/{user_id}/follow/{other_id}")
def follow_user(user_id: int, other_id: int, service: ContinueWatchingService = Depends(get_service)):
    if user_id == other_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Users cannot follow themselves")
    return {"following": True, "created": service.follow(user_id, other_id)}

@router.delete("/users/{user_id}/follow/{other_id}")
def unfollow_user(user_id: int, other_id: int, service: ContinueWatchingService = Depends(get_service)):
    if not service.unfollow(user_id, other_id):
        return Response(status_code=404)
    return {"following": False}
