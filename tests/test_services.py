"""Tests for the continue-watching service over a real session."""

from datetime import timedelta

import httpx
import pytest

from apps.core.exceptions import InvalidOverrideError
from apps.core.tmdb import TMDBService
from apps.tracker.schemas import FeedCategory, OverrideUpdate, QueryOptions, WatchingPattern
from apps.tracker.services import ContinueWatchingService

from conftest import NOW, FakeMetadata, days_ago, make_metadata


@pytest.fixture
def service(session, metadata) -> ContinueWatchingService:
    return ContinueWatchingService(session, metadata)


def seed_binge(service, show_id=1, user_id=1):
    for i in range(3):
        service.mark_watched(user_id, show_id, 1, i + 1, days_ago(1) + timedelta(hours=i))


@pytest.mark.asyncio
async def test_feed_orders_by_priority(service) -> None:
    seed_binge(service, show_id=1)
    service.mark_watched(1, 2, 1, 1, days_ago(45))
    service.mark_watched(1, 3, 1, 1, days_ago(5))

    feed = await service.get_feed(1, now=NOW)

    assert [i.show_id for i in feed] == [1, 3, 2]
    assert feed[0].watching_pattern == WatchingPattern.BINGE_WATCHING
    assert (feed[0].final_next_season, feed[0].final_next_episode) == (1, 4)
    assert feed[0].show_name == "Slow Horses"
    assert feed[2].final_priority_score == 0


@pytest.mark.asyncio
async def test_hidden_and_completed_shows_leave_the_feed(service) -> None:
    seed_binge(service, show_id=1)
    service.mark_watched(1, 2, 1, 1, days_ago(3))
    service.mark_watched(1, 3, 1, 1, days_ago(3))
    service.hide(1, 2)
    service.mark_completed(1, 3)

    feed = await service.get_feed(1, now=NOW)
    everything = await service.get_feed(1, QueryOptions(include_hidden=True, include_completed=True), now=NOW)

    assert [i.show_id for i in feed] == [1]
    assert len(everything) == 3


@pytest.mark.asyncio
async def test_manual_next_episode_and_priority(service) -> None:
    service.mark_watched(1, 3, 1, 2, days_ago(200))
    service.set_next_episode(1, 3, 2, 5, notes="skipped ahead")
    service.set_priority(1, 3, 8)

    feed = await service.get_feed(1, now=NOW)

    assert (feed[0].final_next_season, feed[0].final_next_episode) == (2, 5)
    assert feed[0].watching_pattern == WatchingPattern.INACTIVE
    assert feed[0].final_priority_score == 32
    assert feed[0].recommendation_strength == "high"


def test_priority_out_of_range(service) -> None:
    with pytest.raises(InvalidOverrideError):
        service.set_priority(1, 3, 0)
    with pytest.raises(InvalidOverrideError):
        service.set_next_episode(1, 3, 0, 1)


@pytest.mark.asyncio
async def test_metadata_failure_degrades_single_show(session) -> None:
    metadata = FakeMetadata({1: make_metadata(1, 3)}, failing={2})
    service = ContinueWatchingService(session, metadata)
    service.mark_watched(1, 1, 1, 3, days_ago(1))
    service.mark_watched(1, 2, 1, 3, days_ago(1))

    feed = {i.show_id: i for i in await service.get_feed(1, now=NOW)}

    assert feed[1].metadata_incomplete is False
    assert feed[1].needs_finish is True
    assert feed[2].metadata_incomplete is True
    assert (feed[2].final_next_season, feed[2].final_next_episode) == (1, 4)


@pytest.mark.asyncio
async def test_malformed_tmdb_response_degrades_single_show(session) -> None:
    def handler(request):
        if request.url.path.endswith("/tv/2"):
            return httpx.Response(200, text="<html>bad gateway</html>")
        return httpx.Response(200, json={"number_of_seasons": 1, "seasons": [{"season_number": 1, "episode_count": 3}]})

    client = httpx.AsyncClient(base_url="https://tmdb.test/3", transport=httpx.MockTransport(handler))
    tmdb = TMDBService(client=client)
    service = ContinueWatchingService(session, tmdb)
    service.mark_watched(1, 1, 1, 2, days_ago(1))
    service.mark_watched(1, 2, 1, 2, days_ago(1))

    feed = {i.show_id: i for i in await service.get_feed(1, now=NOW)}
    await tmdb.close()

    assert sorted(feed) == [1, 2]
    assert feed[1].metadata_incomplete is False
    assert (feed[1].final_next_season, feed[1].final_next_episode) == (1, 3)
    assert feed[2].metadata_incomplete is True


@pytest.mark.asyncio
async def test_finished_show_lands_in_finish_category(service) -> None:
    for episode in range(1, 7):
        service.mark_watched(1, 2, 1, episode, days_ago(3, episode))

    groups = await service.get_categorized_feed(1, now=NOW)

    assert groups[0].category == FeedCategory.FINISH_THE_SERIES
    assert groups[0].items[0].show_id == 2


@pytest.mark.asyncio
async def test_metadata_fetched_once_per_show(service, metadata) -> None:
    seed_binge(service, show_id=1)
    service.mark_watched(1, 2, 1, 1, days_ago(2))

    await service.get_feed(1, now=NOW)

    assert sorted(metadata.calls) == [1, 2]


@pytest.mark.asyncio
async def test_unwatching_moves_pointer_back(service) -> None:
    service.mark_watched(1, 1, 1, 1, days_ago(2))
    service.mark_watched(1, 1, 1, 2, days_ago(1))
    service.unmark_watched(1, 1, 1, 2)

    progress = await service.get_show_progress(1, 1)

    assert (progress.naive_next_season, progress.naive_next_episode) == (1, 2)
    assert await service.get_show_progress(1, 99) is None


@pytest.mark.asyncio
async def test_show_summary_uses_episode_details(service) -> None:
    service.mark_watched(1, 2, 1, 1, days_ago(2))

    summary = await service.get_show_summary(1, 2, now=NOW)

    assert summary.next_episode.name == "Episode 2"
    assert summary.total_episodes == 6
    assert summary.watched_episodes == 1


@pytest.mark.asyncio
async def test_sessions_stats_and_recommendations(service) -> None:
    seed_binge(service, show_id=1)
    service.mark_watched(1, 2, 1, 1, days_ago(20))
    service.update_override(1, 2, OverrideUpdate(is_completed=True))

    sessions = await service.get_sessions(1, now=NOW)
    stats = await service.get_stats(1, now=NOW)
    recs = await service.get_recommendations(1, now=NOW)

    assert len(sessions) == 1 and sessions[0].show_id == 1
    assert stats.active_shows == 1
    assert stats.completed_shows == 1
    assert stats.total_episodes_watched == 4
    assert [r.show_id for r in recs] == [1]


@pytest.mark.asyncio
async def test_attention_and_trending(service) -> None:
    service.mark_watched(1, 1, 1, 1, days_ago(20))
    service.mark_watched(1, 3, 1, 1, days_ago(2))
    service.mark_watched(2, 3, 1, 1, days_ago(1))
    service.mark_watched(3, 3, 1, 2, days_ago(1))
    service.mark_watched(3, 1, 1, 2, days_ago(1))
    service.follow(1, 2)
    service.follow(1, 3)

    attention = await service.get_attention_needed(1, now=NOW)
    trending = await service.get_trending_among_follows(1, now=NOW)

    assert [i.show_id for i in attention] == [1]
    assert trending[0].show_id == 3
    assert trending[0].watchers_count == 2
