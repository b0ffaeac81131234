import logging
import httpx
from typing import Optional, Dict, Any
from config import settings
from apps.core.exceptions import MetadataUnavailableError
from apps.tracker.schemas import ShowMetadata, NextEpisodeInfo

logger = logging.getLogger(__name__)


class TMDBService:
    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self.api_key = settings.TMDB_API_KEY
        self.base_url = settings.TMDB_BASE_URL
        self.client = client or httpx.AsyncClient(
            base_url=self.base_url,
            params={"api_key": self.api_key, "language": "en-US"},
            timeout=settings.TMDB_TIMEOUT_SECONDS,
        )

    async def close(self):
        await self.client.aclose()

    async def _get(self, path: str, show_id: int) -> Optional[Dict[str, Any]]:
        """GET a TMDB path. 404 comes back as None; any other failure is a MetadataUnavailableError."""
        try:
            response = await self.client.get(path)
        except httpx.HTTPError as e:
            logger.warning(f"[TMDB] {path} failed: {e}")
            raise MetadataUnavailableError(show_id, f"TMDB request failed: {e}") from e

        if response.status_code == 404:
            return None
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning(f"[TMDB] {path} returned {response.status_code}")
            raise MetadataUnavailableError(show_id, f"TMDB returned {response.status_code}") from e
        try:
            return response.json()
        except ValueError as e:
            logger.warning(f"[TMDB] {path} returned a body that is not JSON")
            raise MetadataUnavailableError(show_id, "TMDB returned malformed JSON") from e

    async def get_details(self, tmdb_id: int) -> Optional[Dict[str, Any]]:
        """Get full details for a TV show."""
        return await self._get(f"/tv/{tmdb_id}", tmdb_id)

    async def get_show_metadata(self, show_id: int) -> ShowMetadata:
        data = await self.get_details(show_id)
        if not data:
            # Unknown show: no season information at all
            return ShowMetadata(show_id=show_id)
        try:
            return parse_show_metadata(show_id, data)
        except (AttributeError, ValueError) as e:
            logger.warning(f"[TMDB] Unusable details for show {show_id}: {e}")
            raise MetadataUnavailableError(show_id, "TMDB returned unusable show details") from e

    async def get_episode_details(self, show_id: int, season_number: int,
                                  episode_number: int) -> Optional[NextEpisodeInfo]:
        data = await self._get(f"/tv/{show_id}/season/{season_number}/episode/{episode_number}", show_id)
        if not data:
            return None
        try:
            return NextEpisodeInfo(
                season_number=season_number,
                episode_number=episode_number,
                name=data.get("name"),
                overview=data.get("overview"),
                air_date=data.get("air_date"),
                still_path=data.get("still_path"),
                runtime=data.get("runtime"),
                vote_average=data.get("vote_average"),
            )
        except (AttributeError, ValueError) as e:
            raise MetadataUnavailableError(show_id, "TMDB returned unusable episode details") from e


def parse_show_metadata(show_id: int, data: Dict[str, Any]) -> ShowMetadata:
    episodes_per_season = {}
    for season in data.get("seasons") or []:
        number = season.get("season_number")
        count = season.get("episode_count")
        try:
            episodes_per_season[int(number)] = int(count)
        except (TypeError, ValueError):
            logger.debug(f"[TMDB] Skipping unusable season {number!r} for show {show_id}")

    total_seasons = data.get("number_of_seasons")
    if not isinstance(total_seasons, int):
        total_seasons = None
    if total_seasons is None and episodes_per_season:
        # Season 0 holds specials and does not count as a season
        total_seasons = len([s for s in episodes_per_season if s > 0])

    runtimes = data.get("episode_run_time") or []
    return ShowMetadata(
        show_id=show_id,
        name=data.get("name"),
        poster_path=data.get("poster_path"),
        total_seasons=total_seasons,
        episodes_per_season=episodes_per_season,
        episode_runtime=runtimes[0] if runtimes else None,
    )
