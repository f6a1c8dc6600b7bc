"""
TMDB API client (metadata provider)
"""

import logging

from .base_client import BaseApiClient
from .errors import ConfigurationError, TvloopError
from .retry import RetryPolicy

logger = logging.getLogger(__name__)

TMDB_BASE_URL = "https://api.themoviedb.org/3"
TMDB_IMAGE_BASE = "https://image.tmdb.org/t/p/w780"


class TmdbClient(BaseApiClient):
    """Client to fetch show and season listings from TMDB"""

    provider_name = "TMDB"

    def __init__(
        self,
        api_key: str,
        url: str = TMDB_BASE_URL,
        retry: RetryPolicy | None = None,
    ):
        if not api_key:
            raise ConfigurationError("TMDB_API_KEY is not set")
        super().__init__(url, timeout=10, retry=retry)
        self.session.params = {"api_key": api_key}

    def get_show(self, show_id: int) -> dict:
        """Show details, including the list of seasons"""
        return self._get(f"tv/{show_id}")

    def get_season_numbers(self, show_id: int) -> list[int]:
        """Regular season numbers in ascending order (specials excluded)"""
        data = self.get_show(show_id)
        numbers = [
            s["season_number"]
            for s in data.get("seasons", [])
            if s.get("season_number", 0) > 0
        ]
        return sorted(numbers)

    def get_season(self, show_id: int, season_number: int) -> list[dict]:
        """
        Episodes of one season

        Returns:
            List of dicts with number, title, synopsis, runtime, thumbnail, air_date
        """
        data = self._get(f"tv/{show_id}/season/{season_number}")
        episodes = []
        for ep in data.get("episodes", []):
            still = ep.get("still_path")
            episodes.append(
                {
                    "season": ep.get("season_number", season_number),
                    "number": ep["episode_number"],
                    "title": ep.get("name"),
                    "synopsis": ep.get("overview") or "",
                    "runtime": ep.get("runtime"),
                    "thumbnail": f"{TMDB_IMAGE_BASE}{still}" if still else None,
                    "air_date": ep.get("air_date"),
                }
            )
        return episodes

    def test_connection(self) -> bool:
        try:
            self._get("configuration")
            return True
        except TvloopError as e:
            logger.error(f"Connection test failed: {e}")
            return False
