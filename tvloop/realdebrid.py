"""
Real-Debrid API client (cache/download provider)
"""

import logging
import time
from typing import Callable

from .base_client import BaseApiClient
from .errors import ConfigurationError, ContentError, TvloopError
from .parsing import is_video_file
from .retry import RateLimiter, RetryPolicy

logger = logging.getLogger(__name__)

RD_BASE_URL = "https://api.real-debrid.com/rest/1.0"
ERROR_STATUSES = {"magnet_error", "error", "dead", "virus"}


class RealDebridClient(BaseApiClient):
    """Client for the debrid cache: add magnets, select files, fetch links"""

    provider_name = "Real-Debrid"

    def __init__(
        self,
        api_key: str,
        url: str = RD_BASE_URL,
        retry: RetryPolicy | None = None,
        rate_limiter: RateLimiter | None = None,
        files_timeout: float = 60,
        download_timeout: float = 1800,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        if not api_key:
            raise ConfigurationError("RD_API_KEY is not set")
        super().__init__(url, headers={"Authorization": f"Bearer {api_key}"}, retry=retry)
        self.rate_limiter = rate_limiter or RateLimiter(1.0)
        self.files_timeout = files_timeout
        self.download_timeout = download_timeout
        self._sleep = sleep
        self._clock = clock

    def add_magnet(self, magnet: str) -> str:
        """Submit a magnet; consecutive submissions are spaced by the rate limiter"""
        self.rate_limiter.wait()
        data = self._post("torrents/addMagnet", data={"magnet": magnet})
        return data["id"]

    def get_info(self, torrent_id: str) -> dict:
        return self._get(f"torrents/info/{torrent_id}")

    def wait_for_files(self, torrent_id: str) -> dict:
        """Poll until the torrent's file list is known"""
        start = self._clock()
        while self._clock() - start < self.files_timeout:
            info = self.get_info(torrent_id)
            if info.get("files"):
                return info
            self._raise_on_error_status(info)
            self._sleep(2)
        raise ContentError(f"Timeout waiting for file list of torrent {torrent_id}")

    def select_video_files(self, torrent_id: str, info: dict) -> list[dict]:
        """Select only the video files of the torrent, ordered by file id"""
        video_files = sorted(
            (f for f in info.get("files", []) if is_video_file(f.get("path", ""))),
            key=lambda f: f["id"],
        )
        if not video_files:
            raise ContentError("No video files in torrent")
        file_ids = ",".join(str(f["id"]) for f in video_files)
        self._post(f"torrents/selectFiles/{torrent_id}", data={"files": file_ids})
        return video_files

    def wait_for_download(self, torrent_id: str) -> dict:
        """
        Poll until the cache has the torrent

        Raises:
            ContentError when the torrent dies or the bounded wait expires
        """
        start = self._clock()
        last_log = start
        while self._clock() - start < self.download_timeout:
            info = self.get_info(torrent_id)
            status = info.get("status")
            if status == "downloaded":
                return info
            self._raise_on_error_status(info)

            now = self._clock()
            progress = info.get("progress") or 0
            if progress > 0 and now - last_log > 10:
                logger.info(f"Torrent {torrent_id}: {progress}% ({status})")
                last_log = now
            self._sleep(5)
        raise ContentError(
            f"Download timeout ({self.download_timeout / 60:.0f} min) for torrent {torrent_id}"
        )

    def unrestrict(self, link: str) -> str:
        """Resolve a hoster link to a direct, range-capable download URL"""
        data = self._post("unrestrict/link", data={"link": link})
        return data["download"]

    def fetch(self, magnet: str) -> tuple[list[dict], list[str]]:
        """
        Full cache flow for one magnet

        Returns:
            (video files ordered by id, access links in the same order)
        """
        torrent_id = self.add_magnet(magnet)
        info = self.wait_for_files(torrent_id)
        video_files = self.select_video_files(torrent_id, info)
        logger.info(f"Torrent {torrent_id}: {len(video_files)} video files, waiting for cache")
        done = self.wait_for_download(torrent_id)
        return video_files, list(done.get("links") or [])

    def _raise_on_error_status(self, info: dict):
        status = info.get("status")
        if status in ERROR_STATUSES:
            raise ContentError(f"Torrent error: {status}")

    def test_connection(self) -> bool:
        try:
            user = self._get("user")
            logger.info(f"Connected to Real-Debrid as {user.get('username', 'unknown')}")
            return True
        except TvloopError as e:
            logger.error(f"Connection test failed: {e}")
            return False
