"""
Prowlarr API client (indexer search provider)
"""

import logging
import re
from urllib.parse import quote

from .base_client import BaseApiClient
from .errors import ConfigurationError, TvloopError
from .models import SourceCandidate
from .retry import RetryPolicy

logger = logging.getLogger(__name__)

# Release groups whose torrents the debrid service tends to refuse
BLOCKLIST_GROUPS = ["YIFY", "YTS", "RARBG"]
MIN_SEEDERS = 5
MIN_SIZE_GB = 0.05
MAX_SIZE_GB = 100
MAX_RESULTS = 50

_HASH_IN_MAGNET = re.compile(r"btih:([a-zA-Z0-9]{40})", re.IGNORECASE)
_HASH_IN_GUID = re.compile(r"([a-fA-F0-9]{40})")


def build_magnet(info_hash: str, title: str) -> str:
    return f"magnet:?xt=urn:btih:{info_hash}&dn={quote(title)}"


class ProwlarrClient(BaseApiClient):
    """Client to search torrent indexers through Prowlarr"""

    provider_name = "Prowlarr"

    def __init__(
        self,
        url: str,
        api_key: str,
        retry: RetryPolicy | None = None,
        min_seeders: int = MIN_SEEDERS,
    ):
        if not api_key:
            raise ConfigurationError("PROWLARR_API_KEY is not set")
        super().__init__(
            url,
            headers={"X-Api-Key": api_key, "Content-Type": "application/json"},
            retry=retry,
        )
        self.min_seeders = min_seeders

    def search(self, query: str) -> list[SourceCandidate]:
        """
        Run one free-text search and return usable candidates

        Results below the seeder floor, outside the size window, from
        blocklisted groups or without a resolvable info hash are dropped.
        """
        data = self._get("api/v1/search", params={"query": query, "type": "search"})
        results = []
        for item in data or []:
            candidate = self._to_candidate(item)
            if candidate is not None:
                results.append(candidate)

        results.sort(key=lambda c: c.seeders, reverse=True)
        results = results[:MAX_RESULTS]
        logger.info(f"Found {len(results)} torrents for: {query}")
        return results

    def search_episode(self, title: str, season: int, episode: int) -> list[SourceCandidate]:
        """Search a single episode, deduplicated by info hash"""
        queries = [f"{title} S{season:02d}E{episode:02d}", f"{title} {season}x{episode:02d}"]
        seen: set[str] = set()
        results = []
        for query in queries:
            for candidate in self.search(query):
                key = (candidate.info_hash or candidate.locator).lower()
                if key in seen:
                    continue
                seen.add(key)
                results.append(candidate)
        return results

    def _to_candidate(self, item: dict) -> SourceCandidate | None:
        title = item.get("title") or ""
        seeders = item.get("seeders") or 0
        size = item.get("size") or 0

        if seeders < self.min_seeders:
            return None
        size_gb = size / (1024**3)
        if not MIN_SIZE_GB < size_gb < MAX_SIZE_GB:
            return None
        if any(group in title.upper() for group in BLOCKLIST_GROUPS):
            return None

        magnet_url = item.get("magnetUrl") or ""
        info_hash = None
        magnet = None
        if magnet_url.startswith("magnet:"):
            magnet = magnet_url
            match = _HASH_IN_MAGNET.search(magnet)
            info_hash = match.group(1) if match else None
        elif item.get("infoHash"):
            info_hash = item["infoHash"]
            magnet = build_magnet(info_hash, title)
        else:
            # downloadUrl-only results redirect to magnets the debrid API cannot take
            match = _HASH_IN_GUID.search(item.get("guid") or "")
            if match:
                info_hash = match.group(1)
                magnet = build_magnet(info_hash, title)

        if not magnet or not info_hash:
            logger.debug(f"Skipping source without info hash: {title[:50]}")
            return None

        return SourceCandidate(
            title=title,
            size=size,
            seeders=seeders,
            locator=magnet,
            info_hash=info_hash.lower(),
        )

    def test_connection(self) -> bool:
        try:
            self._get("api/v1/health")
            return True
        except TvloopError as e:
            logger.error(f"Connection test failed: {e}")
            return False
