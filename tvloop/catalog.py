"""
Catalog builder: ordered episode list of a show with multi-part detection
"""

import json
import logging
import os
import time
from pathlib import Path
from typing import Callable

from .models import CatalogEntry, MultiPart, PartRole, ShowConfig
from .parsing import part_number
from .tmdb import TmdbClient

logger = logging.getLogger(__name__)

# Following entries inspected after a "Part 1"
MULTI_PART_LOOKAHEAD = 3
# Pause between season requests, keeps well under the TMDB rate limit
SEASON_PAUSE = 0.25


def detect_multi_parts(catalog: list[CatalogEntry]) -> int:
    """
    Link consecutive "Part 1", "Part 2", ... episodes of a season

    The first part becomes the primary and lists every episode of the
    group, itself first; the others become secondaries pointing back to it.
    Entries are modified in place.

    Returns:
        Number of groups found
    """
    groups = 0
    for i, entry in enumerate(catalog):
        if part_number(entry.title) != 1:
            continue

        parts = [entry]
        for following in catalog[i + 1 : i + 1 + MULTI_PART_LOOKAHEAD]:
            if following.season != entry.season:
                break
            if part_number(following.title) != len(parts) + 1:
                break
            parts.append(following)

        if len(parts) < 2:
            continue

        episodes = [p.episode for p in parts]
        entry.multi_part = MultiPart(
            role=PartRole.PRIMARY, part_count=len(parts), episode_numbers=episodes
        )
        for part in parts[1:]:
            part.multi_part = MultiPart(
                role=PartRole.SECONDARY, primary_episode=entry.episode
            )
        groups += 1
        logger.info(
            f"Multi-part: {entry.show} S{entry.season} "
            f"E{'-'.join(str(e) for e in episodes)} \"{entry.title}\""
        )
    return groups


class CatalogBuilder:
    """Builds catalogs from the metadata provider, cached on disk per show"""

    def __init__(
        self,
        metadata: TmdbClient,
        cache_dir: str | Path | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.metadata = metadata
        self.cache_dir = Path(cache_dir) if cache_dir else None
        self._sleep = sleep

    def cache_path(self, show: ShowConfig) -> Path | None:
        if not self.cache_dir:
            return None
        return self.cache_dir / f"{show.id}.catalog.json"

    def build(self, show: ShowConfig, refresh: bool = False) -> list[CatalogEntry]:
        """
        Catalog of a show in (season, episode) order

        Args:
            show: Show to build
            refresh: Ignore the cached catalog and query the provider again

        Returns:
            List of CatalogEntry, multi-part descriptors attached
        """
        if not refresh:
            cached = self._load_cache(show)
            if cached is not None:
                logger.info(f"{show.title}: using cached catalog ({len(cached)} episodes)")
                return cached

        logger.info(f"Building catalog for {show.title} (TMDB {show.id})...")
        seasons = self.metadata.get_season_numbers(show.id)

        catalog: list[CatalogEntry] = []
        for index, season in enumerate(seasons):
            if index:
                self._sleep(SEASON_PAUSE)
            for ep in self.metadata.get_season(show.id, season):
                catalog.append(
                    CatalogEntry(
                        show_id=show.id,
                        show=show.title,
                        season=ep.get("season") or season,
                        episode=ep["number"],
                        title=ep.get("title") or f"Episode {ep['number']}",
                        synopsis=ep.get("synopsis") or "",
                        runtime=ep.get("runtime") or show.default_runtime,
                        thumbnail=ep.get("thumbnail"),
                        air_date=ep.get("air_date"),
                    )
                )

        catalog.sort(key=lambda e: (e.season, e.episode))
        detect_multi_parts(catalog)
        logger.info(f"{show.title}: {len(catalog)} episodes across {len(seasons)} seasons")

        if catalog:
            self._save_cache(show, catalog)
        return catalog

    def _load_cache(self, show: ShowConfig) -> list[CatalogEntry] | None:
        path = self.cache_path(show)
        if not path or not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return [CatalogEntry.from_dict(e) for e in data["episodes"]]
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring unreadable catalog cache {path}: {e}")
            return None

    def _save_cache(self, show: ShowConfig, catalog: list[CatalogEntry]):
        path = self.cache_path(show)
        if not path:
            return
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(f"{path.name}.tmp.{os.getpid()}")
        payload = {"showId": show.id, "episodes": [e.to_dict() for e in catalog]}
        tmp.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        os.replace(tmp, path)
