"""
Season numbering offsets

Some shows are numbered differently by the metadata provider and by
release groups (indexers follow TVDB). Offsets are declared per show in the
configuration as a mapping of metadata season -> release season.
"""

import logging

from .models import CatalogEntry, ShowConfig

logger = logging.getLogger(__name__)


def get_search_season(show: ShowConfig, season: int) -> int:
    """Release season number to use in searches and filename matching"""
    if not show.has_season_offset or not season:
        return season
    search_season = show.season_offsets.get(season, season)
    if search_season != season:
        logger.debug(f"{show.title}: metadata S{season} -> release S{search_season}")
    return search_season


def resolve_release_season(
    show: ShowConfig, catalog: list[CatalogEntry], release_season: int, episode: int
) -> CatalogEntry | None:
    """
    Map a (release season, episode) parsed from a filename back to the catalog

    Every catalog season whose release number equals release_season is
    tested in ascending order and the first one containing the episode
    wins. Two seasons mapping onto the same release season with the same
    episode number cannot be told apart from the filename; that case is
    logged and the first season is kept.
    """
    if not show.has_season_offset:
        return next(
            (e for e in catalog if e.season == release_season and e.episode == episode),
            None,
        )

    candidates = [
        entry
        for season in sorted({e.season for e in catalog})
        if get_search_season(show, season) == release_season
        for entry in catalog
        if entry.season == season and entry.episode == episode
    ]
    if len(candidates) > 1:
        seasons = ", ".join(f"S{c.season}" for c in candidates)
        logger.warning(
            f"{show.title}: release S{release_season}E{episode} is ambiguous "
            f"({seasons}), using S{candidates[0].season}"
        )
    return candidates[0] if candidates else None
