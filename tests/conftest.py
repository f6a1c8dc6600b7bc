"""Shared fixtures for the tvloop test suite."""

import pytest

from tvloop.downloader_utils import PathManager
from tvloop.models import CatalogEntry, InventoryEntry, ShowConfig
from tvloop.state import StateStore


@pytest.fixture
def office():
    return ShowConfig(
        id=2316,
        title="The Office",
        dir_name="The Office",
        search_aliases=["The Office US", "The Office"],
        prefer_tags=["Superfan"],
    )


@pytest.fixture
def american_dad():
    return ShowConfig(id=1433, title="American Dad", dir_name="American Dad")


@pytest.fixture
def paths(tmp_path):
    return PathManager(tmp_path / "library")


@pytest.fixture
def store(tmp_path):
    return StateStore(tmp_path / "library" / ".tvloop")


@pytest.fixture
def make_catalog():
    """Factory: {season: [titles]} -> ordered catalog entries"""

    def _make(show: ShowConfig, seasons: dict[int, list[str]], runtime: int = 22):
        return [
            CatalogEntry(
                show_id=show.id,
                show=show.title,
                season=season,
                episode=number,
                title=title,
                runtime=runtime,
            )
            for season, titles in sorted(seasons.items())
            for number, title in enumerate(titles, start=1)
        ]

    return _make


@pytest.fixture
def make_inventory():
    """Factory: n entries of one show, season 1, fixed duration"""

    def _make(show: str, count: int, minutes: int = 22, season: int = 1, show_id: int = 0):
        return [
            InventoryEntry(
                show=show,
                show_id=show_id,
                season=season,
                episode=n,
                episode_end=n,
                title=f"{show} {n}",
                file_path=f"/lib/{show}/S{season:02d}E{n:02d}.mkv",
                duration_ms=minutes * 60_000,
            )
            for n in range(1, count + 1)
        ]

    return _make
