"""
Zurg mount search (instant-lookup provider)

Files already cached by the debrid service are exposed on a local mount;
copying one is immediate, no torrent round trip needed.
"""

import logging
import math
import os
from pathlib import Path

from .models import InstantMatch
from .parsing import is_video_file, normalize_title, parse_episode, resolution

logger = logging.getLogger(__name__)

# 7 MB/min accepts a decent 720p sitcom episode (154 MB for 22 min)
MIN_MB_PER_MINUTE = 7.0
SEARCH_SUBDIRS = ("shows", "__all__")
MAX_DEPTH = 4


def title_variations(title: str, year: str | None = None) -> list[str]:
    """Spelling variants of a show title as they appear in release names"""
    base = title.strip()
    variations = [base, base.replace("'", "")]
    lower = base.lower()
    if " us" not in lower and "(us)" not in lower:
        variations += [f"{base} US", f"{base} (US)"]
    if year:
        variations += [f"{base} {year}", f"{base} ({year})"]
    seen = []
    for v in variations:
        if v and v not in seen:
            seen.append(v)
    return seen


def matches_show(path_part: str, variations: list[str]) -> bool:
    """Containment either way, or at least 60% of the significant title words"""
    normal_path = normalize_title(path_part)
    if not normal_path:
        return False
    path_words = [w for w in normal_path.split() if len(w) > 2]
    for variation in variations:
        normal_title = normalize_title(variation)
        if not normal_title:
            continue
        if normal_title in normal_path or normal_path in normal_title:
            return True
        title_words = [w for w in normal_title.split() if len(w) > 2]
        if title_words:
            hits = sum(1 for w in title_words if w in path_words)
            if hits >= math.ceil(len(title_words) * 0.6):
                return True
    return False


class ZurgLookup:
    """Search the Zurg mount for an episode, with a size-per-minute quality gate"""

    def __init__(
        self,
        mount: str | Path,
        enabled: bool = True,
        min_mb_per_minute: float = MIN_MB_PER_MINUTE,
    ):
        self.mount = Path(mount)
        self.enabled = enabled
        self.min_mb_per_minute = min_mb_per_minute

    def _walk(self, directory: Path):
        base_depth = len(directory.parts)
        for dirpath, dirnames, filenames in os.walk(directory):
            if len(Path(dirpath).parts) - base_depth >= MAX_DEPTH - 1:
                dirnames[:] = []
            for name in filenames:
                if is_video_file(name):
                    yield Path(dirpath) / name

    def find_episode(
        self,
        title: str,
        season: int,
        episode: int,
        runtime: int | None = None,
        year: str | None = None,
    ) -> tuple[InstantMatch | None, InstantMatch | None]:
        """
        Look up one episode on the mount

        Args:
            title: Show title
            season: Release season number
            episode: Episode number
            runtime: Episode runtime in minutes, used for the quality gate
            year: First air year, adds title variants

        Returns:
            (best match meeting the quality gate, best fallback below it);
            the fallback is only returned when no match passes the gate
        """
        if not self.enabled:
            return None, None
        if not self.mount.is_dir():
            logger.warning(f"Zurg mount not accessible at {self.mount}")
            return None, None

        variations = title_variations(title, year)
        minutes = runtime or 22
        matches: list[InstantMatch] = []

        for subdir in SEARCH_SUBDIRS:
            search_dir = self.mount / subdir
            if not search_dir.is_dir():
                continue
            for path in self._walk(search_dir):
                marker = parse_episode(path.name)
                if not marker or marker.season != season or not marker.covers(episode):
                    continue
                if not (
                    matches_show(path.name, variations)
                    or matches_show(path.parent.name, variations)
                ):
                    continue
                try:
                    size = path.stat().st_size
                except OSError:
                    continue
                mb_per_minute = round(size / (1024 * 1024) / minutes, 1)
                matches.append(
                    InstantMatch(
                        file_path=str(path),
                        file_size=size,
                        mb_per_minute=mb_per_minute,
                        meets_quality_threshold=mb_per_minute >= self.min_mb_per_minute,
                        resolution=resolution(path.name),
                    )
                )

        if not matches:
            logger.info(f"Zurg: no match for {title} S{season:02d}E{episode:02d}")
            return None, None

        matches.sort(key=lambda m: m.mb_per_minute, reverse=True)
        best = next((m for m in matches if m.meets_quality_threshold), None)
        if best:
            logger.info(f"Zurg match: {best.file_path} ({best.mb_per_minute} MB/min)")
            return best, None
        logger.warning(f"Zurg: only low quality fallback for {title} S{season:02d}E{episode:02d}")
        return None, matches[0]
