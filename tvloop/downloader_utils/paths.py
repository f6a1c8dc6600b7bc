"""
Path management utilities for episode files
"""

import logging
import re
from pathlib import Path

from ..models import CatalogEntry, ShowConfig
from ..parsing import is_finished_video, is_video_file, parse_episode, strip_part_marker

logger = logging.getLogger(__name__)

ORIGINALS_DIR = ".originals"


class PathManager:
    """Manages paths and filenames of the channel library

    Layout: <root>/<show dir>/Season NN/<show dir> - SxxEyy - Title.ext
    """

    def __init__(self, root_directory: str | Path):
        self.root = Path(root_directory)

    @staticmethod
    def sanitize_filename(filename: str) -> str:
        """Clean a filename to make it compatible with filesystems"""
        # Replace invalid characters
        filename = re.sub(r'[<>:"/\\|?*]', "", filename)
        # Replace multiple spaces
        filename = re.sub(r"\s+", " ", filename)
        return filename.strip()

    def show_directory(self, show: ShowConfig) -> Path:
        return self.root / show.dir_name

    def episode_dir(self, show: ShowConfig, season: int) -> Path:
        return self.show_directory(show) / f"Season {season:02d}"

    @staticmethod
    def episode_filename(
        show: ShowConfig,
        season: int,
        episode: int,
        title: str,
        ext: str,
        is_variant: bool = False,
    ) -> str:
        """
        Build the filename of a single episode
        Format: ShowDir - S01E02 - Title.ext, with a " (Superfan)" style
        suffix when the file is a preferred-tag variant
        """
        suffix = f" ({show.prefer_tags[0].title()})" if is_variant and show.prefer_tags else ""
        ext = ext.lstrip(".") or "mkv"
        return PathManager.sanitize_filename(
            f"{show.dir_name} - S{season:02d}E{episode:02d} - {title}{suffix}.{ext}"
        )

    @staticmethod
    def combined_filename(
        show: ShowConfig, season: int, episodes: list[int], title: str, ext: str
    ) -> str:
        """Filename of a combined multi-part file: ShowDir - S01E05-E06 - Title.ext"""
        episode_range = f"E{episodes[0]:02d}-E{episodes[-1]:02d}"
        clean_title = strip_part_marker(title)
        ext = ext.lstrip(".") or "mkv"
        return PathManager.sanitize_filename(
            f"{show.dir_name} - S{season:02d}{episode_range} - {clean_title}.{ext}"
        )

    def destination(
        self,
        show: ShowConfig,
        entry: CatalogEntry,
        source_name: str,
        release_title: str = "",
    ) -> Path:
        """
        Destination path of a file fetched for a catalog entry

        Args:
            show: Owning show
            entry: Catalog entry the file was matched to
            source_name: Name of the remote file, used for the extension
                and to detect a preferred-tag variant
            release_title: Release the file came from, also checked for
                the preferred tag
        """
        ext = Path(source_name).suffix.lstrip(".")
        if not is_video_file(f"x.{ext}"):
            ext = "mkv"
        lower = f"{source_name} {release_title}".lower()
        is_variant = bool(show.prefer_tags) and show.prefer_tags[0] in lower
        filename = self.episode_filename(
            show, entry.season, entry.episode, entry.title, ext, is_variant
        )
        return self.episode_dir(show, entry.season) / filename

    def find_existing_file(self, show: ShowConfig, season: int, episode: int) -> Path | None:
        """
        Find a video file on disk for an episode

        Matches a file whose marker is exactly SxxEyy, or a combined file
        whose episode range contains the episode. Exact matches win.
        """
        directory = self.episode_dir(show, season)
        if not directory.is_dir():
            return None

        covering = None
        try:
            names = sorted(p.name for p in directory.iterdir() if p.is_file())
        except OSError as e:
            logger.warning(f"Cannot list {directory}: {e}")
            return None

        for name in names:
            if not is_finished_video(name):
                continue
            marker = parse_episode(name)
            if not marker or marker.season != season:
                continue
            if marker.episode == episode and not marker.is_range:
                return directory / name
            if covering is None and marker.covers(episode):
                covering = directory / name
        return covering
