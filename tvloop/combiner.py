"""
Multi-part combiner: joins the part files of one story with ffmpeg
"""

import logging
import os
import shutil
import subprocess
from pathlib import Path

from .downloader_utils import ORIGINALS_DIR, PathManager
from .models import CatalogEntry, ShowConfig
from .parsing import COMBINING_MARKER

logger = logging.getLogger(__name__)

CONCAT_LIST = ".concat_list.txt"
FFMPEG_TIMEOUT = 300


class MultiPartCombiner:
    """Lossless concatenation (stream copy) of multi-part episodes"""

    def __init__(self, paths: PathManager, ffmpeg: str = "ffmpeg"):
        self.paths = paths
        self.ffmpeg = ffmpeg

    def combine(self, show: ShowConfig, primary: CatalogEntry) -> Path | None:
        """
        Combine every part of a primary multi-part episode

        ffmpeg writes to "<name>.combining.<ext>", renamed to the final
        name once it exits cleanly. Parts are moved to the season's
        .originals directory on success and never deleted. On failure the
        partial output and the concat list are removed and the parts stay
        in place for the next run.

        Returns:
            Path of the combined file, or None when parts are missing or
            ffmpeg failed
        """
        if not primary.multi_part or not primary.multi_part.is_primary:
            return None
        episodes = primary.multi_part.episode_numbers
        season = primary.season
        directory = self.paths.episode_dir(show, season)

        part_files = []
        for number in episodes:
            existing = self.paths.find_existing_file(show, season, number)
            if existing is None:
                logger.warning(f"Cannot combine: missing S{season}E{number} for {show.title}")
                return None
            part_files.append(existing)

        # A range file found for every part means the story is already combined
        if len(set(part_files)) == 1 and len(part_files) > 1:
            return part_files[0]

        ext = part_files[0].suffix.lstrip(".")
        combined_name = self.paths.combined_filename(show, season, episodes, primary.title, ext)
        combined_path = directory / combined_name
        if combined_path.exists():
            logger.info(f"Combined file already exists: {combined_name}")
            self._archive_parts(directory, [p for p in part_files if p != combined_path])
            return combined_path

        # ffmpeg picks the muxer from the extension, so the marker goes before it
        work_path = combined_path.with_name(
            f"{combined_path.stem}{COMBINING_MARKER}{combined_path.suffix}"
        )
        work_path.unlink(missing_ok=True)

        concat_file = directory / CONCAT_LIST
        concat_file.write_text(
            "\n".join("file '{}'".format(str(f).replace("'", "'\\''")) for f in part_files),
            encoding="utf-8",
        )

        logger.info(f"Combining {len(part_files)} parts: {combined_name}")
        cmd = [
            self.ffmpeg,
            "-f", "concat",
            "-safe", "0",
            "-i", str(concat_file),
            "-c", "copy",
            str(work_path),
        ]
        try:
            result = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                timeout=FFMPEG_TIMEOUT,
            )
            if result.returncode != 0:
                raise RuntimeError(result.stderr.strip()[-500:] or f"exit {result.returncode}")
        except (OSError, subprocess.SubprocessError, RuntimeError) as e:
            logger.error(f"Combine failed for {combined_name}: {e}")
            work_path.unlink(missing_ok=True)
            concat_file.unlink(missing_ok=True)
            return None

        os.replace(work_path, combined_path)
        concat_file.unlink(missing_ok=True)
        self._archive_parts(directory, part_files)

        logger.info(f"Combined successfully: {combined_name}")
        return combined_path

    @staticmethod
    def _archive_parts(directory: Path, part_files: list[Path]):
        """Move the part files that are still in the season directory to .originals"""
        originals = directory / ORIGINALS_DIR
        for part in part_files:
            if part.parent != directory or not part.exists():
                continue
            originals.mkdir(parents=True, exist_ok=True)
            shutil.move(str(part), str(originals / part.name))
