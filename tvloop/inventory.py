"""
Inventory scanner: playable files on disk with their probed durations
"""

import json
import logging
import subprocess
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from .downloader_utils import PathManager
from .models import InventoryEntry, ShowConfig
from .parsing import is_finished_video, parse_episode, season_from_dirname
from .state import StateStore
from .utils import episode_key, format_duration

logger = logging.getLogger(__name__)

# No TV episode runs past 2 hours; longer values come from corrupt containers
MAX_EPISODE_SECONDS = 7200
PROBE_TIMEOUT = 30
PROBE_WORKERS = 10


def parse_tag_duration(value: str) -> float:
    """Seconds of an MKV "HH:MM:SS.fffffffff" DURATION tag, 0 when malformed"""
    parts = (value or "").split(":")
    if len(parts) != 3:
        return 0.0
    try:
        return float(parts[0]) * 3600 + float(parts[1]) * 60 + float(parts[2])
    except ValueError:
        return 0.0


class MediaProbe:
    """Duration lookup through ffprobe"""

    def __init__(self, ffprobe: str = "ffprobe", timeout: float = PROBE_TIMEOUT):
        self.ffprobe = ffprobe
        self.timeout = timeout

    def probe_seconds(self, path: str | Path) -> float:
        """
        Raw duration in seconds, 0 when ffprobe fails

        The video stream duration is preferred over the container duration,
        which a malformed subtitle stream can corrupt.
        """
        cmd = [
            self.ffprobe,
            "-v", "quiet",
            "-print_format", "json",
            "-show_streams",
            "-show_format",
            str(path),
        ]
        try:
            result = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                timeout=self.timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning(f"ffprobe failed for {Path(path).name}: {e}")
            return 0.0
        if result.returncode != 0:
            logger.warning(f"ffprobe failed for {Path(path).name}: exit {result.returncode}")
            return 0.0

        try:
            data = json.loads(result.stdout or "{}")
        except ValueError as e:
            logger.warning(f"ffprobe returned invalid JSON for {Path(path).name}: {e}")
            return 0.0

        seconds = 0.0
        video = next(
            (s for s in data.get("streams", []) if s.get("codec_type") == "video"), None
        )
        if video:
            try:
                seconds = float(video.get("duration") or 0)
            except ValueError:
                seconds = 0.0
            if not seconds:
                seconds = parse_tag_duration((video.get("tags") or {}).get("DURATION", ""))

        if not seconds:
            try:
                seconds = float((data.get("format") or {}).get("duration") or 0)
            except ValueError:
                seconds = 0.0
        return seconds

    def duration_ms(self, path: str | Path, default_ms: int) -> int:
        """Probed duration in ms; default_ms when probing fails or exceeds 2 hours"""
        seconds = self.probe_seconds(path)
        if seconds > MAX_EPISODE_SECONDS:
            logger.warning(
                f"Suspicious duration {seconds / 3600:.1f}h for {Path(path).name}, "
                f"using {default_ms // 60000} min"
            )
            return default_ms
        if seconds <= 0:
            return default_ms
        return round(seconds * 1000)


class InventoryScanner:
    """Walks every show's season directories and builds inventory entries"""

    def __init__(
        self,
        paths: PathManager,
        shows: list[ShowConfig],
        store: StateStore,
        probe: MediaProbe | None = None,
        workers: int = PROBE_WORKERS,
    ):
        self.paths = paths
        self.shows = shows
        self.store = store
        self.probe = probe or MediaProbe()
        self.workers = workers

    def scan(self) -> dict[str, list[InventoryEntry]]:
        """
        Scan the library

        Returns:
            show title -> entries sorted by (season, episode); shows without
            files are left out
        """
        logger.info("Scanning episode inventory...")
        pending: list[tuple[InventoryEntry, ShowConfig]] = []
        for show in self.shows:
            for entry in self._scan_show(show):
                pending.append((entry, show))

        logger.info(f"Probing durations for {len(pending)} files...")

        def probe(item: tuple[InventoryEntry, ShowConfig]) -> int:
            entry, show = item
            default_ms = entry.episode_count * show.default_runtime * 60_000
            return self.probe.duration_ms(entry.file_path, default_ms)

        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            durations = list(pool.map(probe, pending))

        by_show: dict[str, list[InventoryEntry]] = {}
        for (entry, _), duration in zip(pending, durations):
            entry.duration_ms = duration
            by_show.setdefault(entry.show, []).append(entry)

        for title, entries in by_show.items():
            entries.sort(key=lambda e: (e.season, e.episode))
            total = sum(e.duration_ms for e in entries)
            logger.info(f"{title}: {len(entries)} files, {format_duration(total)}")
        return by_show

    def _scan_show(self, show: ShowConfig) -> list[InventoryEntry]:
        show_dir = self.paths.show_directory(show)
        if not show_dir.is_dir():
            logger.warning(f"Show directory not found: {show_dir}")
            return []

        state = self.store.load(show, verify=False)
        season_dirs = sorted(
            (
                (season_from_dirname(d.name), d)
                for d in show_dir.iterdir()
                if d.is_dir() and season_from_dirname(d.name) is not None
            ),
            key=lambda pair: pair[0],
        )

        entries = []
        for _, season_dir in season_dirs:
            for file in sorted(season_dir.iterdir()):
                if not file.is_file() or not is_finished_video(file.name):
                    continue
                marker = parse_episode(file.name)
                if not marker:
                    logger.debug(f"Skipping file without episode marker: {file.name}")
                    continue

                record = state.get(episode_key(show.id, marker.season, marker.episode))
                lower = file.name.lower()
                entries.append(
                    InventoryEntry(
                        show=show.title,
                        show_id=show.id,
                        season=marker.season,
                        episode=marker.episode,
                        episode_end=marker.episode_end,
                        title=record.title if record and record.title else file.stem,
                        file_path=str(file),
                        synopsis=(record.synopsis if record else None) or "",
                        thumbnail=record.thumbnail if record else None,
                        multi_part=record.multi_part if record else None,
                        is_variant=any(tag in lower for tag in show.prefer_tags),
                    )
                )
        return entries
