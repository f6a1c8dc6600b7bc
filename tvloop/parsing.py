"""
Filename and title parsing

Pure functions only: every pattern list is ordered by priority and the first
match wins.
"""

import re
from dataclasses import dataclass
from pathlib import PurePath

VIDEO_EXTENSIONS = {".mkv", ".mp4", ".avi", ".ts", ".m2ts"}

# Infix of an ffmpeg output still being written: "Title.combining.mkv"
COMBINING_MARKER = ".combining"

# Season/episode markers in release filenames, highest priority first
EPISODE_PATTERNS = [
    # S01E02, s1e2, S01E02-E03, S01E02E03, S01E02-03
    re.compile(
        r"[Ss](\d{1,2})[ ._-]?[Ee](\d{1,3})(?:-?[Ee](\d{1,3})|-(\d{1,3})(?!\d|p))?"
    ),
    # 1x02, not part of a resolution such as 1920x1080
    re.compile(r"(?<![\dx])(\d{1,2})x(\d{2,3})(?![\dp])"),
]

# Multi-part markers in episode titles, highest priority first
PART_PATTERNS = [
    re.compile(r"\(Part\s*(\d+)\)", re.IGNORECASE),
    re.compile(r",?\s*Part\s*(\d+)", re.IGNORECASE),
    re.compile(r"\((\d+)\)\s*$"),
]

RESOLUTION_TOKENS = [
    (2160, ("2160p", "4k")),
    (1080, ("1080p",)),
    (720, ("720p",)),
]

_EPISODE_MARKER = re.compile(r"s\d{1,2}e\d{1,2}", re.IGNORECASE)
_SEASON_DIR = re.compile(r"^season\s*(\d+)$", re.IGNORECASE)


@dataclass(frozen=True)
class EpisodeMarker:
    """Season and episode range recovered from a filename"""

    season: int
    episode: int
    episode_end: int

    @property
    def is_range(self) -> bool:
        return self.episode_end > self.episode

    def covers(self, episode: int) -> bool:
        return self.episode <= episode <= self.episode_end


def is_video_file(filename: str) -> bool:
    """Check the extension against the accepted video containers"""
    return PurePath(filename).suffix.lower() in VIDEO_EXTENSIONS


def is_finished_video(filename: str) -> bool:
    """A video file that is not a half-written combine output"""
    return is_video_file(filename) and not PurePath(filename).stem.endswith(COMBINING_MARKER)


def parse_episode(filename: str) -> EpisodeMarker | None:
    """
    Parse the season/episode marker of a filename

    Only the basename is inspected so directory names such as
    "Season 1" cannot produce false matches. A range (S01E05-E06) is
    accepted only when the end is after the start.

    Returns:
        EpisodeMarker or None when no pattern matches
    """
    name = PurePath(filename).name
    for pattern in EPISODE_PATTERNS:
        match = pattern.search(name)
        if not match:
            continue
        season = int(match.group(1))
        episode = int(match.group(2))
        end = episode
        extra = [g for g in match.groups()[2:] if g]
        if extra and int(extra[0]) > episode:
            end = int(extra[0])
        return EpisodeMarker(season=season, episode=episode, episode_end=end)
    return None


def part_number(title: str) -> int | None:
    """Return N for titles marked "(Part N)", ", Part N" or a trailing "(N)" """
    if not title:
        return None
    for pattern in PART_PATTERNS:
        match = pattern.search(title)
        if match:
            return int(match.group(1))
    return None


def strip_part_marker(title: str) -> str:
    """Remove the part marker so a combined file gets the story title"""
    cleaned = re.sub(r"\s*\(Part\s*\d+\)", "", title, flags=re.IGNORECASE)
    cleaned = re.sub(r",?\s*Part\s*\d+", "", cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r"\s*\(\d+\)\s*$", "", cleaned)
    return cleaned.strip()


def resolution(title: str) -> int:
    """Detected vertical resolution of a release title, 0 when unknown"""
    lower = title.lower()
    for value, tokens in RESOLUTION_TOKENS:
        if any(token in lower for token in tokens):
            return value
    return 0


def has_episode_marker(title: str) -> bool:
    return bool(_EPISODE_MARKER.search(title or ""))


def has_season_marker(title: str, season: int) -> bool:
    """True when a release title names the given season (S03, Season 3, Season.3)"""
    pattern = rf"\b(?:s{season:02d}|season[ .]?0?{season})(?!\d)"
    return re.search(pattern, (title or "").lower()) is not None


def season_from_dirname(name: str) -> int | None:
    """Season number of a "Season 03" directory"""
    match = _SEASON_DIR.match(name.strip())
    return int(match.group(1)) if match else None


def normalize_title(title: str) -> str:
    """Lowercase, separators to spaces, punctuation removed"""
    lowered = (title or "").lower()
    lowered = re.sub(r"[._\-]+", " ", lowered)
    lowered = lowered.replace("'", "")
    lowered = re.sub(r"[^a-z0-9\s]", "", lowered)
    return re.sub(r"\s+", " ", lowered).strip()
