"""
Data models for tvloop
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .errors import ErrorKind
from .utils import episode_key


class PartRole(str, Enum):
    """Position of an episode inside a multi-part story"""

    PRIMARY = "primary"
    SECONDARY = "secondary"


class EpisodeStatus(str, Enum):
    """Acquisition status of an episode

    PENDING is never persisted: an episode without a record is pending.
    """

    PENDING = "pending"
    SEARCHING = "searching"
    DOWNLOADING = "downloading"
    DOWNLOADED = "downloaded"
    ERROR = "error"
    NOT_FOUND = "not_found"


class SourceTier(str, Enum):
    """Where a downloaded file came from"""

    SERIES = "series"
    SEASON = "season"
    ZURG = "zurg"
    PROWLARR = "prowlarr"
    DISK = "disk"
    COMBINED = "combined"


class PackType(str, Enum):
    """Granularity of a pack candidate (None on a candidate means individual)"""

    SERIES = "series"
    SEASON = "season"


@dataclass
class ShowConfig:
    """A show in the channel rotation"""

    id: int
    title: str
    dir_name: str
    search_aliases: list[str] = field(default_factory=list)
    prefer_tags: list[str] = field(default_factory=list)
    has_season_offset: bool = False
    # metadata season -> release season, only used when has_season_offset
    season_offsets: dict[int, int] = field(default_factory=dict)
    default_runtime: int = 22

    def __post_init__(self):
        if not self.search_aliases:
            self.search_aliases = [self.title]
        self.prefer_tags = [t.lower() for t in self.prefer_tags]
        self.season_offsets = {int(k): int(v) for k, v in self.season_offsets.items()}

    @classmethod
    def from_dict(cls, data: dict) -> "ShowConfig":
        return cls(
            id=int(data["id"]),
            title=data["title"],
            dir_name=data.get("dir_name") or data["title"],
            search_aliases=list(data.get("search_aliases") or []),
            prefer_tags=list(data.get("prefer_tags") or []),
            has_season_offset=bool(data.get("has_season_offset", False)),
            season_offsets=dict(data.get("season_offsets") or {}),
            default_runtime=int(data.get("default_runtime", 22)),
        )


@dataclass
class MultiPart:
    """Multi-part descriptor attached to a catalog entry"""

    role: PartRole
    part_count: int = 0
    episode_numbers: list[int] = field(default_factory=list)
    primary_episode: int | None = None

    @property
    def is_primary(self) -> bool:
        return self.role == PartRole.PRIMARY

    def to_dict(self) -> dict:
        if self.is_primary:
            return {
                "role": self.role.value,
                "partCount": self.part_count,
                "episodes": list(self.episode_numbers),
            }
        return {"role": self.role.value, "primaryEpisode": self.primary_episode}

    @classmethod
    def from_dict(cls, data: dict | None) -> "MultiPart | None":
        if not data:
            return None
        role = PartRole(data["role"])
        if role == PartRole.PRIMARY:
            episodes = [int(e) for e in data.get("episodes", [])]
            return cls(
                role=role,
                part_count=int(data.get("partCount", len(episodes))),
                episode_numbers=episodes,
            )
        return cls(role=role, primary_episode=int(data["primaryEpisode"]))


@dataclass
class CatalogEntry:
    """One episode as described by the metadata provider"""

    show_id: int
    show: str
    season: int
    episode: int
    title: str
    synopsis: str = ""
    runtime: int = 22
    thumbnail: str | None = None
    air_date: str | None = None
    multi_part: MultiPart | None = None

    @property
    def key(self) -> str:
        return episode_key(self.show_id, self.season, self.episode)

    @property
    def year(self) -> str:
        return self.air_date[:4] if self.air_date else ""

    def to_dict(self) -> dict:
        data = {
            "showId": self.show_id,
            "show": self.show,
            "season": self.season,
            "episode": self.episode,
            "title": self.title,
            "synopsis": self.synopsis,
            "runtime": self.runtime,
            "thumbnail": self.thumbnail,
            "airDate": self.air_date,
        }
        if self.multi_part:
            data["multiPart"] = self.multi_part.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "CatalogEntry":
        return cls(
            show_id=int(data["showId"]),
            show=data["show"],
            season=int(data["season"]),
            episode=int(data["episode"]),
            title=data["title"],
            synopsis=data.get("synopsis") or "",
            runtime=int(data.get("runtime") or 22),
            thumbnail=data.get("thumbnail"),
            air_date=data.get("airDate"),
            multi_part=MultiPart.from_dict(data.get("multiPart")),
        )


@dataclass
class EpisodeRecord:
    """Persisted acquisition status of one episode"""

    status: EpisodeStatus
    title: str
    file_path: str | None = None
    runtime: int | None = None
    synopsis: str | None = None
    thumbnail: str | None = None
    source: SourceTier | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None
    multi_part: MultiPart | None = None

    @classmethod
    def downloaded(
        cls, entry: CatalogEntry, file_path: str, source: SourceTier
    ) -> "EpisodeRecord":
        """Build the record written once a file is on disk"""
        return cls(
            status=EpisodeStatus.DOWNLOADED,
            title=entry.title,
            file_path=file_path,
            runtime=entry.runtime,
            synopsis=entry.synopsis,
            thumbnail=entry.thumbnail,
            source=source,
            multi_part=entry.multi_part,
        )

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"status": self.status.value, "title": self.title}
        optional = {
            "filePath": self.file_path,
            "runtime": self.runtime,
            "synopsis": self.synopsis,
            "thumbnail": self.thumbnail,
            "source": self.source.value if self.source else None,
            "error": self.error,
            "errorKind": self.error_kind.value if self.error_kind else None,
            "multiPart": self.multi_part.to_dict() if self.multi_part else None,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "EpisodeRecord":
        source = data.get("source")
        kind = data.get("errorKind")
        return cls(
            status=EpisodeStatus(data["status"]),
            title=data.get("title", ""),
            file_path=data.get("filePath"),
            runtime=data.get("runtime"),
            synopsis=data.get("synopsis"),
            thumbnail=data.get("thumbnail"),
            source=SourceTier(source) if source else None,
            error=data.get("error"),
            error_kind=ErrorKind(kind) if kind else None,
            multi_part=MultiPart.from_dict(data.get("multiPart")),
        )


@dataclass
class SourceCandidate:
    """A release returned by the indexer"""

    title: str
    size: int
    seeders: int
    locator: str
    info_hash: str | None = None
    pack_type: PackType | None = None
    score: int = 0
    target_season: int | None = None

    @property
    def size_mb(self) -> float:
        return self.size / (1024 * 1024)


@dataclass
class InstantMatch:
    """A file found by the instant-lookup provider"""

    file_path: str
    file_size: int
    mb_per_minute: float
    meets_quality_threshold: bool
    resolution: int = 0


@dataclass
class InventoryEntry:
    """A playable file found on disk at schedule time"""

    show: str
    show_id: int
    season: int
    episode: int
    episode_end: int
    title: str
    file_path: str
    synopsis: str = ""
    thumbnail: str | None = None
    duration_ms: int = 0
    multi_part: MultiPart | None = None
    is_variant: bool = False

    @property
    def episode_count(self) -> int:
        return self.episode_end - self.episode + 1

    @property
    def is_multi_part(self) -> bool:
        return self.multi_part is not None or self.episode_count > 1


@dataclass
class Block:
    """A run of one show's episodes scheduled back to back"""

    block_id: str
    show: str
    entries: list[InventoryEntry] = field(default_factory=list)

    @property
    def duration_ms(self) -> int:
        return sum(e.duration_ms for e in self.entries)


@dataclass
class ScheduleEntry:
    """One slot of the flattened timeline"""

    index: int
    start_offset_ms: int
    duration_ms: int
    show: str
    show_id: int
    season: int
    episode: int
    episode_end: int
    title: str
    synopsis: str
    thumbnail: str | None
    file_path: str
    episode_count: int
    variant_flag: bool
    block_id: str

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "startOffsetMs": self.start_offset_ms,
            "durationMs": self.duration_ms,
            "show": self.show,
            "showId": self.show_id,
            "season": self.season,
            "episode": self.episode,
            "episodeEnd": self.episode_end,
            "title": self.title,
            "synopsis": self.synopsis,
            "thumbnail": self.thumbnail,
            "filePath": self.file_path,
            "episodeCount": self.episode_count,
            "variantFlag": self.variant_flag,
            "blockId": self.block_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ScheduleEntry":
        return cls(
            index=data["index"],
            start_offset_ms=data["startOffsetMs"],
            duration_ms=data["durationMs"],
            show=data["show"],
            show_id=data.get("showId", 0),
            season=data["season"],
            episode=data["episode"],
            episode_end=data.get("episodeEnd", data["episode"]),
            title=data["title"],
            synopsis=data.get("synopsis", ""),
            thumbnail=data.get("thumbnail"),
            file_path=data["filePath"],
            episode_count=data.get("episodeCount", 1),
            variant_flag=data.get("variantFlag", False),
            block_id=data["blockId"],
        )


@dataclass
class Schedule:
    """The generated looping timeline"""

    generated_at: str
    cycle_duration_ms: int
    entries: list[ScheduleEntry] = field(default_factory=list)
    version: int = 1

    @property
    def total_entries(self) -> int:
        return len(self.entries)

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "generatedAt": self.generated_at,
            "cycleDurationMs": self.cycle_duration_ms,
            "totalEntries": self.total_entries,
            "schedule": [e.to_dict() for e in self.entries],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Schedule":
        return cls(
            generated_at=data["generatedAt"],
            cycle_duration_ms=data["cycleDurationMs"],
            entries=[ScheduleEntry.from_dict(e) for e in data.get("schedule", [])],
            version=data.get("version", 1),
        )


@dataclass
class ShowResult:
    """Outcome of one show's acquisition run"""

    show: ShowConfig
    total: int = 0
    needed: int = 0
    downloaded: int = 0
    still_missing: int = 0
    combined: int = 0
