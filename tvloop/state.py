"""
Download state store

One JSON document per show, {title, totalEpisodes, episodes: {key: record}},
rewritten atomically after every mutation.
"""

import json
import logging
import os
import threading
from collections import Counter
from contextlib import contextmanager
from pathlib import Path

from .models import EpisodeRecord, EpisodeStatus, ShowConfig

logger = logging.getLogger(__name__)


class ShowState:
    """
    Acquisition state of one show

    Every set() is persisted before it returns. Concurrent writers are
    coalesced: a mutation that lands while another thread is writing is
    picked up by the next single write, and a thread whose mutation was
    already written by someone else returns without writing again.
    """

    def __init__(
        self,
        path: Path,
        title: str = "",
        total_episodes: int = 0,
        episodes: dict[str, EpisodeRecord] | None = None,
        persisted: bytes | None = None,
    ):
        self.path = path
        self.title = title
        self.total_episodes = total_episodes
        self.episodes: dict[str, EpisodeRecord] = episodes or {}

        self._lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._local = threading.local()
        self._generation = 0
        self._written_generation = 0
        self._persisted = persisted
        self.writes = 0

    # Reads

    def get(self, key: str) -> EpisodeRecord | None:
        with self._lock:
            return self.episodes.get(key)

    def is_downloaded(self, key: str) -> bool:
        record = self.get(key)
        return record is not None and record.status == EpisodeStatus.DOWNLOADED

    def status_of(self, key: str) -> EpisodeStatus:
        record = self.get(key)
        return record.status if record else EpisodeStatus.PENDING

    def counts(self) -> dict:
        """Status counts, downloads per source tier, and (key, kind, message) per error"""
        with self._lock:
            records = list(self.episodes.items())
        statuses = Counter(r.status for _, r in records)
        sources = Counter(
            r.source.value if r.source else "unknown"
            for _, r in records
            if r.status == EpisodeStatus.DOWNLOADED
        )
        errors = [
            (k, r.error_kind.value if r.error_kind else "unknown", r.error or "")
            for k, r in records
            if r.status == EpisodeStatus.ERROR
        ]
        return {
            "total": self.total_episodes,
            "downloaded": statuses[EpisodeStatus.DOWNLOADED],
            "error": statuses[EpisodeStatus.ERROR],
            "not_found": statuses[EpisodeStatus.NOT_FOUND],
            "in_progress": statuses[EpisodeStatus.SEARCHING]
            + statuses[EpisodeStatus.DOWNLOADING],
            "sources": dict(sources),
            "errors": errors,
        }

    # Mutations

    def set(self, key: str, record: EpisodeRecord):
        """Store a record and persist it (deferred inside a batch)"""
        with self._lock:
            self.episodes[key] = record
            self._generation += 1
        self._maybe_flush()

    def set_summary(self, title: str, total_episodes: int):
        with self._lock:
            if self.title == title and self.total_episodes == total_episodes:
                return
            self.title = title
            self.total_episodes = total_episodes
            self._generation += 1
        self._maybe_flush()

    @contextmanager
    def batch(self):
        """Defer persistence of this thread's mutations until the outer batch exits"""
        depth = getattr(self._local, "depth", 0)
        self._local.depth = depth + 1
        try:
            yield self
        finally:
            self._local.depth = depth
            if depth == 0:
                self.flush()

    # Persistence

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "totalEpisodes": self.total_episodes,
            "episodes": {k: r.to_dict() for k, r in self.episodes.items()},
        }

    def _maybe_flush(self):
        if getattr(self._local, "depth", 0) == 0:
            self.flush()

    def flush(self):
        """Write pending mutations, skipping the write when nothing changed"""
        with self._write_lock:
            with self._lock:
                if self._generation == self._written_generation and self._persisted is not None:
                    return
                generation = self._generation
                payload = (json.dumps(self.to_dict(), indent=2) + "\n").encode("utf-8")

            if payload != self._persisted:
                self._write(payload)
                self._persisted = payload
            self._written_generation = generation

    def _write(self, payload: bytes):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(f"{self.path.name}.tmp.{os.getpid()}")
        tmp.write_bytes(payload)
        os.replace(tmp, self.path)
        self.writes += 1
        logger.debug(f"State saved: {self.path}")


class StateStore:
    """Locates and loads the per-show state documents"""

    def __init__(self, state_dir: str | Path):
        self.state_dir = Path(state_dir)

    def path_for(self, show: ShowConfig) -> Path:
        return self.state_dir / f"{show.id}.json"

    def load(self, show: ShowConfig, verify: bool = True) -> ShowState:
        """
        Load the state of a show

        Args:
            show: Show to load
            verify: Drop every downloaded record whose file no longer exists,
                so the episode is acquired again

        Returns:
            ShowState (empty when the document is missing or unreadable)
        """
        path = self.path_for(show)
        if not path.exists():
            return ShowState(path, title=show.title)

        try:
            raw = path.read_bytes()
            data = json.loads(raw)
            episodes = {
                key: EpisodeRecord.from_dict(record)
                for key, record in data.get("episodes", {}).items()
            }
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Failed to load state {path}: {e}")
            return ShowState(path, title=show.title)

        state = ShowState(
            path,
            title=data.get("title", show.title),
            total_episodes=data.get("totalEpisodes", 0),
            episodes=episodes,
            persisted=raw,
        )
        if verify:
            self._verify(state)
        return state

    def _verify(self, state: ShowState):
        missing = [
            key
            for key, record in state.episodes.items()
            if record.status == EpisodeStatus.DOWNLOADED
            and not (record.file_path and Path(record.file_path).exists())
        ]
        for key in missing:
            logger.warning(f"{key}: marked downloaded but file missing")
            del state.episodes[key]
        if missing:
            state._generation += 1
