"""
Timeline emitter and schedule persistence
"""

import bisect
import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path

from .models import Block, Schedule, ScheduleEntry
from .utils import format_duration

logger = logging.getLogger(__name__)


def emit_timeline(blocks: list[Block], now: datetime | None = None) -> Schedule:
    """Flatten ordered blocks into entries with running start offsets from 0"""
    logger.info("Generating schedule...")
    entries: list[ScheduleEntry] = []
    offset = 0
    for block in blocks:
        for item in block.entries:
            entries.append(
                ScheduleEntry(
                    index=len(entries),
                    start_offset_ms=offset,
                    duration_ms=item.duration_ms,
                    show=item.show,
                    show_id=item.show_id,
                    season=item.season,
                    episode=item.episode,
                    episode_end=item.episode_end,
                    title=item.title,
                    synopsis=item.synopsis,
                    thumbnail=item.thumbnail,
                    file_path=item.file_path,
                    episode_count=item.episode_count,
                    variant_flag=item.is_variant,
                    block_id=block.block_id,
                )
            )
            offset += item.duration_ms

    generated = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    schedule = Schedule(
        generated_at=generated.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        cycle_duration_ms=offset,
        entries=entries,
    )
    logger.info(
        f"Schedule: {len(entries)} entries, cycle duration: {format_duration(offset)}"
    )
    return schedule


def validate_schedule(schedule: Schedule) -> int:
    """
    Count same-show pairs at block boundaries, wrap-around included

    Consecutive entries of one block share a show by construction and
    are not counted.
    """
    entries = schedule.entries
    violations = 0
    for prev, cur in zip(entries, entries[1:]):
        if cur.block_id != prev.block_id and cur.show == prev.show:
            violations += 1
            logger.warning(f"Constraint violation at index {cur.index}: {cur.show} back-to-back")

    if len(entries) > 1:
        first, last = entries[0], entries[-1]
        if last.block_id != first.block_id and last.show == first.show:
            violations += 1
            logger.warning(f"Wrap-around violation: {last.show}")

    if violations == 0:
        logger.info("Schedule validation passed: no constraint violations")
    else:
        logger.warning(f"Schedule has {violations} constraint violations")
    return violations


def locate(schedule: Schedule, wall_clock_ms: int) -> tuple[ScheduleEntry, int]:
    """
    Entry airing at a wall-clock time, and the position inside it

    Returns:
        (entry, offset into the entry in ms)

    Raises:
        ValueError for an empty schedule
    """
    if not schedule.entries or schedule.cycle_duration_ms <= 0:
        raise ValueError("Schedule is empty")
    now_offset = wall_clock_ms % schedule.cycle_duration_ms
    starts = [e.start_offset_ms for e in schedule.entries]
    index = bisect.bisect_right(starts, now_offset) - 1
    entry = schedule.entries[index]
    return entry, now_offset - entry.start_offset_ms


def save_schedule(schedule: Schedule, path: str | Path):
    """Write the schedule document atomically"""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f"{path.name}.tmp.{os.getpid()}")
    tmp.write_text(json.dumps(schedule.to_dict(), indent=2), encoding="utf-8")
    os.replace(tmp, path)
    logger.info(f"Schedule saved to {path}")


def load_schedule(path: str | Path) -> Schedule:
    with open(path, encoding="utf-8") as fh:
        return Schedule.from_dict(json.load(fh))
