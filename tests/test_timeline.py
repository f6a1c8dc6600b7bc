import json
from datetime import datetime, timezone

import pytest

from tvloop.blocks import build_blocks
from tvloop.models import Block, MultiPart, PartRole, Schedule
from tvloop.shuffle import Mulberry32, constrained_shuffle
from tvloop.timeline import emit_timeline, load_schedule, locate, save_schedule, validate_schedule

NOW = datetime(2026, 2, 12, 20, 30, tzinfo=timezone.utc)


def schedule_for(make_inventory, minutes=(20, 25, 22)):
    blocks = [
        Block("A-0", "A", make_inventory("A", 2, minutes=minutes[0])),
        Block("B-0", "B", make_inventory("B", 1, minutes=minutes[1])),
        Block("C-0", "C", make_inventory("C", 1, minutes=minutes[2])),
    ]
    return emit_timeline(blocks, now=NOW)


def test_offsets_accumulate_from_zero(make_inventory):
    schedule = schedule_for(make_inventory)

    assert [e.start_offset_ms for e in schedule.entries] == [0, 1_200_000, 2_400_000, 3_900_000]
    assert [e.index for e in schedule.entries] == [0, 1, 2, 3]
    assert schedule.cycle_duration_ms == 87 * 60_000
    assert schedule.generated_at == "2026-02-12T20:30:00.000Z"
    for prev, cur in zip(schedule.entries, schedule.entries[1:]):
        assert cur.start_offset_ms == prev.start_offset_ms + prev.duration_ms


def test_document_shape(make_inventory):
    document = schedule_for(make_inventory).to_dict()

    assert document["version"] == 1
    assert document["totalEntries"] == 4
    assert set(document["schedule"][0]) == {
        "index", "startOffsetMs", "durationMs", "show", "showId", "season", "episode",
        "episodeEnd", "title", "synopsis", "thumbnail", "filePath", "episodeCount",
        "variantFlag", "blockId",
    }


def test_locate_wraps_around_the_cycle(make_inventory):
    schedule = schedule_for(make_inventory)
    cycle = schedule.cycle_duration_ms

    entry, position = locate(schedule, 0)
    assert (entry.index, position) == (0, 0)

    entry, position = locate(schedule, 1_200_000)
    assert (entry.index, position) == (1, 0)

    entry, position = locate(schedule, 5 * cycle + 2_400_000 + 61_000)
    assert (entry.index, position) == (2, 61_000)

    entry, position = locate(schedule, cycle - 1)
    assert entry.index == 3


def test_locate_rejects_empty_schedule():
    with pytest.raises(ValueError):
        locate(Schedule(generated_at="", cycle_duration_ms=0), 1000)


def test_validate_counts_block_boundaries_only(make_inventory):
    schedule = emit_timeline(
        [
            Block("A-0", "A", make_inventory("A", 2)),
            Block("A-1", "A", make_inventory("A", 1)),
            Block("B-0", "B", make_inventory("B", 1)),
        ],
        now=NOW,
    )
    # A-0 -> A-1 counts once, the two entries inside A-0 do not
    assert validate_schedule(schedule) == 1

    schedule = schedule_for(make_inventory)
    assert validate_schedule(schedule) == 0


def test_save_and_load(tmp_path, make_inventory):
    schedule = schedule_for(make_inventory)
    path = tmp_path / "nested" / "schedule.json"

    save_schedule(schedule, path)

    assert load_schedule(path).to_dict() == schedule.to_dict()
    assert json.loads(path.read_text())["cycleDurationMs"] == schedule.cycle_duration_ms
    assert list(path.parent.glob("*.tmp.*")) == []


def test_same_inputs_give_identical_documents(make_inventory):
    def generate():
        by_show = {
            "A": make_inventory("A", 9, minutes=22),
            "B": make_inventory("B", 8, minutes=21),
            "C": make_inventory("C", 10, minutes=23),
        }
        ordered = constrained_shuffle(build_blocks(by_show), Mulberry32(99))
        return json.dumps(emit_timeline(ordered, now=NOW).to_dict(), indent=2)

    assert generate() == generate()


def test_multi_part_story_airs_contiguously(make_inventory):
    entries = make_inventory("A", 7)
    entries[2].multi_part = MultiPart(PartRole.PRIMARY, part_count=2, episode_numbers=[3, 4])
    entries[3].multi_part = MultiPart(PartRole.SECONDARY, primary_episode=3)
    by_show = {"A": entries, "B": make_inventory("B", 7), "C": make_inventory("C", 7)}

    ordered = constrained_shuffle(build_blocks(by_show), Mulberry32(5))
    schedule = emit_timeline(ordered, now=NOW)

    positions = [
        i for i, e in enumerate(schedule.entries) if e.show == "A" and e.episode in (3, 4)
    ]
    assert len(positions) == 2
    assert positions[1] == positions[0] + 1
    assert schedule.entries[positions[0]].block_id == schedule.entries[positions[1]].block_id
