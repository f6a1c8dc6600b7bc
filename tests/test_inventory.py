import json
import subprocess
from unittest.mock import patch

import pytest

from tvloop.inventory import InventoryScanner, MediaProbe, parse_tag_duration
from tvloop.models import EpisodeRecord, EpisodeStatus, MultiPart, PartRole, SourceTier
from tvloop.utils import episode_key

DEFAULT_MS = 22 * 60_000


def ffprobe_output(streams=None, fmt=None, returncode=0):
    payload = {"streams": streams or [], "format": fmt or {}}
    return subprocess.CompletedProcess([], returncode, stdout=json.dumps(payload), stderr="")


@pytest.mark.parametrize(
    "streams, fmt, expected",
    [
        ([{"codec_type": "video", "duration": "1320.5"}], {"duration": "1400"}, 1_320_500),
        ([{"codec_type": "video", "tags": {"DURATION": "00:21:30.500000000"}}], {}, 1_290_500),
        ([{"codec_type": "audio", "duration": "10"}], {"duration": "1250.0"}, 1_250_000),
    ],
)
def test_probe_duration_sources(streams, fmt, expected):
    with patch("tvloop.inventory.subprocess.run", return_value=ffprobe_output(streams, fmt)):
        assert MediaProbe().duration_ms("/lib/x.mkv", DEFAULT_MS) == expected


def test_suspicious_duration_is_replaced_by_default():
    five_hours = [{"codec_type": "video", "duration": str(5 * 3600)}]
    with patch("tvloop.inventory.subprocess.run", return_value=ffprobe_output(five_hours)):
        assert MediaProbe().duration_ms("/lib/x.mkv", DEFAULT_MS) == DEFAULT_MS


def test_probe_failures_fall_back_to_default():
    with patch("tvloop.inventory.subprocess.run", return_value=ffprobe_output(returncode=1)):
        assert MediaProbe().duration_ms("/lib/x.mkv", DEFAULT_MS) == DEFAULT_MS
    with patch("tvloop.inventory.subprocess.run", side_effect=FileNotFoundError("ffprobe")):
        assert MediaProbe().duration_ms("/lib/x.mkv", DEFAULT_MS) == DEFAULT_MS
    with patch(
        "tvloop.inventory.subprocess.run",
        side_effect=subprocess.TimeoutExpired("ffprobe", 30),
    ):
        assert MediaProbe().duration_ms("/lib/x.mkv", DEFAULT_MS) == DEFAULT_MS


def test_parse_tag_duration():
    assert parse_tag_duration("01:02:03.5") == 3723.5
    assert parse_tag_duration("garbage") == 0.0
    assert parse_tag_duration("aa:bb:cc") == 0.0


class FixedProbe:
    """Every file lasts 21 minutes, except the ones listed as broken"""

    def __init__(self, broken=()):
        self.broken = set(broken)
        self.defaults = {}

    def duration_ms(self, path, default_ms):
        self.defaults[path] = default_ms
        return default_ms if path in self.broken else 21 * 60_000


def test_scan_reads_files_and_state(paths, store, office):
    season1 = paths.episode_dir(office, 1)
    season2 = paths.episode_dir(office, 2)
    season1.mkdir(parents=True)
    season2.mkdir(parents=True)
    (season2 / "The Office - S02E01 - The Dundies (Superfan).mkv").write_bytes(b"x")
    (season1 / "The Office - S01E02 - Diversity Day.mkv").write_bytes(b"x")
    (season1 / "The Office - S01E04-E05 - Niagara.mkv").write_bytes(b"x")
    (season1 / "notes.txt").write_bytes(b"x")
    (season1 / "bonus.mkv").write_bytes(b"x")
    (season1 / "The Office - S01E06 - Hot Girl.mkv.downloading").write_bytes(b"x")
    (season1 / "The Office - S01E02-E03 - Diversity Day.combining.mkv").write_bytes(b"x")
    (paths.show_directory(office) / "Extras").mkdir()

    descriptor = MultiPart(PartRole.PRIMARY, part_count=2, episode_numbers=[4, 5])
    state = store.load(office)
    state.set(
        episode_key(office.id, 1, 4),
        EpisodeRecord(
            EpisodeStatus.DOWNLOADED,
            "Niagara (1)",
            file_path="x",
            synopsis="Jim and Pam",
            source=SourceTier.COMBINED,
            multi_part=descriptor,
        ),
    )
    probe = FixedProbe()

    by_show = InventoryScanner(paths, [office], store, probe=probe).scan()

    entries = by_show["The Office"]
    assert [(e.season, e.episode, e.episode_end) for e in entries] == [(1, 2, 2), (1, 4, 5), (2, 1, 1)]
    assert all(e.duration_ms == 21 * 60_000 for e in entries)
    niagara = entries[1]
    assert niagara.title == "Niagara (1)"
    assert niagara.synopsis == "Jim and Pam"
    assert niagara.multi_part == descriptor
    assert probe.defaults[niagara.file_path] == 2 * DEFAULT_MS
    assert entries[0].title == "The Office - S01E02 - Diversity Day"
    assert entries[2].is_variant
    assert not entries[0].is_variant


def test_scan_skips_shows_without_directory(paths, store, office, american_dad):
    season = paths.episode_dir(american_dad, 1)
    season.mkdir(parents=True)
    (season / "American Dad - S01E01 - Pilot.mkv").write_bytes(b"x")

    by_show = InventoryScanner(paths, [office, american_dad], store, probe=FixedProbe()).scan()

    assert list(by_show) == ["American Dad"]
