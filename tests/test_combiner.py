import subprocess
from unittest.mock import patch

import pytest

from tvloop.combiner import CONCAT_LIST, MultiPartCombiner
from tvloop.models import CatalogEntry, MultiPart, PartRole


@pytest.fixture
def niagara(office):
    return CatalogEntry(
        show_id=office.id,
        show=office.title,
        season=4,
        episode=4,
        title="Niagara (1)",
        multi_part=MultiPart(PartRole.PRIMARY, part_count=2, episode_numbers=[4, 5]),
    )


@pytest.fixture
def parts(paths, office):
    directory = paths.episode_dir(office, 4)
    directory.mkdir(parents=True)
    files = [
        directory / "The Office - S04E04 - Niagara (1).mkv",
        directory / "The Office - S04E05 - Niagara (2).mkv",
    ]
    for file in files:
        file.write_bytes(b"part")
    return files


def fake_ffmpeg(returncode=0):
    def run(cmd, **kwargs):
        if returncode == 0:
            with open(cmd[-1], "wb") as fh:
                fh.write(b"combined")
        return subprocess.CompletedProcess(cmd, returncode, stdout="", stderr="concat failed")

    return run


def test_combine_moves_parts_to_originals(paths, office, niagara, parts):
    combiner = MultiPartCombiner(paths)

    with patch("tvloop.combiner.subprocess.run", side_effect=fake_ffmpeg()) as run:
        combined = combiner.combine(office, niagara)

    directory = paths.episode_dir(office, 4)
    assert combined == directory / "The Office - S04E04-E05 - Niagara.mkv"
    assert combined.read_bytes() == b"combined"
    assert sorted(p.name for p in (directory / ".originals").iterdir()) == sorted(
        p.name for p in parts
    )
    assert not any(p.exists() for p in parts)
    assert not (directory / CONCAT_LIST).exists()
    assert run.call_args.args[0][:3] == ["ffmpeg", "-f", "concat"]


def test_failed_combine_keeps_parts(paths, office, niagara, parts):
    combiner = MultiPartCombiner(paths)

    with patch("tvloop.combiner.subprocess.run", side_effect=fake_ffmpeg(returncode=1)):
        assert combiner.combine(office, niagara) is None

    directory = paths.episode_dir(office, 4)
    assert all(p.exists() for p in parts)
    assert sorted(p.name for p in directory.iterdir()) == sorted(p.name for p in parts)


def test_missing_part_skips_combine(paths, office, niagara, parts):
    parts[1].unlink()

    with patch("tvloop.combiner.subprocess.run") as run:
        assert MultiPartCombiner(paths).combine(office, niagara) is None
    run.assert_not_called()


def test_already_combined_story_is_reused(paths, office, niagara, parts):
    combiner = MultiPartCombiner(paths)
    with patch("tvloop.combiner.subprocess.run", side_effect=fake_ffmpeg()):
        first = combiner.combine(office, niagara)

    with patch("tvloop.combiner.subprocess.run") as run:
        second = combiner.combine(office, niagara)

    assert second == first
    run.assert_not_called()


def test_interrupted_combine_output_is_ignored(paths, office, niagara, parts):
    directory = paths.episode_dir(office, 4)
    leftover = directory / "The Office - S04E04-E05 - Niagara.combining.mkv"
    leftover.write_bytes(b"trunc")

    assert paths.find_existing_file(office, 4, 4) == parts[0]
    assert paths.find_existing_file(office, 4, 5) == parts[1]

    with patch("tvloop.combiner.subprocess.run", side_effect=fake_ffmpeg()) as run:
        combined = MultiPartCombiner(paths).combine(office, niagara)

    run.assert_called_once()
    assert run.call_args.args[0][-1] == str(leftover)
    assert combined.read_bytes() == b"combined"
    assert not leftover.exists()
    assert not any(p.exists() for p in parts)


def test_failed_combine_never_leaves_final_name(paths, office, niagara, parts):
    def crash(cmd, **kwargs):
        with open(cmd[-1], "wb") as fh:
            fh.write(b"half")
        raise subprocess.TimeoutExpired(cmd, 300)

    with patch("tvloop.combiner.subprocess.run", side_effect=crash):
        assert MultiPartCombiner(paths).combine(office, niagara) is None

    directory = paths.episode_dir(office, 4)
    assert sorted(p.name for p in directory.iterdir()) == sorted(p.name for p in parts)


def test_existing_combined_file_archives_leftover_parts(paths, office, niagara, parts):
    directory = paths.episode_dir(office, 4)
    combined = directory / "The Office - S04E04-E05 - Niagara.mkv"
    combined.write_bytes(b"combined")

    with patch("tvloop.combiner.subprocess.run") as run:
        assert MultiPartCombiner(paths).combine(office, niagara) == combined

    run.assert_not_called()
    assert combined.exists()
    assert not any(p.exists() for p in parts)
    assert (directory / ".originals" / parts[0].name).exists()
