import pytest

from tvloop.zurg import ZurgLookup, matches_show, title_variations

MB = 1024 * 1024


def sparse_file(path, size):
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as fh:
        fh.truncate(size)


@pytest.fixture
def mount(tmp_path):
    return tmp_path / "zurg"


def test_title_variations():
    assert title_variations("Bob's Burgers", "2011") == [
        "Bob's Burgers",
        "Bobs Burgers",
        "Bob's Burgers US",
        "Bob's Burgers (US)",
        "Bob's Burgers 2011",
        "Bob's Burgers (2011)",
    ]
    assert "The Office US" not in title_variations("The Office (US)")[1:]


def test_matches_show():
    variations = title_variations("Brooklyn Nine-Nine")
    assert matches_show("Brooklyn.Nine-Nine.S01.1080p", variations)
    assert matches_show("brooklyn nine nine complete", variations)
    assert not matches_show("Parks.and.Recreation.S01", variations)


def test_find_episode_prefers_quality_match(mount):
    sparse_file(mount / "shows" / "Parks and Recreation" / "Parks.and.Recreation.S02E03.720p.mkv", 200 * MB)
    sparse_file(mount / "shows" / "Parks and Recreation" / "Parks.and.Recreation.S02E04.720p.mkv", 200 * MB)
    sparse_file(mount / "__all__" / "Parks.Rec.Pack" / "Parks.and.Recreation.S02E03.480p.mkv", 60 * MB)

    match, fallback = ZurgLookup(mount).find_episode("Parks and Recreation", 2, 3, runtime=22)

    assert fallback is None
    assert match.file_path.endswith("S02E03.720p.mkv")
    assert match.meets_quality_threshold
    assert match.resolution == 720


def test_find_episode_returns_low_quality_fallback(mount):
    sparse_file(mount / "shows" / "American Dad" / "American.Dad.S01E01.mkv", 50 * MB)

    match, fallback = ZurgLookup(mount).find_episode("American Dad", 1, 1, runtime=22)

    assert match is None
    assert fallback.mb_per_minute == round(50 / 22, 1)


def test_disabled_or_missing_mount(mount):
    assert ZurgLookup(mount, enabled=False).find_episode("American Dad", 1, 1) == (None, None)
    assert ZurgLookup(mount).find_episode("American Dad", 1, 1) == (None, None)
