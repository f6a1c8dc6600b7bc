import json
import threading

from tvloop.errors import ErrorKind
from tvloop.models import EpisodeRecord, EpisodeStatus, SourceTier


def downloaded(title, path):
    return EpisodeRecord(EpisodeStatus.DOWNLOADED, title, file_path=str(path), source=SourceTier.DISK)


def test_missing_document_loads_empty(store, office):
    state = store.load(office)
    assert state.episodes == {}
    assert state.status_of("2316-S01E01") == EpisodeStatus.PENDING


def test_set_persists_before_returning(store, office):
    state = store.load(office)
    state.set("2316-S01E01", EpisodeRecord(EpisodeStatus.NOT_FOUND, "Pilot"))

    document = json.loads(store.path_for(office).read_text())
    assert document["episodes"]["2316-S01E01"] == {"status": "not_found", "title": "Pilot"}
    assert list(store.path_for(office).parent.glob("*.tmp.*")) == []


def test_verify_demotes_records_with_missing_files(tmp_path, store, office):
    present = tmp_path / "present.mkv"
    present.write_bytes(b"x")
    state = store.load(office)
    state.set("2316-S01E01", downloaded("Pilot", present))
    state.set("2316-S01E02", downloaded("Diversity Day", tmp_path / "gone.mkv"))

    reloaded = store.load(office)

    assert reloaded.is_downloaded("2316-S01E01")
    assert reloaded.get("2316-S01E02") is None
    assert reloaded.status_of("2316-S01E02") == EpisodeStatus.PENDING


def test_unchanged_state_is_not_rewritten(tmp_path, store, office):
    present = tmp_path / "present.mkv"
    present.write_bytes(b"x")
    state = store.load(office)
    state.set_summary("The Office", 2)
    state.set("2316-S01E01", downloaded("Pilot", present))
    before = store.path_for(office).read_bytes()

    reloaded = store.load(office)
    reloaded.set_summary("The Office", 2)
    reloaded.set("2316-S01E01", downloaded("Pilot", present))
    reloaded.flush()

    assert reloaded.writes == 0
    assert store.path_for(office).read_bytes() == before


def test_batch_coalesces_writes(store, office):
    state = store.load(office)
    with state.batch():
        for n in range(1, 11):
            state.set(f"2316-S01E{n:02d}", EpisodeRecord(EpisodeStatus.NOT_FOUND, f"E{n}"))
        assert state.writes == 0
        assert not store.path_for(office).exists()

    assert state.writes == 1
    assert len(json.loads(store.path_for(office).read_text())["episodes"]) == 10


def test_concurrent_sets_are_all_persisted(store, office):
    state = store.load(office)

    def worker(thread_index):
        for n in range(25):
            state.set(
                f"2316-S{thread_index:02d}E{n:02d}",
                EpisodeRecord(EpisodeStatus.DOWNLOADING, f"T{thread_index} E{n}"),
            )

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    document = json.loads(store.path_for(office).read_text())
    assert len(document["episodes"]) == 200
    assert 1 <= state.writes <= 200


def test_counts(store, office):
    state = store.load(office)
    state.set_summary("The Office", 5)
    with state.batch():
        state.set("a", EpisodeRecord(EpisodeStatus.DOWNLOADED, "A", source=SourceTier.SERIES))
        state.set("b", EpisodeRecord(EpisodeStatus.DOWNLOADED, "B", source=SourceTier.ZURG))
        state.set(
            "c",
            EpisodeRecord(EpisodeStatus.ERROR, "C", error="dead torrent", error_kind=ErrorKind.CONTENT),
        )
        state.set("d", EpisodeRecord(EpisodeStatus.NOT_FOUND, "D"))
        state.set("e", EpisodeRecord(EpisodeStatus.SEARCHING, "E"))

    counts = state.counts()

    assert counts["total"] == 5
    assert counts["downloaded"] == 2
    assert counts["sources"] == {"series": 1, "zurg": 1}
    assert counts["errors"] == [("c", "content", "dead torrent")]
    assert counts["not_found"] == 1
    assert counts["in_progress"] == 1
    assert store.load(office, verify=False).get("c").error_kind == ErrorKind.CONTENT


def test_corrupt_document_loads_empty(store, office):
    path = store.path_for(office)
    path.parent.mkdir(parents=True)
    path.write_text("[1, 2")

    state = store.load(office)

    assert state.episodes == {}
