"""
Tiered acquisition: series pack, then season packs, then single episodes
"""

import logging
import shutil
from pathlib import Path, PurePosixPath

from .catalog import CatalogBuilder
from .combiner import MultiPartCombiner
from .downloader_utils import PathManager
from .errors import (
    ConfigurationError,
    ContentError,
    ErrorKind,
    NotFoundError,
    TransientProviderError,
)
from .executor import DownloadExecutor, DownloadTask, TaskResult
from .models import (
    CatalogEntry,
    EpisodeRecord,
    EpisodeStatus,
    PackType,
    ShowConfig,
    ShowResult,
    SourceCandidate,
    SourceTier,
)
from .parsing import has_episode_marker, has_season_marker, parse_episode
from .prowlarr import ProwlarrClient
from .realdebrid import RealDebridClient
from .scorer import SourceScorer
from .season_offset import get_search_season, resolve_release_season
from .state import ShowState, StateStore
from .utils import episode_key
from .zurg import ZurgLookup

logger = logging.getLogger(__name__)

# A pack is only worth it when this share of the scope is missing
PACK_THRESHOLD = 0.3
MAX_PACK_ATTEMPTS = 3
MIN_PACK_SIZE_MB = 100


class AcquisitionOrchestrator:
    """
    Drives the acquisition of every episode of a show

    Within a show the series tier strictly precedes the season tier, which
    precedes the individual tier. Every state change is persisted before
    the next step starts. The transfers currently running are tracked in
    active_transfers (episode key -> destination), owned by this instance
    and handed to the executor.
    """

    def __init__(
        self,
        catalog_builder: CatalogBuilder,
        store: StateStore,
        scorer: SourceScorer,
        indexer: ProwlarrClient,
        cache: RealDebridClient,
        instant: ZurgLookup | None,
        executor: DownloadExecutor,
        paths: PathManager,
        combiner: MultiPartCombiner | None = None,
    ):
        self.catalog_builder = catalog_builder
        self.store = store
        self.scorer = scorer
        self.indexer = indexer
        self.cache = cache
        self.instant = instant
        self.executor = executor
        self.paths = paths
        self.combiner = combiner
        self.active_transfers: dict[str, Path] = {}

    def run(
        self,
        shows: list[ShowConfig],
        fresh: bool = False,
        refresh_catalog: bool = False,
    ) -> list[ShowResult]:
        """
        Process shows one after the other

        A ConfigurationError aborts the whole run; any other failure is
        confined to the show it happened in.
        """
        results = []
        for show in shows:
            try:
                results.append(self.process_show(show, fresh, refresh_catalog))
            except ConfigurationError:
                raise
            except Exception as e:
                logger.exception(f"Unexpected error while processing {show.title}: {e}")
                results.append(ShowResult(show=show))
        return results

    def process_show(
        self,
        show: ShowConfig,
        fresh: bool = False,
        refresh_catalog: bool = False,
    ) -> ShowResult:
        """
        Acquire every missing episode of a show

        Args:
            show: Show to process
            fresh: Full run; not_found episodes are attempted again. On a
                resume they are terminal and skipped.
            refresh_catalog: Rebuild the catalog from the metadata provider

        Returns:
            ShowResult with the counts of this run
        """
        logger.info(f"{'=' * 60}")
        logger.info(f"Processing: {show.title}")
        result = ShowResult(show=show)

        catalog = self.catalog_builder.build(show, refresh=refresh_catalog)
        if not catalog:
            logger.warning(f"No episodes found for {show.title}")
            return result
        result.total = len(catalog)

        state = self.store.load(show)
        state.set_summary(show.title, len(catalog))

        needed = self._needed(show, catalog, state, fresh)
        result.needed = len(needed)

        if needed:
            logger.info(f"{show.title}: need {len(needed)}/{len(catalog)} episodes")
            self._series_tier(show, catalog, state, needed)
            self._season_tier(show, catalog, state, needed)
            self._individual_tier(show, catalog, state, needed)
        else:
            logger.info(f"{show.title}: nothing to acquire ({len(catalog)} episodes)")

        if self.combiner:
            result.combined = self.combine_multi_parts(show, catalog, state)

        result.still_missing = sum(1 for e in catalog if not state.is_downloaded(e.key))
        result.downloaded = result.total - result.still_missing
        logger.info(f"{show.title}: {result.still_missing} episodes still missing after all tiers")
        return result

    def _needed(
        self,
        show: ShowConfig,
        catalog: list[CatalogEntry],
        state: ShowState,
        fresh: bool,
    ) -> dict[str, CatalogEntry]:
        """Episodes without a verified file, in catalog order"""
        needed: dict[str, CatalogEntry] = {}
        with state.batch():
            for entry in catalog:
                key = entry.key
                if state.is_downloaded(key):
                    continue
                if not fresh and state.status_of(key) == EpisodeStatus.NOT_FOUND:
                    continue
                existing = self.paths.find_existing_file(show, entry.season, entry.episode)
                if existing:
                    state.set(key, EpisodeRecord.downloaded(entry, str(existing), SourceTier.DISK))
                    continue
                needed[key] = entry
        return needed

    # Tier 1: series pack

    def _series_tier(
        self,
        show: ShowConfig,
        catalog: list[CatalogEntry],
        state: ShowState,
        needed: dict[str, CatalogEntry],
    ):
        if len(needed) <= len(catalog) * PACK_THRESHOLD:
            return
        packs = self.search_packs(show)
        if self._try_packs(show, packs, catalog, state, needed):
            logger.info(f"{show.title}: {len(needed)} episodes still needed after series pack")

    # Tier 2: season packs

    def _season_tier(
        self,
        show: ShowConfig,
        catalog: list[CatalogEntry],
        state: ShowState,
        needed: dict[str, CatalogEntry],
    ):
        for season in sorted({e.season for e in catalog}):
            season_entries = [e for e in catalog if e.season == season]
            season_needed = [e for e in season_entries if e.key in needed]
            if not season_needed:
                continue
            if len(season_needed) < len(season_entries) * PACK_THRESHOLD:
                logger.info(
                    f"{show.title} S{season}: only {len(season_needed)}/{len(season_entries)} "
                    f"needed, skipping to individual"
                )
                continue

            logger.info(
                f"{show.title} S{season}: {len(season_needed)}/{len(season_entries)} needed, "
                f"trying season pack"
            )
            packs = self.search_packs(show, season)
            if self._try_packs(show, packs, catalog, state, needed):
                remaining = sum(1 for e in season_entries if e.key in needed)
                logger.info(f"{show.title} S{season}: {remaining} still needed after season pack")

    def _try_packs(
        self,
        show: ShowConfig,
        packs: list[SourceCandidate],
        catalog: list[CatalogEntry],
        state: ShowState,
        needed: dict[str, CatalogEntry],
    ) -> bool:
        """Attempt the best packs in order until one maps at least one file"""
        for pack in packs[:MAX_PACK_ATTEMPTS]:
            try:
                handled = self.download_pack(show, pack, catalog, state)
            except (ContentError, TransientProviderError) as e:
                logger.warning(f"Pack failed ({pack.title[:60]}): {e}")
                continue
            for key in handled:
                needed.pop(key, None)
            return True
        return False

    def search_packs(self, show: ShowConfig, season: int | None = None) -> list[SourceCandidate]:
        """
        Search series packs (season=None) or the packs of one season

        Returns:
            Candidates deduplicated by info hash, ranked best first
        """
        if season is None:
            pack_type = PackType.SERIES
            release_season = None
            queries = [
                f"{alias} {suffix}"
                for alias in show.search_aliases
                for suffix in ("Complete", "Complete Series")
            ]
        else:
            pack_type = PackType.SEASON
            release_season = get_search_season(show, season)
            queries = [
                query
                for alias in show.search_aliases
                for query in (f"{alias} S{release_season:02d}", f"{alias} Season {release_season}")
            ]

        label = f"S{release_season:02d}" if release_season else "series"
        logger.info(f"Searching for {label} packs: {show.title}")

        seen: set[str] = set()
        candidates = []
        for query in queries:
            try:
                results = self.indexer.search(query)
            except (TransientProviderError, ContentError) as e:
                logger.debug(f"Pack search \"{query}\" failed: {e}")
                continue
            for candidate in results:
                hash_key = (candidate.info_hash or "").lower()
                if hash_key and hash_key in seen:
                    continue
                if hash_key:
                    seen.add(hash_key)
                if candidate.size_mb < MIN_PACK_SIZE_MB:
                    continue
                if release_season is not None and (
                    not has_season_marker(candidate.title, release_season)
                    or has_episode_marker(candidate.title)
                ):
                    continue
                candidate.pack_type = pack_type
                candidate.target_season = season
                candidates.append(candidate)

        ranked = self.scorer.rank(candidates, show)
        logger.info(f"Found {len(ranked)} {label} pack candidates for {show.title}")
        if ranked:
            best = ranked[0]
            logger.info(
                f"Best pack: \"{best.title[:80]}\" ({best.size_mb / 1024:.1f}GB, "
                f"score: {best.score}, seeders: {best.seeders})"
            )
        return ranked

    def map_pack_files(
        self,
        show: ShowConfig,
        catalog: list[CatalogEntry],
        video_files: list[dict],
        links: list[str],
    ) -> list[tuple[CatalogEntry, str, str]]:
        """
        Pair the pack's video files with the catalog

        Files (ordered by provider file id) and links are zipped by
        position. Files without an episode marker or without a catalog
        match are skipped.

        Returns:
            (catalog entry, link, file name) per matched file, one per episode;
            a preferred-tag file wins over a plain one for the same episode
        """
        if len(video_files) != len(links):
            logger.warning(
                f"Pack has {len(video_files)} video files but {len(links)} links, "
                f"pairing the first {min(len(video_files), len(links))}"
            )

        matched: dict[str, tuple[CatalogEntry, str, str]] = {}
        for file, link in zip(video_files, links):
            name = PurePosixPath(file.get("path", "")).name
            marker = parse_episode(name)
            if not marker:
                logger.debug(f"Could not parse episode from: {name}")
                continue
            entry = resolve_release_season(show, catalog, marker.season, marker.episode)
            if entry is None:
                logger.debug(f"No catalog match for S{marker.season}E{marker.episode} from \"{name}\"")
                continue

            current = matched.get(entry.key)
            if current and not self._is_variant(show, name):
                continue
            if current and self._is_variant(show, current[2]):
                continue
            matched[entry.key] = (entry, link, name)
        return list(matched.values())

    def download_pack(
        self,
        show: ShowConfig,
        pack: SourceCandidate,
        catalog: list[CatalogEntry],
        state: ShowState,
    ) -> set[str]:
        """
        Fetch a pack through the cache and download its matched episodes

        Raises:
            ContentError when the pack is dead or none of its files maps
            onto the catalog

        Returns:
            Keys of the episodes now present on disk thanks to this pack
        """
        logger.info(f"Trying pack: {pack.title[:80]}")
        video_files, links = self.cache.fetch(pack.locator)
        matches = self.map_pack_files(show, catalog, video_files, links)
        if not matches:
            raise ContentError("No file of the pack matched the catalog")

        source = SourceTier.SERIES if pack.pack_type == PackType.SERIES else SourceTier.SEASON
        handled: set[str] = set()
        tasks = []
        for entry, link, name in matches:
            if state.is_downloaded(entry.key):
                handled.add(entry.key)
                continue
            dest = self.paths.destination(show, entry, name, pack.title)
            tasks.append(DownloadTask(link=link, dest=dest, key=entry.key, payload=entry))

        logger.info(
            f"Pack matched {len(tasks)} episodes to download ({len(handled)} already had)"
        )

        def on_start(task: DownloadTask):
            state.set(
                task.key,
                EpisodeRecord(EpisodeStatus.DOWNLOADING, task.payload.title, source=source),
            )

        def on_success(task: DownloadTask):
            state.set(task.key, EpisodeRecord.downloaded(task.payload, str(task.dest), source))
            handled.add(task.key)

        def on_failure(task: DownloadTask, failure: TaskResult):
            state.set(
                task.key,
                EpisodeRecord(
                    EpisodeStatus.ERROR,
                    task.payload.title,
                    source=source,
                    error=failure.error,
                    error_kind=failure.kind,
                ),
            )

        self.executor.run(tasks, self.active_transfers, on_start, on_success, on_failure)
        logger.info(f"Pack result: {len(handled)} total handled")
        return handled

    # Tier 3: individual episodes

    def _individual_tier(
        self,
        show: ShowConfig,
        catalog: list[CatalogEntry],
        state: ShowState,
        needed: dict[str, CatalogEntry],
    ):
        remaining = [e for e in catalog if e.key in needed]
        if not remaining:
            return
        logger.info(f"{show.title}: {len(remaining)} episodes need individual download")

        for entry in remaining:
            try:
                if self.acquire_episode(show, entry, state):
                    needed.pop(entry.key, None)
            except NotFoundError as e:
                logger.warning(f"{entry.key}: {e}")
                state.set(
                    entry.key,
                    EpisodeRecord(
                        EpisodeStatus.NOT_FOUND, entry.title, error_kind=ErrorKind.NOT_FOUND
                    ),
                )
            except (ContentError, TransientProviderError, ConfigurationError) as e:
                logger.error(f"Individual download failed for {entry.key}: {e}")
                state.set(
                    entry.key,
                    EpisodeRecord(
                        EpisodeStatus.ERROR,
                        entry.title,
                        source=SourceTier.PROWLARR,
                        error=str(e),
                        error_kind=e.kind,
                    ),
                )
                if isinstance(e, ConfigurationError):
                    raise

    def acquire_episode(self, show: ShowConfig, entry: CatalogEntry, state: ShowState) -> bool:
        """
        Acquire one episode: disk re-check, instant lookup, then indexer + cache

        Raises:
            NotFoundError when the indexer has no candidate
            ContentError / TransientProviderError when the best candidate fails
        """
        key = entry.key
        existing = self.paths.find_existing_file(show, entry.season, entry.episode)
        if existing:
            state.set(key, EpisodeRecord.downloaded(entry, str(existing), SourceTier.DISK))
            return True

        if self._try_instant(show, entry, state):
            return True

        state.set(key, EpisodeRecord(EpisodeStatus.SEARCHING, entry.title, source=SourceTier.PROWLARR))
        search_season = get_search_season(show, entry.season)
        candidates = self._search_episode(show, search_season, entry.episode)
        if not candidates:
            raise NotFoundError(f"No sources found for {key}")

        best = self.scorer.rank(candidates, show)[0]
        logger.info(f"{key}: best source \"{best.title[:70]}\" (score: {best.score})")
        state.set(key, EpisodeRecord(EpisodeStatus.DOWNLOADING, entry.title, source=SourceTier.PROWLARR))

        video_files, links = self.cache.fetch(best.locator)
        link, name = self._pick_link(video_files, links, search_season, entry.episode)
        dest = self.paths.destination(show, entry, name, best.title)

        result = self.executor.run(
            [DownloadTask(link=link, dest=dest, key=key, payload=entry)], self.active_transfers
        )[0]
        if not result.success:
            if result.kind == ErrorKind.TRANSIENT:
                raise TransientProviderError(result.error or "Download failed")
            raise ContentError(result.error or "Download failed")

        state.set(key, EpisodeRecord.downloaded(entry, str(dest), SourceTier.PROWLARR))
        return True

    def _try_instant(self, show: ShowConfig, entry: CatalogEntry, state: ShowState) -> bool:
        if not self.instant or not self.instant.enabled:
            return False
        key = entry.key
        state.set(key, EpisodeRecord(EpisodeStatus.SEARCHING, entry.title, source=SourceTier.ZURG))
        match, fallback = self.instant.find_episode(
            show.title,
            get_search_season(show, entry.season),
            entry.episode,
            runtime=entry.runtime,
            year=entry.year,
        )
        found = match or fallback
        if not found:
            return False

        dest = self.paths.destination(show, entry, found.file_path)
        state.set(key, EpisodeRecord(EpisodeStatus.DOWNLOADING, entry.title, source=SourceTier.ZURG))
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(found.file_path, dest)
        except OSError as e:
            logger.warning(f"Zurg copy failed for {key}: {e}")
            Path(dest).unlink(missing_ok=True)
            return False

        state.set(key, EpisodeRecord.downloaded(entry, str(dest), SourceTier.ZURG))
        logger.info(f"Copied from Zurg: {dest.name}")
        return True

    def _search_episode(self, show: ShowConfig, season: int, episode: int) -> list[SourceCandidate]:
        """Individual candidates for an episode, first alias with results wins"""
        for alias in show.search_aliases:
            try:
                candidates = self.indexer.search_episode(alias, season, episode)
            except ContentError as e:
                logger.debug(f"Episode search for {alias} failed: {e}")
                continue
            if candidates:
                return candidates
        return []

    @staticmethod
    def _pick_link(
        video_files: list[dict], links: list[str], season: int, episode: int
    ) -> tuple[str, str]:
        """Link of the file carrying the episode, the first one otherwise"""
        if not links:
            raise ContentError("Cache returned no links")
        pairs = list(zip(video_files, links))
        for file, link in pairs:
            name = PurePosixPath(file.get("path", "")).name
            marker = parse_episode(name)
            if marker and marker.season == season and marker.covers(episode):
                return link, name
        if pairs:
            return pairs[0][1], PurePosixPath(pairs[0][0].get("path", "")).name
        return links[0], PurePosixPath(links[0]).name

    def _is_variant(self, show: ShowConfig, name: str) -> bool:
        lower = name.lower()
        return any(tag in lower for tag in show.prefer_tags)

    # Multi-part combining

    def combine_multi_parts(
        self, show: ShowConfig, catalog: list[CatalogEntry], state: ShowState
    ) -> int:
        """
        Combine every multi-part story whose parts are all on disk

        The records of every part are pointed at the combined file.

        Returns:
            Number of stories combined or already combined
        """
        combined = 0
        by_key = {e.key: e for e in catalog}
        for primary in catalog:
            if not primary.multi_part or not primary.multi_part.is_primary:
                continue
            keys = [
                episode_key(show.id, primary.season, number)
                for number in primary.multi_part.episode_numbers
            ]
            if not all(state.is_downloaded(k) for k in keys):
                continue
            try:
                path = self.combiner.combine(show, primary)
            except OSError as e:
                logger.error(f"Combine failed for {primary.key}: {e}")
                continue
            if path is None:
                continue
            combined += 1
            with state.batch():
                for key in keys:
                    entry = by_key.get(key)
                    if entry is None:
                        continue
                    current = state.get(key)
                    source = SourceTier.COMBINED
                    record = EpisodeRecord.downloaded(entry, str(path), source)
                    if current != record:
                        state.set(key, record)
        return combined
