"""
CLI configuration handler
"""

import sys
from pathlib import Path

from rich.console import Console

from .catalog import CatalogBuilder
from .combiner import MultiPartCombiner
from .config import Config
from .downloader_utils import PathManager
from .errors import ConfigurationError
from .executor import DownloadExecutor
from .orchestrator import AcquisitionOrchestrator
from .prowlarr import ProwlarrClient
from .realdebrid import RealDebridClient
from .retry import RateLimiter, RetryPolicy
from .scorer import SourceScorer
from .state import StateStore
from .tmdb import TmdbClient
from .zurg import ZurgLookup

console = Console()


def load_config_from_args(
    config_file: str | None,
    root_dir: str | None,
    log_level: str | None,
) -> Config:
    """
    Load configuration from CLI arguments and files

    Args:
        config_file: Path to config file
        root_dir: Library root from CLI, overrides file and environment
        log_level: Log level from CLI

    Returns:
        Config object

    Raises:
        SystemExit if configuration is invalid
    """
    try:
        if config_file:
            cfg = Config.from_env_and_file(Path(config_file))
        else:
            # Try to load from default file, environment otherwise
            cfg = Config.from_env_and_file(Path("config.yaml"))
    except (OSError, ValueError, TypeError) as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        console.print("\nCreate a config.yaml file (see config.example.yaml)")
        console.print("or set TVLOOP_ROOT, TMDB_API_KEY, RD_API_KEY and PROWLARR_API_KEY")
        sys.exit(1)

    if root_dir:
        cfg.root_directory = root_dir
        cfg.state_directory = str(Path(root_dir) / ".tvloop")
        cfg.schedule_file = str(Path(root_dir) / ".tvloop-schedule.json")
    if log_level:
        cfg.log_level = log_level
    return cfg


def build_orchestrator(config: Config) -> AcquisitionOrchestrator:
    """
    Wire the providers and the acquisition pipeline

    Raises:
        ConfigurationError when a required credential is missing
    """
    config.require_acquisition_credentials()
    retry = RetryPolicy(
        max_attempts=config.retry_attempts, base_delay=config.retry_base_delay
    )
    paths = PathManager(config.root_directory)
    metadata = TmdbClient(config.tmdb_api_key, config.tmdb_url, retry=retry)
    indexer = ProwlarrClient(
        config.prowlarr_url,
        config.prowlarr_api_key,
        retry=retry,
        min_seeders=config.min_seeders,
    )
    cache = RealDebridClient(
        config.rd_api_key,
        config.rd_url,
        retry=retry,
        rate_limiter=RateLimiter(config.magnet_delay),
        download_timeout=config.download_timeout,
    )
    return AcquisitionOrchestrator(
        catalog_builder=CatalogBuilder(metadata, cache_dir=config.state_directory),
        store=StateStore(config.state_directory),
        scorer=SourceScorer(),
        indexer=indexer,
        cache=cache,
        instant=ZurgLookup(config.zurg_mount, enabled=config.zurg_enabled),
        executor=DownloadExecutor(
            cache,
            max_workers=config.max_concurrent_downloads,
            timeout=config.download_timeout,
        ),
        paths=paths,
        combiner=MultiPartCombiner(paths) if config.combine_multi_parts else None,
    )


def validate_credentials(config: Config):
    """
    Exit with a readable message when acquisition credentials are missing

    Raises:
        SystemExit if a credential is missing
    """
    try:
        config.require_acquisition_credentials()
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        console.print("\nPlease verify:")
        console.print("  - TMDB_API_KEY is set (metadata)")
        console.print("  - RD_API_KEY or TVLOOP_RD_API_KEY is set (debrid cache)")
        sys.exit(1)


def setup_context(config: Config) -> dict:
    """
    Setup CLI context with config and shared helpers

    Args:
        config: Configuration object

    Returns:
        Dictionary with context objects
    """
    return {
        "config": config,
        "paths": PathManager(config.root_directory),
        "store": StateStore(config.state_directory),
    }
