"""
Configuration management
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigurationError
from .models import ShowConfig
from .prowlarr import MIN_SEEDERS
from .shuffle import DEFAULT_SEED


def default_shows() -> list[dict]:
    """Built-in channel rotation, used when the configuration lists no shows"""
    return [
        {
            "id": 1433,
            "title": "American Dad",
            "dir_name": "American Dad",
            "search_aliases": ["American Dad", "American Dad!"],
        },
        {
            "id": 2316,
            "title": "The Office",
            "dir_name": "The Office",
            "prefer_tags": ["superfan"],
            "search_aliases": ["The Office US", "The Office"],
        },
        {
            "id": 8592,
            "title": "Parks and Recreation",
            "dir_name": "Parks and Recreation",
            "search_aliases": ["Parks and Recreation", "Parks and Rec"],
        },
        {
            "id": 48891,
            "title": "Brooklyn Nine-Nine",
            "dir_name": "Brooklyn Nine-Nine",
            "search_aliases": ["Brooklyn Nine-Nine", "Brooklyn Nine Nine", "Brooklyn 99"],
        },
    ]


@dataclass
class Config:
    """Application configuration"""

    root_directory: str = "/mnt/nas/tvloop"
    state_directory: str | None = None  # default: <root>/.tvloop
    schedule_file: str | None = None  # default: <root>/.tvloop-schedule.json
    # Metadata provider
    tmdb_api_key: str | None = None
    tmdb_url: str = "https://api.themoviedb.org/3"
    # Debrid cache
    rd_api_key: str | None = None
    rd_url: str = "https://api.real-debrid.com/rest/1.0"
    # Indexer
    prowlarr_url: str = "http://localhost:9696"
    prowlarr_api_key: str | None = None
    min_seeders: int = MIN_SEEDERS
    # Instant lookup mount
    zurg_mount: str = "/mnt/zurg"
    zurg_enabled: bool = True
    # Acquisition
    max_concurrent_downloads: int = 3
    magnet_delay: float = 1.0
    download_timeout: int = 1800
    retry_attempts: int = 3
    retry_base_delay: float = 2.0
    combine_multi_parts: bool = True
    # Schedule generation
    shuffle_seed: int = DEFAULT_SEED
    # Watch mode
    schedule_interval: int = 6
    schedule_unit: str = "hours"
    log_level: str = "INFO"
    shows: list = field(default_factory=default_shows)

    def __post_init__(self):
        if not self.state_directory:
            self.state_directory = str(Path(self.root_directory) / ".tvloop")
        if not self.schedule_file:
            self.schedule_file = str(Path(self.root_directory) / ".tvloop-schedule.json")
        if not self.shows:
            self.shows = default_shows()

    @property
    def show_configs(self) -> list[ShowConfig]:
        return [s if isinstance(s, ShowConfig) else ShowConfig.from_dict(s) for s in self.shows]

    def find_show(self, name: str) -> ShowConfig | None:
        """Show matching an id, or a case-insensitive title/directory fragment"""
        shows = self.show_configs
        if name.isdigit():
            return next((s for s in shows if s.id == int(name)), None)
        lowered = name.lower()
        exact = [s for s in shows if lowered in (s.title.lower(), s.dir_name.lower())]
        if exact:
            return exact[0]
        return next((s for s in shows if lowered in s.title.lower()), None)

    def require_acquisition_credentials(self):
        """Fail fast before any work when an acquisition credential is missing"""
        missing = []
        if not self.tmdb_api_key:
            missing.append("TMDB_API_KEY")
        if not self.rd_api_key:
            missing.append("RD_API_KEY")
        if missing:
            raise ConfigurationError(f"Missing credentials: {', '.join(missing)}")

    @classmethod
    def from_env_and_file(cls, config_path: Path | None = None) -> "Config":
        """Load configuration from file and/or environment variables"""
        config_data: dict[str, Any] = {}

        # Load from file if specified
        if config_path and config_path.exists():
            with open(config_path, "r", encoding="utf-8") as f:
                config_data = yaml.safe_load(f) or {}

        # Environment variables take priority
        env_map = {
            "TVLOOP_ROOT": "root_directory",
            "TMDB_API_KEY": "tmdb_api_key",
            "RD_API_KEY": "rd_api_key",
            "PROWLARR_URL": "prowlarr_url",
            "PROWLARR_API_KEY": "prowlarr_api_key",
            "ZURG_MOUNT": "zurg_mount",
            "LOG_LEVEL": "log_level",
        }
        for env_name, key in env_map.items():
            if os.getenv(env_name):
                config_data[key] = os.getenv(env_name)

        # A dedicated key for the channel wins over the shared one
        if os.getenv("TVLOOP_RD_API_KEY"):
            config_data["rd_api_key"] = os.getenv("TVLOOP_RD_API_KEY")

        zurg_enabled_env = os.getenv("ZURG_ENABLED")
        if zurg_enabled_env:
            config_data["zurg_enabled"] = zurg_enabled_env.lower() in [
                "true",
                "1",
                "yes",
            ]

        seed_env = os.getenv("TVLOOP_SEED")
        if seed_env:
            try:
                config_data["shuffle_seed"] = int(seed_env)
            except ValueError:
                raise ValueError(f"TVLOOP_SEED must be an integer, got {seed_env!r}")

        return cls(**config_data)
