"""
Miscellaneous utilities
"""

import logging


def setup_logging(log_level: str = "INFO"):
    """Configure logging system"""
    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # urllib3 logs every connection at DEBUG, far too chatty during pack downloads
    logging.getLogger("urllib3").setLevel(max(numeric_level, logging.INFO))


def episode_key(show_id: int, season: int, episode: int) -> str:
    """Stable key of an episode in the state document: 1433-S01E02"""
    return f"{show_id}-S{season:02d}E{episode:02d}"


def format_duration(duration_ms: int) -> str:
    """Format a duration in milliseconds as hours with one decimal"""
    return f"{duration_ms / 3_600_000:.1f} hours"
