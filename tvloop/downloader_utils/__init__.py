"""
Downloader package - on-disk layout of the channel library
"""

from .paths import ORIGINALS_DIR, PathManager

__all__ = [
    "ORIGINALS_DIR",
    "PathManager",
]
