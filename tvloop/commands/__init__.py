"""
Commands module for tvloop CLI
"""

from .schedule_command import generate_schedule, schedule_command
from .setup_command import setup_command
from .status_command import status_command
from .test_command import run_test_command, test_command

__all__ = [
    "generate_schedule",
    "run_test_command",
    "schedule_command",
    "setup_command",
    "status_command",
    "test_command",
]
