"""modulegate utilities."""

from .config import (
    Settings,
    load_settings,
    setup_logging,
    PROJECT_ROOT,
    DEFAULT_PROGRESS_DIR,
    DEFAULT_PROGRESS_DB,
)

__all__ = [
    "Settings",
    "load_settings",
    "setup_logging",
    "PROJECT_ROOT",
    "DEFAULT_PROGRESS_DIR",
    "DEFAULT_PROGRESS_DB",
]
