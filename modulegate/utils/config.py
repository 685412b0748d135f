"""
Runtime configuration for modulegate.

Settings come from environment variables, optionally seeded from a `.env`
file at the project root:

  MODULEGATE_DB          path to the progress database
  MODULEGATE_MAX_WORKERS threads used by evaluate_all (1 = sequential)
  MODULEGATE_MAX_DEPTH   longest prerequisite chain accepted (unset = no limit)
  MODULEGATE_LOG_LEVEL   logging level name for scripts
"""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator


PROJECT_ROOT = Path(__file__).parent.parent.parent
DEFAULT_PROGRESS_DIR = Path.home() / ".modulegate"
DEFAULT_PROGRESS_DB = DEFAULT_PROGRESS_DIR / "progress.db"
DEFAULT_MAX_WORKERS = 1
DEFAULT_MAX_DEPTH: Optional[int] = None

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


class Settings(BaseModel):
    db_path: Path = DEFAULT_PROGRESS_DB
    max_workers: int = Field(default=DEFAULT_MAX_WORKERS, ge=1)
    max_depth: Optional[int] = Field(default=DEFAULT_MAX_DEPTH, ge=1)
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def known_level(cls, v):
        level = v.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {v}")
        return level


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """
    Load settings from the environment.

    Args:
        env_file: Optional .env file (default: PROJECT_ROOT/.env). Values
            already present in the environment win over the file.

    Returns:
        Validated Settings

    Raises:
        pydantic.ValidationError: If a variable holds an invalid value
    """
    load_dotenv(env_file or PROJECT_ROOT / ".env")

    values = {}
    if os.environ.get("MODULEGATE_DB"):
        values["db_path"] = Path(os.environ["MODULEGATE_DB"]).expanduser()
    if os.environ.get("MODULEGATE_MAX_WORKERS"):
        values["max_workers"] = os.environ["MODULEGATE_MAX_WORKERS"]
    if os.environ.get("MODULEGATE_MAX_DEPTH"):
        values["max_depth"] = os.environ["MODULEGATE_MAX_DEPTH"]
    if os.environ.get("MODULEGATE_LOG_LEVEL"):
        values["log_level"] = os.environ["MODULEGATE_LOG_LEVEL"]
    return Settings(**values)


def setup_logging(level: str = "INFO"):
    """Configure root logging the same way for every script."""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
