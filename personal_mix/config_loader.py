"""
Configuration loader for config.yaml.

Run-wide settings (database paths, logging, random seed, tuning sections) and
the list of playlists to generate. Database paths can be overridden through
PERSONAL_MIX_LIBRARY_DB and PERSONAL_MIX_HISTORY_DB.
"""
import logging
import os
from typing import Any, List, Optional

import yaml

from personal_mix.playlist.config import (
    GenerationSettings,
    PlaylistConfig,
    playlist_config_from_dict,
    settings_from_dict,
)

logger = logging.getLogger(__name__)

_PLACEHOLDER_PREFIX = "YOUR_"


class Config:
    """Parsed config.yaml for one Personal Mix run"""

    def __init__(self, config_path: str = "config.yaml"):
        self.config_path = config_path
        self.config = self._read_yaml()
        self._check_required()

    def _read_yaml(self) -> dict:
        if not os.path.exists(self.config_path):
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        with open(self.config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValueError(f"Configuration root must be a mapping: {self.config_path}")
        return data

    def _check_required(self) -> None:
        library = self.config.get("library")
        if not isinstance(library, dict):
            raise ValueError(f"Missing 'library' section in {self.config_path}")

        db_path = library.get("database_path")
        if not db_path or str(db_path).startswith(_PLACEHOLDER_PREFIX):
            raise ValueError(f"Please set library.database_path in {self.config_path}")

        playlists = self.config.get("playlists")
        if playlists is not None and not isinstance(playlists, list):
            raise ValueError("'playlists' must be a list of playlist entries")

    def get(self, section: str, key: str, default: Any = None) -> Any:
        """Value of `section.key`, or `default` when either level is absent."""
        values = self.config.get(section) or {}
        return values.get(key, default)

    @property
    def library_database_path(self) -> str:
        return os.getenv("PERSONAL_MIX_LIBRARY_DB") or self.config["library"]["database_path"]

    @property
    def history_database_path(self) -> str:
        """Listening history database; the library database unless set separately"""
        return (
            os.getenv("PERSONAL_MIX_HISTORY_DB")
            or self.get("library", "history_database_path")
            or self.library_database_path
        )

    @property
    def log_level(self) -> str:
        return str(self.get("logging", "level", "INFO")).upper()

    @property
    def log_file(self) -> Optional[str]:
        return self.get("logging", "file")

    @property
    def random_seed(self) -> Optional[int]:
        """Seed for sampling and shuffling (None = fresh randomness each run)"""
        return self.get("run", "random_seed")

    @property
    def settings(self) -> GenerationSettings:
        return settings_from_dict(self.config)

    @property
    def playlist_configs(self) -> List[PlaylistConfig]:
        """
        Parse the configured playlists.

        Invalid entries are logged and skipped so the remaining playlists
        still run.
        """
        configs = []
        for position, entry in enumerate(self.config.get("playlists") or [], start=1):
            try:
                configs.append(playlist_config_from_dict(entry))
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping invalid playlist entry #{position}: {e}")
        return configs
