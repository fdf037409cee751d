"""Configuration service — loads, saves and provides access to the app config."""
from __future__ import annotations

import json
import logging
import os
from typing import Optional

from pydantic import ValidationError

from lightcatalog.models.config import AppConfig, Options, SourceConfig, source_adapter

logger = logging.getLogger(__name__)


class ConfigService:
    """Manages application configuration with file persistence.

    The config is kept in-memory after first load and re-read on explicit
    ``load()`` calls.  It stores the active source and the last played
    channel id; the cached playlist text lives in :class:`CacheService`.
    """

    def __init__(self, data_dir: str):
        self.data_dir = data_dir
        self.config_file = os.path.join(data_dir, "config.json")
        self._config: dict = self._default_config()

    @staticmethod
    def _default_config() -> dict:
        return AppConfig().model_dump()

    # ------------------------------------------------------------------
    # Load / Save
    # ------------------------------------------------------------------

    def load(self) -> dict:
        """Load configuration from disk, filling in missing keys."""
        default = self._default_config()

        if os.path.exists(self.config_file):
            try:
                with open(self.config_file) as f:
                    config = json.load(f)

                for key in default:
                    if key not in config:
                        config[key] = default[key]
                for key, value in default["options"].items():
                    config["options"].setdefault(key, value)

                self._config = config
                return self._config

            except (OSError, json.JSONDecodeError, AttributeError, TypeError) as e:
                logger.error(f"Error loading config: {e}")

        self._config = default
        return self._config

    def save(self, config: dict | None = None) -> None:
        """Persist the config to disk."""
        if config is not None:
            self._config = config
        os.makedirs(self.data_dir, exist_ok=True)
        with open(self.config_file, "w") as f:
            json.dump(self._config, f, indent=2)

    @property
    def config(self) -> dict:
        return self._config

    # ------------------------------------------------------------------
    # Convenience accessors
    # ------------------------------------------------------------------

    def get_source(self) -> Optional[SourceConfig]:
        raw = self._config.get("source")
        if not raw:
            return None
        try:
            return source_adapter.validate_python(raw)
        except ValidationError as e:
            logger.warning(f"Ignoring invalid source in config: {e}")
            return None

    def set_source(self, source: Optional[SourceConfig]) -> None:
        self._config["source"] = source.model_dump() if source is not None else None
        self.save()

    def get_options(self) -> Options:
        try:
            return Options.model_validate(self._config.get("options") or {})
        except ValidationError as e:
            logger.warning(f"Invalid options in config, using defaults: {e}")
            return Options()

    options = property(get_options)

    def get_last_channel_id(self) -> str:
        return self._config.get("last_channel_id", "") or ""

    def set_last_channel_id(self, channel_id: str) -> None:
        self._config["last_channel_id"] = channel_id
        self.save()
