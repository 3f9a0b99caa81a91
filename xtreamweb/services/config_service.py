"""Configuration service: loads, saves, and provides access to AppConfig."""
from __future__ import annotations

import json
import logging
import os

from pydantic import ValidationError

from xtreamweb.models.config import AppConfig, XtreamConfig

logger = logging.getLogger(__name__)

MIN_SWEEP_INTERVAL = 60


class ConfigService:
    """Manages application configuration with file persistence.

    The config is kept in-memory after first load and re-read on explicit
    ``load()`` or ``reload()`` calls.  Every route that needs the config
    should depend on this service rather than reading the JSON directly.
    """

    def __init__(self, data_dir: str):
        self.data_dir = data_dir
        self.config_file = os.path.join(data_dir, "config.json")
        self._config: dict = self._default_config()

    # ------------------------------------------------------------------
    # Defaults
    # ------------------------------------------------------------------

    @staticmethod
    def _default_config() -> dict:
        return AppConfig().model_dump(by_alias=True)

    # ------------------------------------------------------------------
    # Load / Save
    # ------------------------------------------------------------------

    def load(self) -> dict:
        """Load configuration from disk, applying defaults for missing keys."""
        if os.path.exists(self.config_file):
            try:
                with open(self.config_file) as f:
                    raw = json.load(f)
                self._config = AppConfig.model_validate(raw).model_dump(by_alias=True)
                return self._config
            except (OSError, json.JSONDecodeError, ValidationError) as e:
                logger.error(f"Error loading config: {e}")

        self._config = self._default_config()
        return self._config

    def reload(self) -> dict:
        """Alias for ``load()``."""
        return self.load()

    def save(self, config: dict | None = None) -> None:
        """Validate and persist the config to disk."""
        if config is not None:
            self._config = config
        self._config = AppConfig.model_validate(self._config).model_dump(by_alias=True)
        os.makedirs(self.data_dir, exist_ok=True)
        with open(self.config_file, "w") as f:
            json.dump(self._config, f, indent=2)

    @property
    def config(self) -> dict:
        return self._config

    # ------------------------------------------------------------------
    # Convenience accessors
    # ------------------------------------------------------------------

    def get_xtream_config(self) -> XtreamConfig:
        return XtreamConfig.model_validate(self._config.get("xtream", {}))

    def set_xtream_config(self, xtream: XtreamConfig) -> None:
        self._config["xtream"] = xtream.model_dump(by_alias=True)
        self.save()

    def get_options(self) -> dict:
        return self._config.get("options", {})

    def get_sweep_interval(self) -> int:
        return max(int(self.get_options().get("sweep_interval", 3600)), MIN_SWEEP_INTERVAL)

    sweep_interval = property(get_sweep_interval)

    def get_sweep_probability(self) -> float:
        return float(self.get_options().get("sweep_probability", 0.1))

    sweep_probability = property(get_sweep_probability)

    def get_search_default_limit(self) -> int:
        return int(self.get_options().get("search_default_limit", 50))

    search_default_limit = property(get_search_default_limit)

    def get_proxy_enabled(self) -> bool:
        return self.get_options().get("proxy_streams", True)

    proxy_enabled = property(get_proxy_enabled)
