"""Configuration access with runtime overrides."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..config import MasteringToolkitConfig
from ..config import get_config as _get_global_config

LOG = logging.getLogger(__name__)


@dataclass
class ProcessingOptions:
    """Processing options that can override configuration."""

    workers: int | None = None
    timeout: int | None = None
    output_dir: Path | None = None
    record_stats: bool = True
    job_timeout: float | None = None


class ConfigManager:
    """Configuration manager with override and context support."""

    def __init__(self, config_path: Path | None = None) -> None:
        """
        Initialize configuration manager.

        Args:
            config_path: Optional path to config file

        """
        self._config = MasteringToolkitConfig.load_from_file(config_path) if config_path else _get_global_config()
        self._config_path = config_path
        self._overrides: dict[str, Any] = {}
        self._context_stack: list[dict[str, Any]] = []

    @property
    def config(self) -> MasteringToolkitConfig:
        """Get the base configuration."""
        return self._config

    @property
    def config_path(self) -> Path:
        return self._config_path or Path("config.yaml")

    def get_value(self, key_path: str, default: object = None) -> object:
        """Get configuration value with override support."""
        if key_path in self._overrides:
            return self._overrides[key_path]

        try:
            value: object = self._config
            for part in key_path.split("."):
                value = getattr(value, part)
        except AttributeError:
            return default
        else:
            return value

    def set_override(self, key_path: str, value: object) -> None:
        """Set a temporary configuration override."""
        self._overrides[key_path] = value

    def push_context(self, overrides: dict[str, Any]) -> None:
        """Push a new configuration context."""
        self._context_stack.append(self._overrides.copy())
        self._overrides.update(overrides)

    def pop_context(self) -> None:
        """Pop the current configuration context."""
        if self._context_stack:
            self._overrides = self._context_stack.pop()

    def apply_processing_options(self, options: ProcessingOptions) -> None:
        """Apply processing options as configuration overrides."""
        overrides: dict[str, Any] = {}

        if options.workers is not None:
            overrides["global_.default_workers"] = options.workers
        if options.timeout is not None:
            overrides["render.timeout"] = options.timeout
        if options.job_timeout is not None:
            overrides["mastering.job_timeout"] = options.job_timeout
        if options.output_dir is not None:
            overrides["mastering.output_dir"] = options.output_dir
        if not options.record_stats:
            overrides["global_.stats_file"] = None

        if overrides:
            LOG.debug("Applying CLI overrides: %s", overrides)
        for key, value in overrides.items():
            self.set_override(key, value)


class ConfigContext:
    """Context manager for temporary configuration changes."""

    def __init__(self, config_manager: ConfigManager, overrides: dict[str, Any]) -> None:
        self.config_manager = config_manager
        self.overrides = overrides

    def __enter__(self) -> ConfigManager:
        """Enter the configuration context."""
        self.config_manager.push_context(self.overrides)
        return self.config_manager

    def __exit__(self, _exc_type: object, _exc_val: object, _exc_tb: object) -> None:
        """Exit the configuration context."""
        self.config_manager.pop_context()


def with_config_overrides(config_manager: ConfigManager, **overrides: object) -> ConfigContext:
    """Create a context with configuration overrides."""
    return ConfigContext(config_manager, overrides)
