"""Configuration management for the mastering toolkit."""

from __future__ import annotations

from .constants import *  # noqa: F403, F401
from .settings import MasteringSettings, MasteringToolkitConfig, RenderSettings, get_config

__all__ = [
    "MasteringSettings",
    "MasteringToolkitConfig",
    "RenderSettings",
    "get_config",
]
