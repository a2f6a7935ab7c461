"""Mastering Toolkit - loudness-targeted audio mastering on top of ffmpeg."""

from __future__ import annotations

__version__ = "0.1.0"
__description__ = "Preset-driven audio mastering with loudness verification"

# Public API exports
from .config import MasteringToolkitConfig, get_config
from .core import (
    AnalysisResult,
    ConfigManager,
    FFmpegRenderer,
    FilterChainBuilder,
    LoudnessAnalyzer,
    MasteringError,
    MasteringResult,
    Preset,
    PresetCatalog,
    ProcessingResult,
    ProcessingStatus,
    RenderEngineError,
    RenderTimeoutError,
    with_config_overrides,
)
from .processors import MasteringOrchestrator, MasteringProcessor

__all__ = [
    # Configuration
    "MasteringToolkitConfig",
    "get_config",
    "ConfigManager",
    "with_config_overrides",
    # Core functionality
    "PresetCatalog",
    "Preset",
    "LoudnessAnalyzer",
    "FilterChainBuilder",
    "FFmpegRenderer",
    # Processors
    "MasteringOrchestrator",
    "MasteringProcessor",
    # Data classes
    "AnalysisResult",
    "MasteringResult",
    "ProcessingStatus",
    "ProcessingResult",
    # Exceptions
    "MasteringError",
    "RenderEngineError",
    "RenderTimeoutError",
]
