"""Core abstractions and utilities for the mastering pipeline."""

from .analysis import LoudnessAnalyzer, parse_loudness_report
from .base import (
    AnalysisParseWarning,
    AnalysisResult,
    JobStatus,
    MasteringError,
    MasteringJob,
    MasteringResult,
    ProcessingResult,
    ProcessingStatus,
    RenderEngineError,
    Renderer,
    RenderTimeoutError,
)
from .chain import CUSTOM_RECIPES, ChainPlan, FilterChainBuilder, Recipe
from .config import ConfigManager, ProcessingOptions, with_config_overrides
from .ffmpeg import FFmpegRenderer
from .file_manager import ArtifactManager, CleanupReport, allocate_output_paths
from .gain import compute_gain, gain_stage
from .presets import BUILTIN_PRESETS, DEFAULT_PRESET_ID, Preset, PresetCatalog, preset_from_dict
from .stages import (
    Bell,
    Compressor,
    FilterStage,
    Gain,
    HighPass,
    Limiter,
    LoudnessNormalize,
    Shelf,
    serialize_chain,
)
from .stats import JsonStatsRecorder, NullStatsRecorder, StatsRecorder

__all__ = [
    "BUILTIN_PRESETS",
    "CUSTOM_RECIPES",
    "DEFAULT_PRESET_ID",
    "AnalysisParseWarning",
    "AnalysisResult",
    "ArtifactManager",
    "Bell",
    "ChainPlan",
    "CleanupReport",
    "Compressor",
    "ConfigManager",
    "FFmpegRenderer",
    "FilterChainBuilder",
    "FilterStage",
    "Gain",
    "HighPass",
    "JobStatus",
    "JsonStatsRecorder",
    "Limiter",
    "LoudnessAnalyzer",
    "LoudnessNormalize",
    "MasteringError",
    "MasteringJob",
    "MasteringResult",
    "NullStatsRecorder",
    "Preset",
    "PresetCatalog",
    "ProcessingOptions",
    "ProcessingResult",
    "ProcessingStatus",
    "Recipe",
    "RenderEngineError",
    "RenderTimeoutError",
    "Renderer",
    "Shelf",
    "StatsRecorder",
    "allocate_output_paths",
    "compute_gain",
    "gain_stage",
    "parse_loudness_report",
    "preset_from_dict",
    "serialize_chain",
    "with_config_overrides",
]
