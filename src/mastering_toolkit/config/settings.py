"""Configuration management for the mastering toolkit."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .constants import LOUDNORM_LOUDNESS_RANGE_MAX

LOG = logging.getLogger(__name__)


def _optional_float(value: object) -> float | None:
    return None if value is None else float(value)  # type: ignore[arg-type]


# Configuration singleton
class _ConfigSingleton:
    """Configuration singleton holder."""

    _instance: MasteringToolkitConfig | None = None

    @classmethod
    def get_instance(cls) -> MasteringToolkitConfig:
        """Get the configuration instance."""
        if cls._instance is None:
            config_path = Path.cwd() / "config.yaml"
            if config_path.exists():
                cls._instance = MasteringToolkitConfig.load_from_file(config_path)
            else:
                cls._instance = MasteringToolkitConfig()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset the configuration instance."""
        cls._instance = None


_config_singleton = _ConfigSingleton()


@dataclass
class MasteringSettings:
    """
    Mastering decision constants.

    The tolerances and gain bounds are empirical values carried over from
    the production service. They are kept configurable rather than derived.
    """

    default_preset: str = "kidandali"
    gain_min_db: float = -6.0
    gain_max_db: float = 12.0
    gain_omit_threshold_db: float = 0.5
    compressor_gate_lufs: float = -20.0
    parametric_tolerance_lufs: float = 2.0
    custom_tolerance_lufs: float = 1.5
    loudness_range_max: float = LOUDNORM_LOUDNESS_RANGE_MAX
    job_timeout: float | None = None
    output_dir: Path = field(default_factory=lambda: Path("output"))
    extensions: list[str] = field(
        default_factory=lambda: [
            ".wav",
            ".flac",
            ".mp3",
            ".aiff",
            ".aif",
            ".m4a",
            ".ogg",
        ]
    )


@dataclass
class RenderSettings:
    """External renderer (ffmpeg) settings."""

    ffmpeg_binary: str = "ffmpeg"
    ffprobe_binary: str = "ffprobe"
    sample_rate: int = 48000
    pcm_codec: str = "pcm_s24le"
    distribution_codec: str = "libmp3lame"
    distribution_bitrate: str = "320k"
    timeout: int = 600


@dataclass
class GlobalConfig:
    """Global settings."""

    default_workers: int | None = None
    log_level: str = "WARNING"
    stats_file: Path | None = None
    artifact_max_age_hours: float = 2.0


@dataclass
class MasteringToolkitConfig:
    """Main configuration class."""

    mastering: MasteringSettings = field(default_factory=MasteringSettings)
    render: RenderSettings = field(default_factory=RenderSettings)
    global_: GlobalConfig = field(default_factory=GlobalConfig)
    presets: dict[str, dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def load_from_file(cls, config_path: Path) -> MasteringToolkitConfig:
        """Load configuration from YAML file."""
        try:
            with config_path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}

            return cls._from_dict(data)
        except (OSError, yaml.YAMLError) as e:
            LOG.warning("Failed to load config from %s: %s", config_path, e)
            return cls()

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> MasteringToolkitConfig:
        """Create config from dictionary."""
        mastering_config = cls._parse_mastering_config(data.get("mastering") or {})
        render_config = cls._parse_render_config(data.get("render") or {})
        global_config = cls._parse_global_config(data.get("global") or {})

        presets: dict[str, dict[str, Any]] = {}
        for name, preset_data in (data.get("presets") or {}).items():
            if isinstance(preset_data, dict):
                presets[str(name).lower()] = preset_data
            else:
                LOG.warning("Ignoring preset '%s': expected a mapping, got %s", name, type(preset_data).__name__)

        return cls(mastering=mastering_config, render=render_config, global_=global_config, presets=presets)

    @classmethod
    def _parse_mastering_config(cls, mastering_data: dict[str, Any]) -> MasteringSettings:
        """Parse mastering configuration."""
        defaults = MasteringSettings()
        try:
            gain_min = float(mastering_data.get("gain_min_db", defaults.gain_min_db))
            gain_max = float(mastering_data.get("gain_max_db", defaults.gain_max_db))
            if gain_min > gain_max:
                LOG.warning(
                    "gain_min_db (%s) is above gain_max_db (%s). Using defaults %s/%s",
                    gain_min,
                    gain_max,
                    defaults.gain_min_db,
                    defaults.gain_max_db,
                )
                gain_min, gain_max = defaults.gain_min_db, defaults.gain_max_db

            return MasteringSettings(
                default_preset=str(mastering_data.get("default_preset", defaults.default_preset)).lower(),
                gain_min_db=gain_min,
                gain_max_db=gain_max,
                gain_omit_threshold_db=float(
                    mastering_data.get("gain_omit_threshold_db", defaults.gain_omit_threshold_db)
                ),
                compressor_gate_lufs=float(mastering_data.get("compressor_gate_lufs", defaults.compressor_gate_lufs)),
                parametric_tolerance_lufs=float(
                    mastering_data.get("parametric_tolerance_lufs", defaults.parametric_tolerance_lufs)
                ),
                custom_tolerance_lufs=float(
                    mastering_data.get("custom_tolerance_lufs", defaults.custom_tolerance_lufs)
                ),
                loudness_range_max=float(mastering_data.get("loudness_range_max", defaults.loudness_range_max)),
                job_timeout=_optional_float(mastering_data.get("job_timeout", defaults.job_timeout)),
                output_dir=Path(mastering_data.get("output_dir", defaults.output_dir)),
                extensions=[ext.lower() for ext in mastering_data.get("extensions", defaults.extensions)],
            )
        except (TypeError, ValueError) as e:
            LOG.warning("Invalid mastering settings, using defaults: %s", e)
            return defaults

    @classmethod
    def _parse_render_config(cls, render_data: dict[str, Any]) -> RenderSettings:
        """Parse renderer configuration."""
        defaults = RenderSettings()
        try:
            return RenderSettings(
                ffmpeg_binary=str(render_data.get("ffmpeg_binary", defaults.ffmpeg_binary)),
                ffprobe_binary=str(render_data.get("ffprobe_binary", defaults.ffprobe_binary)),
                sample_rate=int(render_data.get("sample_rate", defaults.sample_rate)),
                pcm_codec=str(render_data.get("pcm_codec", defaults.pcm_codec)),
                distribution_codec=str(render_data.get("distribution_codec", defaults.distribution_codec)),
                distribution_bitrate=str(render_data.get("distribution_bitrate", defaults.distribution_bitrate)),
                timeout=int(render_data.get("timeout", defaults.timeout)),
            )
        except (TypeError, ValueError) as e:
            LOG.warning("Invalid render settings, using defaults: %s", e)
            return defaults

    @classmethod
    def _parse_global_config(cls, global_data: dict[str, Any]) -> GlobalConfig:
        """Parse global configuration."""
        stats_file = global_data.get("stats_file")
        return GlobalConfig(
            default_workers=global_data.get("default_workers"),
            log_level=str(global_data.get("log_level", "WARNING")).upper(),
            stats_file=Path(stats_file) if stats_file else None,
            artifact_max_age_hours=float(global_data.get("artifact_max_age_hours", 2.0)),
        )


def get_config() -> MasteringToolkitConfig:
    """Get the global configuration instance."""
    return _config_singleton.get_instance()
