"""Test stats persistence and configuration loading."""

import json
import logging
import threading
from pathlib import Path

import pytest

from mastering_toolkit.config import MasteringToolkitConfig
from mastering_toolkit.core.base import AnalysisResult, MasteringResult
from mastering_toolkit.core.config import ConfigManager, ProcessingOptions, with_config_overrides
from mastering_toolkit.core.stats import JsonStatsRecorder, NullStatsRecorder


def _result(preset_id: str = "kidandali") -> MasteringResult:
    return MasteringResult(
        input_analysis=AnalysisResult(-16.0, -3.0),
        output_analysis=AnalysisResult(-9.2, -0.7),
        applied_gain_db=7.0,
        preset_id=preset_id,
        primary_artifact_path=Path("out/song_master_x.wav"),
        distribution_artifact_path=Path("out/song_master_x.mp3"),
    )


def test_result_to_dict() -> None:
    """The service-layer payload carries analyses, gain and download paths."""
    data = _result().to_dict()
    assert data["preset"] == "kidandali"
    assert data["input"] == {"lufs": -16.0, "peak": -3.0}
    assert data["output"] == {"lufs": -9.2, "peak": -0.7}
    assert data["gain"] == 7.0
    assert data["downloads"] == {"wav": str(Path("out/song_master_x.wav")), "mp3": str(Path("out/song_master_x.mp3"))}


def test_json_stats_counts_completions(tmp_path: Path) -> None:
    """Counters survive a reload."""
    stats_file = tmp_path / "stats" / "stats.json"
    recorder = JsonStatsRecorder(stats_file)
    recorder.record_completion(_result())
    recorder.record_completion(_result("edm"))
    recorder.record_completion(_result())

    reloaded = JsonStatsRecorder(stats_file).snapshot()
    expected_total = 3
    assert reloaded["tracks_mastered"] == expected_total
    assert reloaded["tracks_by_preset"] == {"kidandali": 2, "edm": 1}
    assert reloaded["last_updated"] is not None


def test_json_stats_thread_safe(tmp_path: Path) -> None:
    """Concurrent completions are all counted."""
    recorder = JsonStatsRecorder(tmp_path / "stats.json")
    threads = [threading.Thread(target=recorder.record_completion, args=(_result(),)) for _ in range(20)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    expected_total = 20
    assert recorder.snapshot()["tracks_mastered"] == expected_total


def test_corrupt_stats_file_starts_fresh(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    """An unreadable stats file is logged and replaced on the next save."""
    stats_file = tmp_path / "stats.json"
    stats_file.write_text("{not json", encoding="utf-8")

    with caplog.at_level(logging.WARNING):
        recorder = JsonStatsRecorder(stats_file)
    assert "Failed to load stats" in caplog.text

    recorder.record_completion(_result())
    assert json.loads(stats_file.read_text(encoding="utf-8"))["tracks_mastered"] == 1


def test_null_stats_recorder_accepts_results() -> None:
    """The default recorder does nothing."""
    NullStatsRecorder().record_completion(_result())


def test_config_defaults() -> None:
    """Defaults reproduce the published constants."""
    config = MasteringToolkitConfig()
    assert config.mastering.default_preset == "kidandali"
    assert (config.mastering.gain_min_db, config.mastering.gain_max_db) == (-6.0, 12.0)
    assert config.mastering.parametric_tolerance_lufs == 2.0
    assert config.mastering.custom_tolerance_lufs == 1.5
    assert config.render.sample_rate == 48000
    assert config.render.distribution_bitrate == "320k"
    assert config.global_.artifact_max_age_hours == 2.0
    assert config.mastering.job_timeout is None


def test_config_from_yaml(tmp_path: Path) -> None:
    """YAML values override defaults section by section."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text(
        """
mastering:
  gain_max_db: 9
  output_dir: masters
  job_timeout: 900
render:
  timeout: 120
global:
  stats_file: stats.json
  log_level: info
""",
        encoding="utf-8",
    )
    config = MasteringToolkitConfig.load_from_file(config_file)

    assert config.mastering.gain_max_db == 9.0
    assert config.mastering.gain_min_db == -6.0
    assert config.mastering.output_dir == Path("masters")
    assert config.mastering.job_timeout == 900.0
    assert config.render.timeout == 120
    assert config.global_.stats_file == Path("stats.json")
    assert config.global_.log_level == "INFO"


def test_invalid_gain_window_falls_back(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    """An inverted clamp window is rejected with a warning."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text("mastering:\n  gain_min_db: 5\n  gain_max_db: -5\n", encoding="utf-8")

    with caplog.at_level(logging.WARNING):
        config = MasteringToolkitConfig.load_from_file(config_file)

    assert (config.mastering.gain_min_db, config.mastering.gain_max_db) == (-6.0, 12.0)
    assert "gain_min_db" in caplog.text


def test_missing_config_file_uses_defaults(tmp_path: Path) -> None:
    """A missing file is not fatal."""
    config = MasteringToolkitConfig.load_from_file(tmp_path / "absent.yaml")
    assert config.mastering.default_preset == "kidandali"


def test_processing_options_override_config(tmp_path: Path) -> None:
    """CLI options become dotted-key overrides scoped to a context."""
    manager = ConfigManager(tmp_path / "absent.yaml")
    options = ProcessingOptions(workers=3, timeout=60, output_dir=tmp_path / "o", record_stats=False)

    with with_config_overrides(manager) as scoped:
        scoped.apply_processing_options(options)
        assert scoped.get_value("global_.default_workers") == 3
        assert scoped.get_value("render.timeout") == 60
        assert scoped.get_value("mastering.output_dir") == tmp_path / "o"
        assert scoped.get_value("global_.stats_file", "unset") is None

    assert manager.get_value("render.timeout") == 600
    assert manager.get_value("mastering.no_such_key", "fallback") == "fallback"
