"""Test the batch processor and the command line interface."""

import os
import re
import time
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from conftest import FakeRenderer

from mastering_toolkit.cli.main import MasteringToolkitCLI
from mastering_toolkit.core.base import ProcessingStatus
from mastering_toolkit.core.config import ConfigManager, with_config_overrides
from mastering_toolkit.core.presets import PresetCatalog
from mastering_toolkit.processors import MasteringProcessor, build_orchestrator


@pytest.fixture
def config_manager(tmp_path: Path) -> ConfigManager:
    return ConfigManager(tmp_path / "absent.yaml")


@pytest.fixture
def album(tmp_path: Path) -> Path:
    directory = tmp_path / "album"
    (directory / "disc2").mkdir(parents=True)
    for name in ("01 intro.wav", "02 song.flac", "disc2/03 outro.mp3", "cover.jpg", "02 song_master_abc.wav"):
        (directory / name).write_bytes(b"RIFF" + bytes(32))
    return directory


def _processor(config_manager: ConfigManager, renderer: FakeRenderer, output_dir: Path) -> MasteringProcessor:
    config_manager.set_override("mastering.output_dir", output_dir)
    return MasteringProcessor(config_manager, build_orchestrator(config_manager, renderer=renderer))


def test_can_process_skips_own_masters(config_manager: ConfigManager, tmp_path: Path) -> None:
    """Audio files are accepted except those this tool produced."""
    processor = _processor(config_manager, FakeRenderer(readings=[]), tmp_path / "out")
    assert processor.can_process(Path("track.FLAC"))
    assert not processor.can_process(Path("cover.jpg"))
    assert not processor.can_process(Path("track_master_0123.wav"))


def test_process_file_success(config_manager: ConfigManager, input_file: Path, tmp_path: Path) -> None:
    """A successful master is reported with its analyses as metadata."""
    renderer = FakeRenderer(readings=[(-16.0, -3.0), (-9.0, -1.0)])
    result = _processor(config_manager, renderer, tmp_path / "out").process_file(input_file, preset="kidandali")

    assert result.status is ProcessingStatus.SUCCESS
    assert result.output_file is not None and result.output_file.exists()
    assert result.metadata["gain"] == 7.0
    assert result.metadata["input"] == {"lufs": -16.0, "peak": -3.0}


def test_process_file_never_raises(config_manager: ConfigManager, input_file: Path, tmp_path: Path) -> None:
    """Render failures become ERROR results with a truncated message."""
    renderer = FakeRenderer(readings=[(-16.0, -3.0)], fail_at=("render", 1))
    result = _processor(config_manager, renderer, tmp_path / "out").process_file(input_file)

    assert result.status is ProcessingStatus.ERROR
    assert result.message.startswith("FFmpeg failed with return code 1")
    max_message_length = 100
    assert len(result.message) <= max_message_length
    assert result.output_file is None


def test_job_timeout_bounds_every_renderer_call(config_manager: ConfigManager, input_file: Path, tmp_path: Path) -> None:
    """A configured job timeout is split across the renderer calls of one file."""
    renderer = FakeRenderer(readings=[(-16.0, -3.0), (-9.0, -1.0)])
    processor = _processor(config_manager, renderer, tmp_path / "out")
    job_timeout = 300.0

    with with_config_overrides(config_manager, **{"mastering.job_timeout": job_timeout}):
        result = processor.process_file(input_file)

    assert result.status is ProcessingStatus.SUCCESS
    assert renderer.timeouts
    assert all(t is not None and 0 < t <= job_timeout for t in renderer.timeouts)


def test_no_job_timeout_leaves_renderer_default(config_manager: ConfigManager, input_file: Path, tmp_path: Path) -> None:
    """Without a job timeout each call uses the renderer's own timeout."""
    renderer = FakeRenderer(readings=[(-16.0, -3.0), (-9.0, -1.0)])
    _processor(config_manager, renderer, tmp_path / "out").process_file(input_file)
    assert set(renderer.timeouts) == {None}


def test_process_file_missing_input(config_manager: ConfigManager, tmp_path: Path) -> None:
    """A missing file is an ERROR result, not an exception."""
    result = _processor(config_manager, FakeRenderer(readings=[]), tmp_path / "out").process_file(tmp_path / "x.wav")
    assert result.status is ProcessingStatus.ERROR
    assert "does not exist" in result.message


@pytest.mark.parametrize("workers", [1, 3])
def test_process_directory(config_manager: ConfigManager, album: Path, tmp_path: Path, workers: int) -> None:
    """Every audio file in the tree is mastered once."""
    # Same reading everywhere: threads may consume measurements in any order
    renderer = FakeRenderer(readings=[(-7.5, -0.5)] * 6)
    processor = _processor(config_manager, renderer, tmp_path / "out")

    with (
        patch("mastering_toolkit.core.directory_processor.get_safe_worker_count", return_value=workers) as safe,
        patch("mastering_toolkit.core.directory_processor.check_thermal_throttling"),
    ):
        results = processor.process_directory(album, recursive=True, preset="edm")

    safe.assert_called_once_with(None)
    expected_files = 3
    assert len(results) == expected_files
    assert {r.source_file.name for r in results} == {"01 intro.wav", "02 song.flac", "03 outro.mp3"}
    assert all(r.status is ProcessingStatus.SUCCESS for r in results)
    assert len(list((tmp_path / "out").glob("*_master_*.wav"))) == expected_files


def test_process_directory_non_recursive(config_manager: ConfigManager, album: Path, tmp_path: Path) -> None:
    """Without recursion only the top level is scanned."""
    renderer = FakeRenderer(readings=[(-16.0, -3.0), (-9.0, -1.0)] * 2)
    processor = _processor(config_manager, renderer, tmp_path / "out")

    with (
        patch("mastering_toolkit.core.directory_processor.get_safe_worker_count", return_value=1),
        patch("mastering_toolkit.core.directory_processor.check_thermal_throttling"),
    ):
        results = processor.process_directory(album, recursive=False, max_workers=2)

    assert sorted(r.source_file.name for r in results) == ["01 intro.wav", "02 song.flac"]


def test_configured_workers_reach_thermal_check(config_manager: ConfigManager, album: Path, tmp_path: Path) -> None:
    """The configured worker count is the starting point for the thermal limit."""
    renderer = FakeRenderer(readings=[(-7.5, -0.5)] * 6)
    processor = _processor(config_manager, renderer, tmp_path / "out")

    with (
        with_config_overrides(config_manager, **{"global_.default_workers": 2}),
        patch("mastering_toolkit.core.directory_processor.get_safe_worker_count", return_value=2) as safe,
        patch("mastering_toolkit.core.directory_processor.check_thermal_throttling"),
    ):
        processor.process_directory(album)

    safe.assert_called_once_with(2)


def test_cli_presets(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """The presets command lists every preset and marks the default."""
    exit_code = MasteringToolkitCLI().run(["--config", str(tmp_path / "absent.yaml"), "master", "presets"])

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "kidandali*" in out
    assert "ugandan_clean_restore" in out
    assert "26 presets" in out


def test_cli_chain(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """The chain command prints the filter graph without rendering."""
    exit_code = MasteringToolkitCLI().run(
        ["--config", str(tmp_path / "absent.yaml"), "master", "chain", "KIDANDALI", "--input-lufs", "-16"]
    )

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "Gain:   +7.0 dB" in out
    assert "acompressor=threshold=-12dB:ratio=2:attack=25:release=100,volume=7dB,alimiter=limit=-0.5dB" in out


def test_cli_run_single_file(input_file: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Mastering one file honours --output-dir and prints the result."""
    renderer = FakeRenderer(readings=[(-16.0, -3.0), (-7.5, -0.4)])
    output_dir = tmp_path / "masters"

    with (
        patch("mastering_toolkit.processors.mastering_processor.FFmpegRenderer.from_settings", return_value=renderer),
        patch("mastering_toolkit.cli.commands.master.FFmpegRenderer.probe_duration", return_value=187.4),
    ):
        exit_code = MasteringToolkitCLI().run(
            [
                "--config",
                str(tmp_path / "absent.yaml"),
                "master",
                "run",
                str(input_file),
                "--preset",
                "EDM",
                "--output-dir",
                str(output_dir),
                "--no-stats",
            ]
        )

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "mastered with 'edm'" in out
    assert "Length: 3:07" in out
    assert len(list(output_dir.glob("*.wav"))) == 1
    assert len(list(output_dir.glob("*.mp3"))) == 1


def test_cli_run_missing_path(tmp_path: Path) -> None:
    """A nonexistent path fails fast."""
    exit_code = MasteringToolkitCLI().run(
        ["--config", str(tmp_path / "absent.yaml"), "master", "run", str(tmp_path / "nothing.wav")]
    )
    assert exit_code == 1


def test_cli_check_without_ffmpeg(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """The health check fails when ffmpeg is missing."""
    with patch("mastering_toolkit.core.ffmpeg.shutil.which", return_value=None):
        exit_code = MasteringToolkitCLI().run(["--config", str(tmp_path / "absent.yaml"), "utils", "check"])

    assert exit_code == 1
    assert "Missing FFmpeg executable" in capsys.readouterr().out


def test_cli_cleanup_dry_run(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """A dry-run cleanup lists what it would remove and keeps every file."""
    out_dir = tmp_path / "out"
    out_dir.mkdir()
    master = out_dir / "song_master_1.wav"
    master.write_bytes(b"x")
    an_hour_ago = time.time() - 3600
    os.utime(master, (an_hour_ago, an_hour_ago))

    exit_code = MasteringToolkitCLI().run(
        ["--config", str(tmp_path / "absent.yaml"), "utils", "cleanup", str(out_dir), "--max-age-hours", "0.5", "--dry-run"]
    )

    assert exit_code == 0
    assert master.exists()
    out = capsys.readouterr().out
    assert "Would remove 1 files older than 0.5 hours" in out
    assert str(master) in out


def test_cli_check_reports_versions(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """A working install reports the ffmpeg banner and the catalog size."""
    process = MagicMock(returncode=0)
    process.communicate.return_value = ("ffmpeg version 6.1.1\n", "")
    with (
        patch("mastering_toolkit.core.ffmpeg.shutil.which", return_value="/usr/bin/ffmpeg"),
        patch("mastering_toolkit.core.ffmpeg.subprocess.Popen", return_value=process),
    ):
        exit_code = MasteringToolkitCLI().run(["--config", str(tmp_path / "absent.yaml"), "utils", "check"])

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "✓ ffmpeg: ffmpeg version 6.1.1" in out
    assert "✓ ffprobe: ffprobe" in out
    assert "Presets loaded: 26 (default: kidandali)" in out


def test_help_examples_use_real_presets() -> None:
    """Every preset named in the usage examples exists."""
    epilog = MasteringToolkitCLI().build_parser().epilog or ""
    named = re.findall(r"(?:--preset|master chain) (\w+)", epilog)

    assert named
    catalog = PresetCatalog.builtin()
    assert [preset_id for preset_id in named if preset_id not in catalog] == []


def test_job_timeout_option_becomes_override(tmp_path: Path) -> None:
    """--job-timeout and --timeout map to the job budget and the per-call limit."""
    cli = MasteringToolkitCLI()
    args = cli.build_parser().parse_args(
        ["master", "run", str(tmp_path), "--timeout", "90", "--job-timeout", "240"]
    )
    options = cli.create_processing_options(args)

    manager = ConfigManager(tmp_path / "absent.yaml")
    with with_config_overrides(manager) as scoped:
        scoped.apply_processing_options(options)
        assert scoped.get_value("render.timeout") == 90
        assert scoped.get_value("mastering.job_timeout") == 240.0
