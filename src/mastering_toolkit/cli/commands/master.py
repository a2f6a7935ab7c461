"""Mastering CLI commands."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from tqdm import tqdm

from ...config.constants import UNMEASURED_LOUDNESS_LUFS, UNMEASURED_PEAK_DB
from ...core.base import AnalysisResult, ProcessingStatus, RenderEngineError
from ...core.chain import FilterChainBuilder
from ...core.ffmpeg import FFmpegRenderer
from ...core.presets import PresetCatalog
from ...core.stages import serialize_chain

if TYPE_CHECKING:
    import argparse

    from ...core import ConfigManager
    from ...core.base import JobStatus, ProcessingResult
    from ...processors import MasteringProcessor

LOG = logging.getLogger(__name__)


class MasterCommands:
    """Mastering command handlers."""

    def __init__(self, config_manager: ConfigManager) -> None:
        """Initialize mastering commands handler."""
        self.config_manager = config_manager

    def add_subcommands(self, parser: argparse.ArgumentParser) -> None:
        """Add mastering subcommands to parser."""
        subparsers = parser.add_subparsers(dest="master_command", help="Mastering commands")

        # Run command
        run_parser = subparsers.add_parser("run", help="Master audio files")
        run_parser.add_argument("path", type=Path, help="Path to audio file or directory")
        run_parser.add_argument(
            "--preset", "-p", type=str.lower, help="Mastering preset to use (case-insensitive, default from config)"
        )
        run_parser.add_argument("--output-dir", "-o", type=Path, help="Directory for mastered files")
        run_parser.add_argument("--recursive", "-r", action="store_true", help="Process directories recursively")
        run_parser.add_argument("--workers", "-w", type=int, help="Number of concurrent mastering jobs")
        run_parser.add_argument("--timeout", "-t", type=int, help="Timeout in seconds for each ffmpeg call")
        run_parser.add_argument(
            "--job-timeout", type=float, help="Overall timeout in seconds for mastering one file (all passes)"
        )
        run_parser.add_argument("--no-stats", action="store_true", help="Don't update the stats file")

        # Presets command
        subparsers.add_parser("presets", help="List available presets")

        # Chain command
        chain_parser = subparsers.add_parser("chain", help="Show the filter chain a preset would render")
        chain_parser.add_argument("preset", type=str.lower, help="Preset id")
        chain_parser.add_argument(
            "--input-lufs",
            type=float,
            default=UNMEASURED_LOUDNESS_LUFS,
            help=f"Assumed input loudness (default: {UNMEASURED_LOUDNESS_LUFS})",
        )

    def handle_command(self, args: argparse.Namespace) -> int:
        """Handle mastering command execution."""
        if not hasattr(args, "master_command") or args.master_command is None:
            LOG.error("No mastering command specified")
            return 1

        if args.master_command == "run":
            return self._handle_run(args)
        if args.master_command == "presets":
            return self._handle_presets(args)
        if args.master_command == "chain":
            return self._handle_chain(args)
        LOG.error("Unknown mastering command: %s", args.master_command)
        return 1

    def _handle_run(self, args: argparse.Namespace) -> int:
        """Handle mastering of a file or directory."""
        if not args.path.exists():
            LOG.error("Path does not exist: %s", args.path)
            return 1

        try:
            from ...processors import MasteringProcessor

            processor = MasteringProcessor(self.config_manager)

            if args.path.is_file():
                return self._master_single(processor, args.path, args.preset)

            results = processor.process_directory(
                args.path, recursive=args.recursive, preset=args.preset, max_workers=args.workers
            )
            successful = [r for r in results if r.status is ProcessingStatus.SUCCESS]
            failed = [r for r in results if r.status is ProcessingStatus.ERROR]

            LOG.info("Mastered %d/%d files successfully", len(successful), len(results))

            if failed:
                from . import print_failure_table

                print_failure_table(failed, "audio")

            return 0 if len(successful) == len(results) else 1

        except Exception:
            LOG.exception("Mastering failed")
            return 1

    def _master_single(self, processor: MasteringProcessor, path: Path, preset: str | None) -> int:
        progress_bar = tqdm(total=100, desc=f"Mastering {path.name}", unit="%")

        def on_progress(percent: int, message: str, _status: JobStatus) -> None:
            progress_bar.set_description(message)
            progress_bar.update(percent - progress_bar.n)

        try:
            result = processor.process_file(path, preset=preset, progress_callback=on_progress)
        finally:
            progress_bar.close()

        if result.status is ProcessingStatus.SUCCESS:
            self._print_result(result, self._probe_duration(result.output_file))
            return 0
        LOG.error("Failed to master %s: %s", path, result.message)
        return 1

    def _probe_duration(self, path: Path | None) -> float | None:
        if path is None:
            return None
        render = self.config_manager.config.render
        prober = FFmpegRenderer(ffmpeg_binary=render.ffmpeg_binary, ffprobe_binary=render.ffprobe_binary)
        try:
            return prober.probe_duration(path)
        except RenderEngineError as e:
            LOG.debug("Could not read duration of %s: %s", path, e)
            return None

    @staticmethod
    def _print_result(result: ProcessingResult, duration: float | None = None) -> None:
        data = result.metadata
        print(f"\n✓ {result.source_file.name} mastered with '{data['preset']}'")
        print(f"  Input:  {data['input']['lufs']:.1f} LUFS, peak {data['input']['peak']:.1f} dBFS")
        print(f"  Output: {data['output']['lufs']:.1f} LUFS, peak {data['output']['peak']:.1f} dBFS")
        print(f"  Gain:   {data['gain']:+.1f} dB{'  (loudness fine-tuned)' if data['corrective_pass'] else ''}")
        print(f"  WAV:    {data['downloads']['wav']}")
        print(f"  MP3:    {data['downloads']['mp3']}")
        if duration is not None:
            minutes, seconds = divmod(int(round(duration)), 60)
            print(f"  Length: {minutes}:{seconds:02d}")

    def _handle_presets(self, _args: argparse.Namespace) -> int:
        """List presets with their loudness targets."""
        catalog = PresetCatalog.from_config(self.config_manager.config)

        print(f"{'PRESET':<28} {'NAME':<32} {'LUFS':>6} {'TP':>6}  TYPE")
        print("-" * 84)
        for preset in catalog:
            marker = "*" if preset.preset_id == catalog.default.preset_id else " "
            kind = "custom" if preset.is_custom_chain else "parametric"
            print(
                f"{preset.preset_id + marker:<28} {preset.name[:32]:<32} "
                f"{preset.target_loudness_lufs:>6.1f} {preset.true_peak_ceiling_db:>6.1f}  {kind}"
            )
        print(f"\n{len(catalog)} presets (* = default)")
        return 0

    def _handle_chain(self, args: argparse.Namespace) -> int:
        """Print the ffmpeg filter chain for a preset without rendering."""
        config = self.config_manager.config
        catalog = PresetCatalog.from_config(config)
        if args.preset not in catalog:
            LOG.warning("Unknown preset '%s', showing default '%s'", args.preset, catalog.default.preset_id)

        preset = catalog.lookup(args.preset)
        settings = config.mastering
        builder = FilterChainBuilder(
            compressor_gate_lufs=settings.compressor_gate_lufs,
            gain_min_db=settings.gain_min_db,
            gain_max_db=settings.gain_max_db,
            gain_omit_threshold_db=settings.gain_omit_threshold_db,
        )
        plan = builder.build(preset, AnalysisResult(args.input_lufs, UNMEASURED_PEAK_DB))

        print(f"Preset: {preset.preset_id} ({preset.name})")
        print(f"Target: {preset.target_loudness_lufs:.1f} LUFS, {preset.true_peak_ceiling_db:.1f} dBTP")
        print(f"Gain:   {plan.gain_db:+.1f} dB for input at {args.input_lufs:.1f} LUFS")
        print(f"Stages: {len(plan)}")
        for stage in plan.stages:
            print(f"  {stage.to_filter()}")
        print(f"\n{serialize_chain(plan.stages)}")
        return 0
