"""Utility CLI commands."""

from __future__ import annotations

import json
import logging
import shutil
from pathlib import Path
from typing import TYPE_CHECKING

from ...core.base import MasteringError, RenderEngineError
from ...core.ffmpeg import FFmpegRenderer
from ...core.file_manager import ArtifactManager
from ...core.presets import PresetCatalog
from ...core.stats import JsonStatsRecorder

if TYPE_CHECKING:
    import argparse

    from ...core import ConfigManager

LOG = logging.getLogger(__name__)

SECONDS_PER_HOUR = 3600


class UtilityCommands:
    """Utility command handlers."""

    def __init__(self, config_manager: ConfigManager) -> None:
        """Initialize utility commands handler."""
        self.config_manager = config_manager

    def add_subcommands(self, parser: argparse.ArgumentParser) -> None:
        """Add utility subcommands to parser."""
        subparsers = parser.add_subparsers(dest="util_command", help="Utility commands")

        # Check command
        subparsers.add_parser("check", help="Check ffmpeg availability and loaded presets")

        # Cleanup command
        cleanup_parser = subparsers.add_parser("cleanup", help="Remove stale mastered files")
        cleanup_parser.add_argument("path", type=Path, help="Output directory to clean")
        cleanup_parser.add_argument(
            "--max-age-hours", type=float, help="Remove masters older than this (default from config)"
        )
        cleanup_parser.add_argument("--dry-run", "-n", action="store_true", help="Show what would be deleted")

        # Stats command
        subparsers.add_parser("stats", help="Show mastering counters")

    def handle_command(self, args: argparse.Namespace) -> int:
        """Handle utility command execution."""
        if not hasattr(args, "util_command") or args.util_command is None:
            LOG.error("No utility command specified")
            return 1

        if args.util_command == "check":
            return self._handle_check(args)
        if args.util_command == "cleanup":
            return self._handle_cleanup(args)
        if args.util_command == "stats":
            return self._handle_stats(args)
        LOG.error("Unknown utility command: %s", args.util_command)
        return 1

    def _handle_check(self, _args: argparse.Namespace) -> int:
        """Report whether the rendering engine is usable."""
        config = self.config_manager.config
        renderer = FFmpegRenderer.from_settings(config.render)
        catalog = PresetCatalog.from_config(config)

        try:
            version = renderer.version()
        except RenderEngineError as e:
            print(f"✗ ffmpeg: {e}")
            print(f"  Presets loaded: {len(catalog)}")
            return 1

        print(f"✓ ffmpeg: {version}")
        if shutil.which(config.render.ffprobe_binary):
            print(f"✓ ffprobe: {config.render.ffprobe_binary}")
        else:
            print(f"⚠ ffprobe: {config.render.ffprobe_binary} not found, track lengths will not be shown")
        print(f"  Presets loaded: {len(catalog)} (default: {catalog.default.preset_id})")
        print(f"  Config file: {self.config_manager.config_path}")
        return 0

    def _handle_cleanup(self, args: argparse.Namespace) -> int:
        """Handle stale artifact cleanup."""
        max_age_hours = args.max_age_hours
        if max_age_hours is None:
            max_age_hours = self.config_manager.config.global_.artifact_max_age_hours

        try:
            report = ArtifactManager().cleanup_stale(
                args.path, max_age_hours * SECONDS_PER_HOUR, dry_run=args.dry_run
            )
        except MasteringError as e:
            LOG.error("Cleanup failed: %s", e)
            return 1

        if args.dry_run:
            print(f"Would remove {len(report.removed)} files older than {max_age_hours:.1f} hours")
            for path in report.removed:
                print(f"  {path}")
            return 0

        print(f"Removed {len(report.removed)} stale files")
        for path in report.failed:
            print(f"  ✗ could not remove {path}")
        return 1 if report.failed else 0

    def _handle_stats(self, _args: argparse.Namespace) -> int:
        """Print the persisted counters."""
        stats_file = self.config_manager.get_value("global_.stats_file")
        if not stats_file:
            LOG.error("No stats file configured (set global.stats_file in config.yaml)")
            return 1

        print(json.dumps(JsonStatsRecorder(Path(stats_file)).snapshot(), indent=2))
        return 0
