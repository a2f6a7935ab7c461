"""Main CLI interface for the mastering toolkit."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from ..config.constants import VERBOSE_LOGGING_THRESHOLD
from ..core import ConfigManager, ProcessingOptions, with_config_overrides
from .commands import MasterCommands, UtilityCommands


class MasteringToolkitCLI:
    """Main CLI interface."""

    def __init__(self, config_path: Path | None = None) -> None:
        self.config_manager = ConfigManager(config_path)
        self.master_commands = MasterCommands(self.config_manager)
        self.utility_commands = UtilityCommands(self.config_manager)

    @staticmethod
    def setup_logging(verbosity: int, default_level: str = "WARNING") -> None:
        """Setup logging based on verbosity level; with no -v the configured level applies."""
        configured = logging.getLevelName(default_level.upper())
        level_map = {
            0: configured if isinstance(configured, int) else logging.WARNING,
            1: logging.INFO,
            2: logging.DEBUG,
        }

        level = level_map.get(verbosity, logging.DEBUG)

        log_format = (
            "%(levelname)s: %(name)s: %(message)s"
            if verbosity >= VERBOSE_LOGGING_THRESHOLD
            else "%(levelname)s: %(message)s"
        )

        logging.basicConfig(level=level, format=log_format, handlers=[logging.StreamHandler(sys.stderr)])

        # Command lines and process timings are only interesting when debugging
        if verbosity < VERBOSE_LOGGING_THRESHOLD:
            logging.getLogger("mastering_toolkit.core.ffmpeg").setLevel(logging.WARNING)

    def build_parser(self) -> argparse.ArgumentParser:
        """Build the argument parser."""
        parser = argparse.ArgumentParser(
            prog="mastering-toolkit",
            description="Preset-driven audio mastering with loudness verification",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
  # Master one track with the default preset
  mastering-toolkit master run song.wav

  # Master a folder with the transparent preset
  mastering-toolkit master run /path/to/album --preset transparent --recursive

  # Show the ffmpeg chain a preset would use for a quiet input
  mastering-toolkit master chain nico_pan_afro_dance --input-lufs -18

  # Remove mastered files older than two hours
  mastering-toolkit utils cleanup output --max-age-hours 2
            """,
        )

        # Global options
        parser.add_argument(
            "-v",
            "--verbose",
            action="count",
            default=0,
            help="Increase verbosity (-v for info, -vv for debug)",
        )

        parser.add_argument("--config", type=Path, help="Path to configuration file")

        # Subcommands
        subparsers = parser.add_subparsers(dest="command", required=True, help="Available commands")

        master_parser = subparsers.add_parser("master", help="Mastering commands")
        self.master_commands.add_subcommands(master_parser)

        utils_parser = subparsers.add_parser("utils", help="Utility commands")
        self.utility_commands.add_subcommands(utils_parser)

        return parser

    @staticmethod
    def create_processing_options(args: argparse.Namespace) -> ProcessingOptions:
        """Create processing options from CLI arguments."""
        return ProcessingOptions(
            workers=getattr(args, "workers", None),
            timeout=getattr(args, "timeout", None),
            output_dir=getattr(args, "output_dir", None),
            record_stats=not getattr(args, "no_stats", False),
            job_timeout=getattr(args, "job_timeout", None),
        )

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parser = self.build_parser()
        parsed_args = parser.parse_args(args)

        if getattr(parsed_args, "config", None):
            self.config_manager = ConfigManager(parsed_args.config)
            self.master_commands.config_manager = self.config_manager
            self.utility_commands.config_manager = self.config_manager

        self.setup_logging(parsed_args.verbose, self.config_manager.config.global_.log_level)

        processing_options = self.create_processing_options(parsed_args)

        try:
            with with_config_overrides(self.config_manager) as config_mgr:
                config_mgr.apply_processing_options(processing_options)

                if parsed_args.command == "master":
                    return self.master_commands.handle_command(parsed_args)
                if parsed_args.command == "utils":
                    return self.utility_commands.handle_command(parsed_args)
                parser.error(f"Unknown command: {parsed_args.command}")

        except KeyboardInterrupt:
            logging.getLogger(__name__).info("Operation cancelled by user")
            return 130  # Standard exit code for SIGINT
        except Exception:
            logging.getLogger(__name__).exception("Unexpected error")
            return 1

        return 0


def main() -> int:
    """Entry point for the CLI."""
    cli = MasteringToolkitCLI()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
