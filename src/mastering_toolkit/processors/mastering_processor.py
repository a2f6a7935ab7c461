"""Mastering processor for single files and whole directories."""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING

from ..config.constants import ERROR_MESSAGE_TRUNCATE_LENGTH, MASTER_NAME_MARKER
from ..core.base import MasteringError, ProcessingResult, ProcessingStatus, RenderEngineError
from ..core.directory_processor import DirectoryProcessingConfig, process_directory_unified
from ..core.ffmpeg import FFmpegRenderer
from ..core.presets import PresetCatalog
from ..core.stats import JsonStatsRecorder, NullStatsRecorder
from .orchestrator import MasteringOrchestrator

if TYPE_CHECKING:
    import threading

    from ..core.base import Renderer
    from ..core.config import ConfigManager
    from ..core.stats import StatsRecorder
    from .orchestrator import ProgressCallback


def build_orchestrator(
    config_manager: ConfigManager,
    renderer: Renderer | None = None,
    stats_recorder: StatsRecorder | None = None,
) -> MasteringOrchestrator:
    """Wire an orchestrator from configuration, honouring runtime overrides."""
    config = config_manager.config

    output_dir = Path(config_manager.get_value("mastering.output_dir", config.mastering.output_dir))
    settings = replace(config.mastering, output_dir=output_dir)

    if renderer is None:
        timeout = int(config_manager.get_value("render.timeout", config.render.timeout))
        renderer = FFmpegRenderer.from_settings(replace(config.render, timeout=timeout))

    if stats_recorder is None:
        stats_file = config_manager.get_value("global_.stats_file")
        stats_recorder = JsonStatsRecorder(Path(stats_file)) if stats_file else NullStatsRecorder()

    return MasteringOrchestrator(
        catalog=PresetCatalog.from_config(config),
        renderer=renderer,
        settings=settings,
        stats_recorder=stats_recorder,
    )


class MasteringProcessor:
    """Masters audio files and reports each outcome as a ProcessingResult."""

    def __init__(self, config_manager: ConfigManager, orchestrator: MasteringOrchestrator | None = None) -> None:
        self.name = "MasteringProcessor"
        self.logger = logging.getLogger(f"{__name__}.{self.name}")
        self.config_manager = config_manager
        self.orchestrator = orchestrator or build_orchestrator(config_manager)

    def can_process(self, file_path: Path) -> bool:
        """Supported audio formats, excluding masters this tool produced."""
        extensions = self.config_manager.get_value("mastering.extensions", [])
        return file_path.suffix.lower() in extensions and MASTER_NAME_MARKER not in file_path.name

    def process_file(
        self,
        file_path: Path,
        preset: str | None = None,
        *,
        cancel_event: threading.Event | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> ProcessingResult:
        """Master one file. Errors are reported in the result, never raised."""
        start_time = time.time()
        job_timeout = self.config_manager.get_value("mastering.job_timeout")
        try:
            result = self.orchestrator.master(
                file_path,
                preset,
                cancel_event=cancel_event,
                timeout=float(job_timeout) if job_timeout is not None else None,
                progress_callback=progress_callback,
            )
        except RenderEngineError as e:
            self.logger.debug("Renderer diagnostic for %s:\n%s", file_path, e.diagnostic)
            return self._error_result(file_path, e, time.time() - start_time, preset)
        except MasteringError as e:
            return self._error_result(file_path, e, time.time() - start_time, preset)
        except Exception as e:
            self.logger.exception("Unexpected error mastering %s", file_path)
            return self._error_result(file_path, e, time.time() - start_time, preset, unexpected=True)

        return ProcessingResult(
            source_file=file_path,
            status=ProcessingStatus.SUCCESS,
            message=f"Mastered with {result.preset_id} preset",
            output_file=result.primary_artifact_path,
            processing_time=result.processing_time,
            metadata=result.to_dict(),
        )

    def process_directory(
        self,
        directory: Path,
        *,
        recursive: bool = True,
        preset: str | None = None,
        max_workers: int | None = None,
    ) -> list[ProcessingResult]:
        """Master all audio files in directory with multithreading."""
        config = DirectoryProcessingConfig(recursive=recursive, preset=preset, max_workers=max_workers)
        return process_directory_unified(self, directory, config)

    @staticmethod
    def _error_result(
        file_path: Path,
        error: Exception,
        processing_time: float,
        preset: str | None,
        *,
        unexpected: bool = False,
    ) -> ProcessingResult:
        message = f"Unexpected error: {error}" if unexpected else str(error)
        if len(message) > ERROR_MESSAGE_TRUNCATE_LENGTH:
            message = message[: ERROR_MESSAGE_TRUNCATE_LENGTH - 3] + "..."
        return ProcessingResult(
            source_file=file_path,
            status=ProcessingStatus.ERROR,
            message=message,
            processing_time=processing_time,
            metadata={"preset": preset, "error": str(error)},
        )
