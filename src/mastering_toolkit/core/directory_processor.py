"""Directory-wide batch mastering with a thread pool and progress bar."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from tqdm import tqdm

from .base import ProcessingResult, ProcessingStatus
from .thermal import check_thermal_throttling, get_safe_worker_count

if TYPE_CHECKING:
    from pathlib import Path

    from .config import ConfigManager

LOG = logging.getLogger(__name__)

# Check system load after this many completed jobs
THROTTLE_CHECK_INTERVAL = 5


class BatchProcessor(Protocol):
    config_manager: ConfigManager
    logger: logging.Logger

    def can_process(self, file_path: Path) -> bool: ...

    def process_file(self, file_path: Path, preset: str | None = None) -> ProcessingResult: ...


@dataclass
class DirectoryProcessingConfig:
    """Configuration for directory processing operations."""

    recursive: bool = True
    preset: str | None = None
    max_workers: int | None = None


def process_directory_unified(
    processor: BatchProcessor,
    directory: Path,
    config: DirectoryProcessingConfig | None = None,
) -> list[ProcessingResult]:
    """
    Master every compatible file found in ``directory``.

    Args:
        processor: Object that masters one file and never raises
        directory: Directory to scan
        config: Processing configuration (optional, uses defaults if None)

    Returns:
        List of processing results, one per discovered file

    """
    if config is None:
        config = DirectoryProcessingConfig()

    files = _discover_audio_files(processor, directory, recursive=config.recursive)
    if not files:
        processor.logger.info("No audio files to master in %s", directory)
        return []

    max_workers = _get_safe_workers(processor, config.max_workers)
    return _process_files_with_progress(processor, files, config.preset, max_workers)


def _get_safe_workers(processor: BatchProcessor, max_workers: int | None) -> int:
    if max_workers is not None:
        return get_safe_worker_count(max_workers)

    configured = processor.config_manager.get_value("global_.default_workers")
    if isinstance(configured, str):
        try:
            configured = int(configured)
        except ValueError:
            configured = None
    return get_safe_worker_count(configured if isinstance(configured, int) else None)


def _discover_audio_files(processor: BatchProcessor, directory: Path, *, recursive: bool) -> list[Path]:
    """Discover all compatible audio files in directory."""
    pattern = "**/*" if recursive else "*"
    processor.logger.info("Scanning directory: %s (recursive: %s)", directory, recursive)

    files = sorted(f for f in directory.glob(pattern) if f.is_file() and processor.can_process(f))
    processor.logger.info("Found %d audio files to master", len(files))
    return files


def _process_single_threaded(
    processor: BatchProcessor, files: list[Path], preset: str | None, progress_bar: tqdm
) -> list[ProcessingResult]:
    results = []
    for file_path in files:
        progress_bar.set_description(f"Mastering {file_path.name}")
        result = processor.process_file(file_path, preset=preset)
        results.append(result)
        _update_progress_description(progress_bar, result, file_path)
        progress_bar.update(1)
        check_thermal_throttling()
    return results


def _process_multi_threaded(
    processor: BatchProcessor, files: list[Path], preset: str | None, max_workers: int, progress_bar: tqdm
) -> list[ProcessingResult]:
    results = []

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        future_to_file = {executor.submit(processor.process_file, file_path, preset=preset): file_path for file_path in files}

        completed_count = 0
        for future in as_completed(future_to_file):
            file_path = future_to_file[future]
            try:
                result = future.result()
                results.append(result)
                _update_progress_description(progress_bar, result, file_path)
            except Exception as e:
                processor.logger.exception("Error mastering %s", file_path)
                results.append(
                    ProcessingResult(
                        source_file=file_path,
                        status=ProcessingStatus.ERROR,
                        message=f"Threading error: {e}",
                    )
                )
                progress_bar.set_description(f"✗ Error {file_path.name}")
            finally:
                progress_bar.update(1)
                completed_count += 1
                if completed_count % THROTTLE_CHECK_INTERVAL == 0:
                    check_thermal_throttling()

    return results


def _update_progress_description(progress_bar: tqdm, result: ProcessingResult, file_path: Path) -> None:
    if result.status is ProcessingStatus.SUCCESS:
        progress_bar.set_description(f"✓ Mastered {file_path.name}")
    else:
        progress_bar.set_description(f"✗ Error {file_path.name}")


def _process_files_with_progress(
    processor: BatchProcessor, files: list[Path], preset: str | None, max_workers: int
) -> list[ProcessingResult]:
    progress_bar = tqdm(
        total=len(files),
        desc="Mastering tracks",
        unit="file",
        bar_format="{l_bar}{bar}| {n_fmt}/{total_fmt} [{elapsed}<{remaining}, {rate_fmt}]",
    )
    processor.logger.info(
        "Mastering %d files with preset '%s' using %d workers", len(files), preset or "default", max_workers
    )

    try:
        if max_workers == 1:
            results = _process_single_threaded(processor, files, preset, progress_bar)
        else:
            results = _process_multi_threaded(processor, files, preset, max_workers, progress_bar)
    finally:
        progress_bar.close()

    successful = sum(1 for r in results if r.status is ProcessingStatus.SUCCESS)
    processor.logger.info("Batch complete: %d mastered, %d failed", successful, len(results) - successful)
    return results
