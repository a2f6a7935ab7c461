"""Job-scoped artifact paths, temporary files and cleanup."""

from __future__ import annotations

import logging
import re
import time
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..config.constants import (
    CORRECTION_TEMP_SUFFIX,
    DISTRIBUTION_EXTENSION,
    LOSSLESS_EXTENSION,
    MASTER_NAME_MARKER,
)
from .base import MasteringError

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

LOG = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


def allocate_output_paths(
    output_dir: Path,
    input_path: Path,
    lossless_ext: str = LOSSLESS_EXTENSION,
    lossy_ext: str = DISTRIBUTION_EXTENSION,
) -> tuple[Path, Path]:
    """
    Return collision-free (lossless, distribution) paths for one job.

    Names follow ``<sanitized stem>_master_<uuid4>``, so concurrent jobs on
    the same input never share a path.
    """
    stem = _UNSAFE_CHARS.sub("_", input_path.stem) or "track"
    job_id = uuid.uuid4().hex
    base = f"{stem}{MASTER_NAME_MARKER}{job_id}"
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir / f"{base}{lossless_ext}", output_dir / f"{base}{lossy_ext}"


@dataclass
class CleanupReport:
    removed: list[Path]
    failed: list[Path]


class ArtifactManager:
    """File operations on mastering artifacts."""

    def stash_for_correction(self, primary_path: Path) -> Path:
        """Rename the primary artifact out of the way before a corrective pass."""
        temp_path = primary_path.with_name(f"{primary_path.stem}{CORRECTION_TEMP_SUFFIX}{primary_path.suffix}")
        try:
            primary_path.replace(temp_path)
        except OSError as e:
            msg = f"Could not move {primary_path} aside for correction: {e}"
            raise MasteringError(msg, file_path=primary_path, cause=e) from e
        LOG.debug("Moved %s -> %s", primary_path, temp_path)
        return temp_path

    def discard(self, paths: Iterable[Path]) -> CleanupReport:
        """Best-effort removal; failures are logged and reported, never raised."""
        removed: list[Path] = []
        failed: list[Path] = []
        for path in paths:
            try:
                if path.exists():
                    path.unlink()
                    removed.append(path)
                    LOG.debug("Removed artifact: %s", path)
            except OSError as e:
                LOG.warning("Failed to remove artifact %s: %s", path, e)
                failed.append(path)
        return CleanupReport(removed=removed, failed=failed)

    def find_stale(self, directory: Path, max_age_seconds: float, now: float | None = None) -> list[Path]:
        """Master artifacts in ``directory`` older than ``max_age_seconds``."""
        if not directory.is_dir():
            msg = f"Directory does not exist: {directory}"
            raise MasteringError(msg, file_path=directory)

        cutoff = (time.time() if now is None else now) - max_age_seconds
        suffixes = {LOSSLESS_EXTENSION, DISTRIBUTION_EXTENSION}
        stale = []
        for path in sorted(directory.iterdir()):
            if not path.is_file() or path.suffix.lower() not in suffixes or MASTER_NAME_MARKER not in path.name:
                continue
            try:
                if path.stat().st_mtime < cutoff:
                    stale.append(path)
            except OSError as e:
                LOG.warning("Could not stat %s: %s", path, e)
        return stale

    def cleanup_stale(self, directory: Path, max_age_seconds: float, *, dry_run: bool = False) -> CleanupReport:
        """Remove master artifacts older than ``max_age_seconds``."""
        stale = self.find_stale(directory, max_age_seconds)
        if dry_run:
            return CleanupReport(removed=stale, failed=[])

        report = self.discard(stale)
        LOG.info("Stale artifact cleanup: removed %d files from %s", len(report.removed), directory)
        return report
