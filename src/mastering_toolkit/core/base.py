"""Base classes and interfaces for the mastering pipeline."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from ..config.constants import UNMEASURED_LOUDNESS_LUFS, UNMEASURED_PEAK_DB

if TYPE_CHECKING:
    import threading
    from collections.abc import Sequence
    from pathlib import Path

    from .presets import Preset
    from .stages import FilterStage

LOG = logging.getLogger(__name__)


class MasteringError(Exception):
    """Base exception for mastering errors."""

    def __init__(
        self,
        message: str,
        file_path: Path | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.file_path = file_path
        self.cause = cause


class RenderEngineError(MasteringError):
    """The rendering engine failed to start, exited with an error, or produced no output."""

    def __init__(
        self,
        message: str,
        *,
        command: list[str] | None = None,
        return_code: int | None = None,
        stderr: str | None = None,
        file_path: Path | None = None,
    ) -> None:
        """Initialize renderer error with detailed context."""
        super().__init__(message, file_path=file_path)
        self.command = command
        self.return_code = return_code
        self.stderr = stderr

    @property
    def diagnostic(self) -> str:
        """The engine's own diagnostic text, falling back to the message."""
        return (self.stderr or "").strip() or str(self)


class RenderTimeoutError(RenderEngineError, TimeoutError):
    """A render was aborted because its timeout elapsed or it was cancelled."""


class AnalysisParseWarning(UserWarning):
    """The loudness meter output had no usable reading; a sentinel was substituted."""


class ProcessingStatus(Enum):
    """Status of a batch processing operation."""

    SUCCESS = "success"
    ERROR = "error"


@dataclass
class ProcessingResult:
    """Result of mastering one file from the CLI or a batch run."""

    source_file: Path
    status: ProcessingStatus
    message: str = ""
    output_file: Path | None = None
    processing_time: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AnalysisResult:
    """Integrated loudness and peak level of one file."""

    integrated_loudness_lufs: float
    peak_db: float

    @classmethod
    def unmeasured(cls) -> AnalysisResult:
        """Sentinel reading used when the meter reported nothing."""
        return cls(integrated_loudness_lufs=UNMEASURED_LOUDNESS_LUFS, peak_db=UNMEASURED_PEAK_DB)

    def to_dict(self) -> dict[str, float]:
        return {"lufs": self.integrated_loudness_lufs, "peak": self.peak_db}


class JobStatus(Enum):
    """States of a single mastering job."""

    START = "start"
    ANALYZE_INPUT = "analyze_input"
    BUILD_CHAIN = "build_chain"
    RENDER_PRIMARY = "render_primary"
    ANALYZE_OUTPUT = "analyze_output"
    CORRECTIVE_PASS = "corrective_pass"
    REANALYZE_FINAL = "reanalyze_final"
    TRANSCODE_DELIVERABLE = "transcode_deliverable"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.DONE, JobStatus.FAILED)


_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.START: frozenset({JobStatus.ANALYZE_INPUT}),
    JobStatus.ANALYZE_INPUT: frozenset({JobStatus.BUILD_CHAIN}),
    JobStatus.BUILD_CHAIN: frozenset({JobStatus.RENDER_PRIMARY}),
    JobStatus.RENDER_PRIMARY: frozenset({JobStatus.ANALYZE_OUTPUT}),
    JobStatus.ANALYZE_OUTPUT: frozenset({JobStatus.CORRECTIVE_PASS, JobStatus.TRANSCODE_DELIVERABLE}),
    JobStatus.CORRECTIVE_PASS: frozenset({JobStatus.REANALYZE_FINAL}),
    JobStatus.REANALYZE_FINAL: frozenset({JobStatus.TRANSCODE_DELIVERABLE}),
    JobStatus.TRANSCODE_DELIVERABLE: frozenset({JobStatus.DONE}),
    JobStatus.DONE: frozenset(),
    JobStatus.FAILED: frozenset(),
}


@dataclass
class MasteringJob:
    """In-memory record of one mastering invocation. Never shared between jobs."""

    input_path: Path
    preset: Preset
    primary_path: Path
    distribution_path: Path
    gain_db: float = 0.0
    input_analysis: AnalysisResult | None = None
    output_analysis: AnalysisResult | None = None
    artifacts: list[Path] = field(default_factory=list)
    status: JobStatus = JobStatus.START
    history: list[JobStatus] = field(default_factory=lambda: [JobStatus.START])
    corrective_pass_applied: bool = False
    error: Exception | None = None

    def advance(self, status: JobStatus) -> None:
        """Move to the next state; any non-terminal state may fail."""
        allowed = _TRANSITIONS[self.status]
        if status is not JobStatus.FAILED and status not in allowed:
            msg = f"Illegal job transition {self.status.value} -> {status.value}"
            raise MasteringError(msg, file_path=self.input_path)
        if status is JobStatus.FAILED and self.status.is_terminal:
            msg = f"Job already finished with status {self.status.value}"
            raise MasteringError(msg, file_path=self.input_path)

        LOG.debug("Job %s: %s -> %s", self.input_path.name, self.status.value, status.value)
        self.status = status
        self.history.append(status)


@dataclass
class MasteringResult:
    """Outcome handed back to the surrounding service layer."""

    input_analysis: AnalysisResult
    output_analysis: AnalysisResult
    applied_gain_db: float
    preset_id: str
    primary_artifact_path: Path
    distribution_artifact_path: Path
    corrective_pass_applied: bool = False
    processing_time: float = 0.0
    stage_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "preset": self.preset_id,
            "input": self.input_analysis.to_dict(),
            "output": self.output_analysis.to_dict(),
            "gain": self.applied_gain_db,
            "corrective_pass": self.corrective_pass_applied,
            "stages": self.stage_count,
            "processing_time": self.processing_time,
            "downloads": {
                "wav": str(self.primary_artifact_path),
                "mp3": str(self.distribution_artifact_path),
            },
        }


class Renderer(ABC):
    """
    Capability contract of the external rendering engine.

    Every call blocks until the engine finishes. Implementations must honour
    ``cancel_event`` and ``timeout`` and raise ``RenderTimeoutError`` when
    either fires.
    """

    @abstractmethod
    def measure(
        self,
        file_path: Path,
        *,
        cancel_event: threading.Event | None = None,
        timeout: float | None = None,
    ) -> str:
        """Run a loudness measurement and return the meter's diagnostic text."""

    @abstractmethod
    def render(
        self,
        input_path: Path,
        output_path: Path,
        stages: Sequence[FilterStage],
        *,
        cancel_event: threading.Event | None = None,
        timeout: float | None = None,
    ) -> None:
        """Render ``input_path`` through ``stages`` into a lossless file."""

    @abstractmethod
    def transcode(
        self,
        input_path: Path,
        output_path: Path,
        *,
        cancel_event: threading.Event | None = None,
        timeout: float | None = None,
    ) -> None:
        """Encode a lossless master into the fixed-bitrate distribution format."""
