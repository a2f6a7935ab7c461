"""End-to-end mastering of one file: analyze, build, render, verify, correct, transcode."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING

from ..config import MasteringSettings
from ..core.analysis import LoudnessAnalyzer
from ..core.base import JobStatus, MasteringError, MasteringJob, MasteringResult, RenderTimeoutError
from ..core.chain import FilterChainBuilder
from ..core.file_manager import ArtifactManager, allocate_output_paths
from ..core.stages import LoudnessNormalize
from ..core.stats import NullStatsRecorder

if TYPE_CHECKING:
    import threading
    from collections.abc import Callable

    from ..core.base import AnalysisResult, Renderer
    from ..core.chain import ChainPlan
    from ..core.presets import Preset, PresetCatalog
    from ..core.stats import StatsRecorder

    ProgressCallback = Callable[[int, str, JobStatus], None]

LOG = logging.getLogger(__name__)

# Percent complete and message reported on entering each state
_PROGRESS: dict[JobStatus, tuple[int, str]] = {
    JobStatus.ANALYZE_INPUT: (10, "Analyzing input audio"),
    JobStatus.BUILD_CHAIN: (20, "Building processing chain"),
    JobStatus.RENDER_PRIMARY: (30, "Rendering master"),
    JobStatus.ANALYZE_OUTPUT: (70, "Verifying output loudness"),
    JobStatus.CORRECTIVE_PASS: (75, "Fine-tuning loudness"),
    JobStatus.REANALYZE_FINAL: (85, "Verifying corrected loudness"),
    JobStatus.TRANSCODE_DELIVERABLE: (90, "Encoding distribution file"),
    JobStatus.DONE: (100, "Mastering complete"),
    JobStatus.FAILED: (100, "Mastering failed"),
}


class MasteringOrchestrator:
    """
    Drives a single mastering job through its state machine.

    One instance may serve many concurrent jobs: all per-job state lives in
    the ``MasteringJob`` created by ``master``; the catalog, builder and
    renderer are only read.
    """

    def __init__(  # noqa: PLR0913
        self,
        catalog: PresetCatalog,
        renderer: Renderer,
        builder: FilterChainBuilder | None = None,
        analyzer: LoudnessAnalyzer | None = None,
        settings: MasteringSettings | None = None,
        artifacts: ArtifactManager | None = None,
        stats_recorder: StatsRecorder | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        self.catalog = catalog
        self.renderer = renderer
        self.settings = settings or MasteringSettings()
        self.builder = builder or FilterChainBuilder(
            compressor_gate_lufs=self.settings.compressor_gate_lufs,
            gain_min_db=self.settings.gain_min_db,
            gain_max_db=self.settings.gain_max_db,
            gain_omit_threshold_db=self.settings.gain_omit_threshold_db,
        )
        self.analyzer = analyzer or LoudnessAnalyzer(renderer)
        self.artifacts = artifacts or ArtifactManager()
        self.stats_recorder = stats_recorder or NullStatsRecorder()
        self.progress_callback = progress_callback

    def tolerance_for(self, preset: Preset) -> float:
        """Allowed distance from target before a corrective pass runs."""
        if preset.tolerance_lufs is not None:
            return preset.tolerance_lufs
        if preset.is_custom_chain:
            return self.settings.custom_tolerance_lufs
        return self.settings.parametric_tolerance_lufs

    def needs_correction(self, preset: Preset, output_analysis: AnalysisResult) -> bool:
        miss = abs(output_analysis.integrated_loudness_lufs - preset.target_loudness_lufs)
        return miss > self.tolerance_for(preset)

    def master(  # noqa: PLR0913
        self,
        input_path: Path | str,
        preset_id: str | None,
        primary_path: Path | None = None,
        distribution_path: Path | None = None,
        *,
        cancel_event: threading.Event | None = None,
        timeout: float | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> MasteringResult:
        """
        Master ``input_path`` with the preset named ``preset_id``.

        Output paths must be unique per job; when omitted they are allocated
        in the configured output directory. ``timeout`` bounds the whole job:
        every renderer call gets the time that is left.

        Raises:
            MasteringError: the input does not exist.
            RenderEngineError: any renderer call failed (carries ffmpeg's stderr).
            RenderTimeoutError: the timeout elapsed or ``cancel_event`` was set.

        """
        input_path = Path(input_path)
        if not input_path.is_file():
            msg = f"Input file does not exist: {input_path}"
            raise MasteringError(msg, file_path=input_path)

        preset = self.catalog.lookup(preset_id)
        if primary_path is None or distribution_path is None:
            allocated_primary, allocated_distribution = allocate_output_paths(self.settings.output_dir, input_path)
            primary_path = primary_path or allocated_primary
            distribution_path = distribution_path or allocated_distribution

        job = MasteringJob(
            input_path=input_path,
            preset=preset,
            primary_path=Path(primary_path),
            distribution_path=Path(distribution_path),
        )
        callback = progress_callback or self.progress_callback
        deadline = time.monotonic() + timeout if timeout is not None else None
        start_time = time.time()

        LOG.info(
            "Mastering %s with preset '%s' (target %.1f LUFS, %.1f dBTP)",
            input_path.name,
            preset.preset_id,
            preset.target_loudness_lufs,
            preset.true_peak_ceiling_db,
        )

        try:
            plan = self._run(job, cancel_event, deadline, callback)
        except Exception as e:
            failed_in = job.status
            job.error = e
            job.advance(JobStatus.FAILED)
            report = self.artifacts.discard(job.artifacts)
            if report.failed:
                LOG.warning("Could not remove %d artifacts of failed job", len(report.failed))
            LOG.error("Mastering %s failed during %s: %s", input_path.name, failed_in.value, e)
            self._report_final(job, callback)
            raise

        assert job.input_analysis is not None and job.output_analysis is not None  # noqa: S101
        result = MasteringResult(
            input_analysis=job.input_analysis,
            output_analysis=job.output_analysis,
            applied_gain_db=job.gain_db,
            preset_id=preset.preset_id,
            primary_artifact_path=job.primary_path,
            distribution_artifact_path=job.distribution_path,
            corrective_pass_applied=job.corrective_pass_applied,
            processing_time=time.time() - start_time,
            stage_count=len(plan),
        )
        LOG.info(
            "Mastered %s: %.1f -> %.1f LUFS, gain %.1f dB%s",
            input_path.name,
            result.input_analysis.integrated_loudness_lufs,
            result.output_analysis.integrated_loudness_lufs,
            result.applied_gain_db,
            " (corrected)" if result.corrective_pass_applied else "",
        )
        self.stats_recorder.record_completion(result)
        self._report_final(job, callback)
        return result

    def _run(
        self,
        job: MasteringJob,
        cancel_event: threading.Event | None,
        deadline: float | None,
        callback: ProgressCallback | None,
    ) -> ChainPlan:
        self._enter(job, JobStatus.ANALYZE_INPUT, callback)
        job.input_analysis = self.analyzer.analyze(
            job.input_path, cancel_event=cancel_event, timeout=self._remaining(deadline, job)
        )

        self._enter(job, JobStatus.BUILD_CHAIN, callback)
        plan = self.builder.build(job.preset, job.input_analysis)
        job.gain_db = plan.gain_db
        LOG.info("Chain: %d stages, gain %.1f dB", len(plan), plan.gain_db)

        self._enter(job, JobStatus.RENDER_PRIMARY, callback)
        job.artifacts.append(job.primary_path)
        self.renderer.render(
            job.input_path,
            job.primary_path,
            plan.stages,
            cancel_event=cancel_event,
            timeout=self._remaining(deadline, job),
        )

        self._enter(job, JobStatus.ANALYZE_OUTPUT, callback)
        job.output_analysis = self.analyzer.analyze(
            job.primary_path, cancel_event=cancel_event, timeout=self._remaining(deadline, job)
        )

        if self.needs_correction(job.preset, job.output_analysis):
            self._enter(job, JobStatus.CORRECTIVE_PASS, callback)
            self._corrective_pass(job, cancel_event, deadline)

            self._enter(job, JobStatus.REANALYZE_FINAL, callback)
            job.output_analysis = self.analyzer.analyze(
                job.primary_path, cancel_event=cancel_event, timeout=self._remaining(deadline, job)
            )

        self._enter(job, JobStatus.TRANSCODE_DELIVERABLE, callback)
        job.artifacts.append(job.distribution_path)
        self.renderer.transcode(
            job.primary_path,
            job.distribution_path,
            cancel_event=cancel_event,
            timeout=self._remaining(deadline, job),
        )

        job.advance(JobStatus.DONE)
        return plan

    def _corrective_pass(self, job: MasteringJob, cancel_event: threading.Event | None, deadline: float | None) -> None:
        """Re-render the primary artifact through a single loudness-matching stage."""
        preset = job.preset
        assert job.output_analysis is not None  # noqa: S101
        LOG.info(
            "Output %.1f LUFS misses target %.1f by more than %.1f LU, fine-tuning with loudnorm",
            job.output_analysis.integrated_loudness_lufs,
            preset.target_loudness_lufs,
            self.tolerance_for(preset),
        )

        temp_path = self.artifacts.stash_for_correction(job.primary_path)
        job.artifacts.append(temp_path)

        normalize = LoudnessNormalize(
            target_lufs=preset.target_loudness_lufs,
            true_peak_db=preset.true_peak_ceiling_db,
            loudness_range_max=self.settings.loudness_range_max,
            linear=True,
        )
        self.renderer.render(
            temp_path,
            job.primary_path,
            [normalize],
            cancel_event=cancel_event,
            timeout=self._remaining(deadline, job),
        )

        self.artifacts.discard([temp_path])
        job.artifacts.remove(temp_path)
        job.corrective_pass_applied = True

    def _enter(self, job: MasteringJob, status: JobStatus, callback: ProgressCallback | None) -> None:
        job.advance(status)
        self._report(job, callback)

    @staticmethod
    def _report(job: MasteringJob, callback: ProgressCallback | None) -> None:
        if callback is None:
            return
        percent, message = _PROGRESS[job.status]
        callback(percent, message, job.status)

    @classmethod
    def _report_final(cls, job: MasteringJob, callback: ProgressCallback | None) -> None:
        """Report DONE or FAILED. The job outcome is settled, so a failing callback is only logged."""
        try:
            cls._report(job, callback)
        except Exception:
            LOG.warning("Progress callback failed for %s job %s", job.status.value, job.input_path.name, exc_info=True)

    @staticmethod
    def _remaining(deadline: float | None, job: MasteringJob) -> float | None:
        """Time left for the next renderer call, or None to use the renderer's default."""
        if deadline is None:
            return None
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            msg = f"Mastering timed out before {job.status.value}"
            raise RenderTimeoutError(msg, file_path=job.input_path)
        return remaining
