"""FFmpeg integration: the rendering engine behind the mastering pipeline."""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
import time
from typing import TYPE_CHECKING

from ..config.constants import DIAGNOSTIC_TAIL_LINES
from .base import RenderEngineError, Renderer, RenderTimeoutError
from .stages import serialize_chain

if TYPE_CHECKING:
    import threading
    from collections.abc import Sequence
    from pathlib import Path

    from ..config import RenderSettings
    from .stages import FilterStage

LOG = logging.getLogger(__name__)


def _tail(text: str, lines: int = DIAGNOSTIC_TAIL_LINES) -> str:
    """Last ``lines`` lines of a diagnostic stream."""
    return "\n".join(text.strip().splitlines()[-lines:])


class FFmpegRenderer(Renderer):
    """FFmpeg command executor with structured arguments, timeouts and cancellation."""

    def __init__(  # noqa: PLR0913
        self,
        ffmpeg_binary: str = "ffmpeg",
        ffprobe_binary: str = "ffprobe",
        sample_rate: int = 48000,
        pcm_codec: str = "pcm_s24le",
        distribution_codec: str = "libmp3lame",
        distribution_bitrate: str = "320k",
        timeout: float = 600,
        poll_interval: float = 0.25,
    ) -> None:
        """Initialize renderer with output format and default timeout."""
        self.ffmpeg_binary = ffmpeg_binary
        self.ffprobe_binary = ffprobe_binary
        self.sample_rate = sample_rate
        self.pcm_codec = pcm_codec
        self.distribution_codec = distribution_codec
        self.distribution_bitrate = distribution_bitrate
        self.timeout = timeout
        self.poll_interval = poll_interval

    @classmethod
    def from_settings(cls, settings: RenderSettings) -> FFmpegRenderer:
        return cls(
            ffmpeg_binary=settings.ffmpeg_binary,
            ffprobe_binary=settings.ffprobe_binary,
            sample_rate=settings.sample_rate,
            pcm_codec=settings.pcm_codec,
            distribution_codec=settings.distribution_codec,
            distribution_bitrate=settings.distribution_bitrate,
            timeout=settings.timeout,
        )

    def check_availability(self) -> None:
        """Check if the FFmpeg executable is available."""
        if not shutil.which(self.ffmpeg_binary):
            error_msg = f"Missing FFmpeg executable: {self.ffmpeg_binary}"
            LOG.error(error_msg)
            raise RenderEngineError(error_msg)

    def version(self) -> str:
        """First line of ``ffmpeg -version``."""
        result = self.run_command([self.ffmpeg_binary, "-hide_banner", "-version"], timeout=10)
        lines = result.stdout.strip().splitlines()
        return lines[0] if lines else "unknown"

    def probe_duration(self, file_path: Path) -> float | None:
        """Duration in seconds from ffprobe, or None if it reports none."""
        if not shutil.which(self.ffprobe_binary):
            msg = f"Missing FFprobe executable: {self.ffprobe_binary}"
            raise RenderEngineError(msg, file_path=file_path)

        cmd = [
            self.ffprobe_binary,
            "-v",
            "quiet",
            "-print_format",
            "json",
            "-show_format",
            str(file_path),
        ]
        result = self.run_command(cmd, file_path, timeout=30)
        try:
            probe_data = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            msg = f"Invalid JSON from ffprobe for {file_path}: {e}"
            raise RenderEngineError(msg, command=cmd, stderr=result.stderr, file_path=file_path) from e

        duration = probe_data.get("format", {}).get("duration")
        try:
            return float(duration) if duration is not None else None
        except (TypeError, ValueError):
            LOG.warning("Unparseable duration %r for %s", duration, file_path)
            return None

    def build_measure_command(self, input_file: Path) -> list[str]:
        """Build FFmpeg command for an EBU R128 loudness measurement."""
        return [
            self.ffmpeg_binary,
            "-hide_banner",
            "-nostats",
            "-i",
            str(input_file),
            "-af",
            "ebur128=peak=true",
            "-f",
            "null",
            "-",
        ]

    def build_render_command(self, input_file: Path, output_file: Path, filter_chain: str) -> list[str]:
        """Build FFmpeg command rendering through a filter chain into lossless PCM."""
        return [
            self.ffmpeg_binary,
            "-hide_banner",
            "-y",
            "-i",
            str(input_file),
            "-af",
            filter_chain,
            "-c:a",
            self.pcm_codec,
            "-ar",
            str(self.sample_rate),
            str(output_file),
        ]

    def build_transcode_command(self, input_file: Path, output_file: Path) -> list[str]:
        """Build FFmpeg command for the fixed-bitrate distribution encode."""
        return [
            self.ffmpeg_binary,
            "-hide_banner",
            "-y",
            "-i",
            str(input_file),
            "-c:a",
            self.distribution_codec,
            "-b:a",
            self.distribution_bitrate,
            str(output_file),
        ]

    def measure(
        self,
        file_path: Path,
        *,
        cancel_event: threading.Event | None = None,
        timeout: float | None = None,
    ) -> str:
        command = self.build_measure_command(file_path)
        result = self.run_command(command, file_path, cancel_event=cancel_event, timeout=timeout)
        # ebur128 reports on stderr
        return "\n".join(part for part in (result.stderr, result.stdout) if part)

    def render(
        self,
        input_path: Path,
        output_path: Path,
        stages: Sequence[FilterStage],
        *,
        cancel_event: threading.Event | None = None,
        timeout: float | None = None,
    ) -> None:
        command = self.build_render_command(input_path, output_path, serialize_chain(stages))
        self.run_command(command, input_path, cancel_event=cancel_event, timeout=timeout)
        self._verify_output(output_path, command)

    def transcode(
        self,
        input_path: Path,
        output_path: Path,
        *,
        cancel_event: threading.Event | None = None,
        timeout: float | None = None,
    ) -> None:
        command = self.build_transcode_command(input_path, output_path)
        self.run_command(command, input_path, cancel_event=cancel_event, timeout=timeout)
        self._verify_output(output_path, command)

    def run_command(
        self,
        command: list[str],
        file_path: Path | None = None,
        *,
        cancel_event: threading.Event | None = None,
        timeout: float | None = None,
    ) -> subprocess.CompletedProcess:
        """
        Run an FFmpeg command with proper error handling.

        The process is polled so that an injected ``cancel_event`` can abort
        it between polls. Timeout and cancellation both kill the process and
        raise ``RenderTimeoutError``.
        """
        self.check_availability()

        effective_timeout = self.timeout if timeout is None else timeout
        LOG.debug("Running FFmpeg command: %s", " ".join(command))
        start_time = time.monotonic()

        try:
            process = subprocess.Popen(  # noqa: S603
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as e:
            msg = f"Failed to start FFmpeg: {e}"
            raise RenderEngineError(msg, command=command, file_path=file_path) from e

        deadline = start_time + effective_timeout if effective_timeout else None
        while True:
            if cancel_event is not None and cancel_event.is_set():
                self._kill(process)
                msg = "FFmpeg command cancelled"
                raise RenderTimeoutError(msg, command=command, file_path=file_path)

            wait = self.poll_interval
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    self._kill(process)
                    msg = f"FFmpeg command timed out after {effective_timeout}s"
                    raise RenderTimeoutError(msg, command=command, file_path=file_path)
                wait = min(wait, remaining)

            try:
                stdout, stderr = process.communicate(timeout=wait)
                break
            except subprocess.TimeoutExpired:
                continue

        LOG.debug("FFmpeg command completed in %.2fs", time.monotonic() - start_time)

        result = subprocess.CompletedProcess(command, process.returncode, stdout, stderr)
        if result.returncode != 0:
            self._handle_ffmpeg_error(result, command, file_path)
        return result

    @staticmethod
    def _kill(process: subprocess.Popen) -> None:
        process.kill()
        try:
            process.communicate(timeout=5)
        except subprocess.TimeoutExpired:
            LOG.warning("FFmpeg process %s did not exit after kill", process.pid)

    def _handle_ffmpeg_error(
        self, result: subprocess.CompletedProcess, command: list[str], file_path: Path | None
    ) -> None:
        """Handle FFmpeg command error by raising appropriate exception."""
        error_msg = f"FFmpeg failed with return code {result.returncode}"
        if result.stderr:
            error_msg += f": {_tail(result.stderr)}"

        raise RenderEngineError(
            error_msg,
            command=command,
            return_code=result.returncode,
            stderr=result.stderr,
            file_path=file_path,
        )

    @staticmethod
    def _verify_output(output_path: Path, command: list[str]) -> None:
        if not output_path.exists() or output_path.stat().st_size == 0:
            msg = f"FFmpeg produced no output: {output_path}"
            raise RenderEngineError(msg, command=command, file_path=output_path)
