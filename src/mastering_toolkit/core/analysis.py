"""Integrated loudness and peak measurement through the rendering engine."""

from __future__ import annotations

import logging
import re
import warnings
from typing import TYPE_CHECKING

from .base import AnalysisParseWarning, AnalysisResult

if TYPE_CHECKING:
    import threading
    from pathlib import Path

    from .base import Renderer

LOG = logging.getLogger(__name__)

# ebur128 prints "I: <x> LUFS" for every windowed reading and once more in the
# summary block; the summary is always last.
_LOUDNESS_RE = re.compile(r"I:\s+([-+]?\d+(?:\.\d+)?)\s+LUFS")
_PEAK_RE = re.compile(r"Peak:\s+([-+]?\d+(?:\.\d+)?)\s+dBFS")


def parse_loudness_report(text: str, file_path: Path | None = None) -> AnalysisResult:
    """
    Extract integrated loudness and peak from ebur128 diagnostic output.

    Missing readings fall back to the unmeasured sentinel (-23 LUFS, 0 dB)
    and raise an ``AnalysisParseWarning``; this function never fails.
    """
    sentinel = AnalysisResult.unmeasured()
    source = file_path.name if file_path is not None else "<meter output>"

    loudness_readings = _LOUDNESS_RE.findall(text)
    if loudness_readings:
        loudness = float(loudness_readings[-1])
    else:
        loudness = sentinel.integrated_loudness_lufs
        msg = f"No integrated loudness reading for {source}; assuming {loudness} LUFS"
        LOG.warning(msg)
        warnings.warn(msg, AnalysisParseWarning, stacklevel=2)

    peak_match = _PEAK_RE.search(text)
    if peak_match:
        peak = float(peak_match.group(1))
    else:
        peak = sentinel.peak_db
        msg = f"No peak reading for {source}; assuming {peak} dB"
        LOG.warning(msg)
        warnings.warn(msg, AnalysisParseWarning, stacklevel=2)

    return AnalysisResult(integrated_loudness_lufs=loudness, peak_db=peak)


class LoudnessAnalyzer:
    """Measures files with the renderer's loudness meter. Results are never cached."""

    def __init__(self, renderer: Renderer) -> None:
        self.renderer = renderer

    def analyze(
        self,
        file_path: Path,
        *,
        cancel_event: threading.Event | None = None,
        timeout: float | None = None,
    ) -> AnalysisResult:
        """
        Measure ``file_path``.

        Renderer failures propagate as ``RenderEngineError``: a gain decision
        without a reading would be wrong, so they are never absorbed here.
        """
        report = self.renderer.measure(file_path, cancel_event=cancel_event, timeout=timeout)
        result = parse_loudness_report(report, file_path)
        LOG.info(
            "Measured %s: %.1f LUFS, %.1f dB peak",
            file_path.name,
            result.integrated_loudness_lufs,
            result.peak_db,
        )
        return result
