"""Shared fixtures: a renderer that needs no ffmpeg."""

from __future__ import annotations

from pathlib import Path

import pytest

from mastering_toolkit.core.base import RenderEngineError, Renderer
from mastering_toolkit.core.presets import PresetCatalog

EBUR128_SUMMARY = """\
[Parsed_ebur128_0 @ 0x55d5c8a0c2c0] t: 2.9 TARGET:-23 LUFS M: -18.2 S:-120.7 I: -19.5 LUFS LRA: 0.0 LU
[Parsed_ebur128_0 @ 0x55d5c8a0c2c0] Summary:

  Integrated loudness:
    I:         {lufs:.1f} LUFS
    Threshold: -26.3 LUFS

  Loudness range:
    LRA:         5.2 LU
    Threshold: -36.4 LUFS
    LRA low:   -20.1 LUFS
    LRA high:  -14.9 LUFS

  True peak:
    Peak:       {peak:.1f} dBFS
"""


def ebur128_report(lufs: float, peak: float = -1.0) -> str:
    return EBUR128_SUMMARY.format(lufs=lufs, peak=peak)


class FakeRenderer(Renderer):
    """
    Records every call and writes placeholder output files.

    ``readings`` are (lufs, peak) pairs returned by successive ``measure``
    calls. ``fail_at`` makes the n-th call of a kind raise, e.g. ("render", 2).
    """

    def __init__(
        self,
        readings: list[tuple[float, float]],
        fail_at: tuple[str, int] | None = None,
        error: RenderEngineError | None = None,
    ) -> None:
        self.readings = list(readings)
        self.fail_at = fail_at
        self.error = error
        self.calls: list[tuple] = []
        self.timeouts: list[float | None] = []

    def _count(self, kind: str) -> int:
        return sum(1 for call in self.calls if call[0] == kind)

    def _maybe_fail(self, kind: str, path: Path) -> None:
        if self.fail_at == (kind, self._count(kind)):
            raise self.error or RenderEngineError(
                f"FFmpeg failed with return code 1: {kind} broke",
                return_code=1,
                stderr=f"{path}: Invalid data found when processing input",
                file_path=path,
            )

    def measure(self, file_path, *, cancel_event=None, timeout=None):
        self.calls.append(("measure", file_path))
        self.timeouts.append(timeout)
        self._maybe_fail("measure", file_path)
        lufs, peak = self.readings.pop(0)
        return ebur128_report(lufs, peak)

    def render(self, input_path, output_path, stages, *, cancel_event=None, timeout=None):
        self.calls.append(("render", input_path, output_path, tuple(stages)))
        self.timeouts.append(timeout)
        assert input_path.exists(), f"render input missing: {input_path}"
        output_path.write_bytes(b"RIFF" + bytes(64))
        self._maybe_fail("render", input_path)

    def transcode(self, input_path, output_path, *, cancel_event=None, timeout=None):
        self.calls.append(("transcode", input_path, output_path))
        self.timeouts.append(timeout)
        assert input_path.exists(), f"transcode input missing: {input_path}"
        output_path.write_bytes(b"ID3" + bytes(64))
        self._maybe_fail("transcode", input_path)

    def kinds(self) -> list[str]:
        return [call[0] for call in self.calls]


@pytest.fixture
def catalog() -> PresetCatalog:
    return PresetCatalog.builtin()


@pytest.fixture
def input_file(tmp_path: Path) -> Path:
    path = tmp_path / "My Song (final).wav"
    path.write_bytes(b"RIFF" + bytes(128))
    return path


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    return tmp_path / "output"
