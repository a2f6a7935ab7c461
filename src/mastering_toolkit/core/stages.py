"""Declarative filter stages and their ffmpeg filter-graph serialization."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar, Literal

if TYPE_CHECKING:
    from collections.abc import Iterable

ShelfKind = Literal["low", "high"]

# ffmpeg's biquad filters are 1- or 2-pole
MAX_FILTER_POLES = 2


def _num(value: float) -> str:
    """Format a number the way ffmpeg option strings expect it (no trailing zeros)."""
    return f"{float(value):g}"


@dataclass(frozen=True)
class FilterStage:
    """One element of a series signal chain."""

    kind: ClassVar[str] = ""
    filter_name: ClassVar[str] = ""

    def options(self) -> list[tuple[str, str]]:
        raise NotImplementedError

    def to_filter(self) -> str:
        """Render this stage as a single ffmpeg audio filter."""
        opts = ":".join(f"{key}={value}" for key, value in self.options())
        return f"{self.filter_name}={opts}" if opts else self.filter_name


@dataclass(frozen=True)
class HighPass(FilterStage):
    """
    High-pass filter, ffmpeg's 2-pole default unless ``poles`` is given.

    ffmpeg's ``highpass`` has at most 2 poles, so steeper slopes (4 poles =
    24 dB/octave) are rendered as cascaded 2-pole sections. The stage still
    counts as one element of the chain.
    """

    freq_hz: float
    poles: int | None = None

    kind: ClassVar[str] = "highpass"
    filter_name: ClassVar[str] = "highpass"

    def __post_init__(self) -> None:
        if self.poles is not None and (self.poles < 1 or (self.poles > MAX_FILTER_POLES and self.poles % 2)):
            msg = f"High-pass poles must be 1, 2 or an even number, got {self.poles}"
            raise ValueError(msg)

    @property
    def sections(self) -> int:
        """Number of ffmpeg filters this stage renders to."""
        if self.poles is None or self.poles <= MAX_FILTER_POLES:
            return 1
        return self.poles // MAX_FILTER_POLES

    def options(self) -> list[tuple[str, str]]:
        opts = [("f", _num(self.freq_hz))]
        if self.poles is not None:
            opts.append(("p", str(min(self.poles, MAX_FILTER_POLES))))
        return opts

    def to_filter(self) -> str:
        return ",".join([super().to_filter()] * self.sections)


@dataclass(frozen=True)
class Shelf(FilterStage):
    shelf: ShelfKind
    freq_hz: float
    gain_db: float

    kind: ClassVar[str] = "shelf"

    def __post_init__(self) -> None:
        if self.shelf not in ("low", "high"):
            msg = f"Shelf kind must be 'low' or 'high', got {self.shelf!r}"
            raise ValueError(msg)

    def to_filter(self) -> str:
        opts = ":".join(f"{key}={value}" for key, value in self.options())
        return f"{self.shelf}shelf={opts}"

    def options(self) -> list[tuple[str, str]]:
        return [("f", _num(self.freq_hz)), ("g", _num(self.gain_db))]


@dataclass(frozen=True)
class Bell(FilterStage):
    freq_hz: float
    gain_db: float
    q: float = 1.0

    kind: ClassVar[str] = "bell"
    filter_name: ClassVar[str] = "equalizer"

    def options(self) -> list[tuple[str, str]]:
        return [
            ("f", _num(self.freq_hz)),
            ("t", "q"),
            ("w", _num(self.q)),
            ("g", _num(self.gain_db)),
        ]


@dataclass(frozen=True)
class Compressor(FilterStage):
    threshold_db: float
    ratio: float
    attack_ms: float
    release_ms: float

    kind: ClassVar[str] = "compressor"
    filter_name: ClassVar[str] = "acompressor"

    def options(self) -> list[tuple[str, str]]:
        return [
            ("threshold", f"{_num(self.threshold_db)}dB"),
            ("ratio", _num(self.ratio)),
            ("attack", _num(self.attack_ms)),
            ("release", _num(self.release_ms)),
        ]


@dataclass(frozen=True)
class Limiter(FilterStage):
    ceiling_db: float
    attack_ms: float
    release_ms: float

    kind: ClassVar[str] = "limiter"
    filter_name: ClassVar[str] = "alimiter"

    def options(self) -> list[tuple[str, str]]:
        return [
            ("limit", f"{_num(self.ceiling_db)}dB"),
            ("attack", _num(self.attack_ms)),
            ("release", _num(self.release_ms)),
        ]


@dataclass(frozen=True)
class Gain(FilterStage):
    db: float

    kind: ClassVar[str] = "gain"
    filter_name: ClassVar[str] = "volume"

    def options(self) -> list[tuple[str, str]]:
        return [("volume", f"{_num(self.db)}dB")]


@dataclass(frozen=True)
class LoudnessNormalize(FilterStage):
    """Single-stage loudness match used only by the corrective pass."""

    target_lufs: float
    true_peak_db: float
    loudness_range_max: float = 20.0
    linear: bool = True

    kind: ClassVar[str] = "loudnorm"
    filter_name: ClassVar[str] = "loudnorm"

    def options(self) -> list[tuple[str, str]]:
        return [
            ("I", _num(self.target_lufs)),
            ("TP", _num(self.true_peak_db)),
            ("LRA", _num(self.loudness_range_max)),
            ("linear", "true" if self.linear else "false"),
        ]


def serialize_chain(stages: Iterable[FilterStage]) -> str:
    """Join stages into one ffmpeg ``-af`` argument, preserving order."""
    filters = [stage.to_filter() for stage in stages]
    if not filters:
        msg = "Cannot serialize an empty filter chain"
        raise ValueError(msg)
    return ",".join(filters)
