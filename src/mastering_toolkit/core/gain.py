"""Gain needed to move measured loudness onto a target."""

from __future__ import annotations

from .stages import Gain

DEFAULT_MIN_GAIN_DB = -6.0
DEFAULT_MAX_GAIN_DB = 12.0
DEFAULT_OMIT_THRESHOLD_DB = 0.5


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def compute_gain(
    measured_lufs: float,
    target_lufs: float,
    min_gain_db: float = DEFAULT_MIN_GAIN_DB,
    max_gain_db: float = DEFAULT_MAX_GAIN_DB,
) -> float:
    """
    Return ``target - measured`` clamped to ``[min_gain_db, max_gain_db]``.

    The clamp is a hard bound: very quiet sources never get more than the
    maximum boost and very loud ones never more than the maximum cut.
    """
    return clamp(target_lufs - measured_lufs, min_gain_db, max_gain_db)


def gain_stage(gain_db: float, threshold_db: float = DEFAULT_OMIT_THRESHOLD_DB) -> Gain | None:
    """Return a Gain stage, or None when the correction is below ``threshold_db``."""
    if abs(gain_db) > threshold_db:
        return Gain(db=gain_db)
    return None
