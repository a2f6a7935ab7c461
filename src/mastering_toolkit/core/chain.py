"""Builds the ordered filter chain for one mastering pass."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING

from .gain import DEFAULT_MAX_GAIN_DB, DEFAULT_MIN_GAIN_DB, DEFAULT_OMIT_THRESHOLD_DB, compute_gain, gain_stage
from .stages import Bell, Compressor, FilterStage, HighPass, Limiter, Shelf

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .base import AnalysisResult
    from .presets import Preset

LOG = logging.getLogger(__name__)

DEFAULT_COMPRESSOR_GATE_LUFS = -20.0
DEFAULT_LIMITER_ATTACK_MS = 5.0
DEFAULT_LIMITER_RELEASE_MS = 50.0
DEFAULT_HIGHPASS_HZ = 30.0


@dataclass(frozen=True)
class Recipe:
    """Fixed stage sequence of a custom-chain preset. The Gain stage goes between ``stages`` and ``limiter``."""

    name: str
    stages: tuple[FilterStage, ...]
    limiter: Limiter


@dataclass(frozen=True)
class ChainPlan:
    """Ordered stages of one render pass plus the clamped gain behind its Gain stage."""

    stages: tuple[FilterStage, ...]
    gain_db: float

    def __len__(self) -> int:
        return len(self.stages)


_AFRO_DANCE_CLEANUP: tuple[FilterStage, ...] = (
    HighPass(freq_hz=25),
    Bell(freq_hz=300, gain_db=-1.5, q=1.2),  # box resonance
    Bell(freq_hz=3850, gain_db=-1.0, q=1.5),  # harshness
    Shelf("high", freq_hz=11000, gain_db=-0.5),  # air / hiss
    Bell(freq_hz=230, gain_db=-1.5, q=1.0),  # low-mid build-up
)
_AFRO_DANCE_VOCAL_PRESENCE: tuple[FilterStage, ...] = (Bell(freq_hz=2000, gain_db=-1.0, q=1.4),)
_AFRO_DANCE_DYNAMICS: tuple[FilterStage, ...] = (
    Bell(freq_hz=4250, gain_db=-1.5, q=1.5),  # upper-mid harshness
    Compressor(threshold_db=-10, ratio=1.8, attack_ms=10, release_ms=80),  # transients
    Shelf("low", freq_hz=90, gain_db=-0.3),
    Compressor(threshold_db=-6, ratio=1.5, attack_ms=30, release_ms=120),  # low end
    Compressor(threshold_db=-12, ratio=1.4, attack_ms=30, release_ms=150),  # bus glue
)
_SAFETY_LIMITER = Limiter(ceiling_db=-1.0, attack_ms=5, release_ms=50)

CUSTOM_RECIPES: Mapping[str, Recipe] = MappingProxyType(
    {
        "nico_pan_afro_dance": Recipe(
            name="nico_pan_afro_dance",
            stages=_AFRO_DANCE_CLEANUP + _AFRO_DANCE_DYNAMICS,
            limiter=_SAFETY_LIMITER,
        ),
        "nico_pan_afro_dance_2": Recipe(
            name="nico_pan_afro_dance_2",
            stages=_AFRO_DANCE_CLEANUP + _AFRO_DANCE_VOCAL_PRESENCE + _AFRO_DANCE_DYNAMICS,
            limiter=_SAFETY_LIMITER,
        ),
        "ugandan_clean_restore": Recipe(
            name="ugandan_clean_restore",
            stages=(
                HighPass(freq_hz=30, poles=4),
                Bell(freq_hz=97, gain_db=-2.0, q=1.0),
                Bell(freq_hz=562, gain_db=-1.5, q=1.2),
                Bell(freq_hz=3900, gain_db=-1.5, q=1.5),
                Bell(freq_hz=9400, gain_db=-1.0, q=1.2),
                Compressor(threshold_db=-12, ratio=1.5, attack_ms=30, release_ms=150),
            ),
            limiter=_SAFETY_LIMITER,
        ),
    }
)


class FilterChainBuilder:
    """
    Turns a preset and an input reading into an ordered list of filter stages.

    The builder never raises for a valid Preset: the worst case is a chain of
    a high-pass and a limiter. Output order depends only on its inputs.
    """

    def __init__(
        self,
        recipes: Mapping[str, Recipe] = CUSTOM_RECIPES,
        compressor_gate_lufs: float = DEFAULT_COMPRESSOR_GATE_LUFS,
        gain_min_db: float = DEFAULT_MIN_GAIN_DB,
        gain_max_db: float = DEFAULT_MAX_GAIN_DB,
        gain_omit_threshold_db: float = DEFAULT_OMIT_THRESHOLD_DB,
    ) -> None:
        self.recipes = recipes
        self.compressor_gate_lufs = compressor_gate_lufs
        self.gain_min_db = gain_min_db
        self.gain_max_db = gain_max_db
        self.gain_omit_threshold_db = gain_omit_threshold_db

    def build(self, preset: Preset, input_analysis: AnalysisResult) -> ChainPlan:
        gain_db = compute_gain(
            input_analysis.integrated_loudness_lufs,
            preset.target_loudness_lufs,
            self.gain_min_db,
            self.gain_max_db,
        )

        if preset.is_custom_chain:
            stages = self._build_custom(preset, gain_db)
        else:
            stages = self._build_parametric(preset, input_analysis, gain_db)

        LOG.debug("Built %d-stage chain for preset '%s' (gain %.1f dB)", len(stages), preset.preset_id, gain_db)
        return ChainPlan(stages=tuple(stages), gain_db=gain_db)

    def _gain_stage(self, gain_db: float) -> list[FilterStage]:
        stage = gain_stage(gain_db, self.gain_omit_threshold_db)
        return [stage] if stage is not None else []

    def _build_parametric(self, preset: Preset, input_analysis: AnalysisResult, gain_db: float) -> list[FilterStage]:
        bass, mid, high = preset.bass, preset.mid, preset.high
        compressor, limiter = preset.compressor, preset.limiter
        assert bass is not None and mid is not None and high is not None  # noqa: S101
        assert compressor is not None and limiter is not None  # noqa: S101

        stages: list[FilterStage] = []
        if bass.gain_db != 0:
            stages.append(Shelf("low", freq_hz=bass.freq_hz, gain_db=bass.gain_db))
        if mid.gain_db != 0:
            stages.append(Bell(freq_hz=mid.freq_hz, gain_db=mid.gain_db, q=mid.q or 1.0))
        if high.gain_db != 0:
            stages.append(Shelf("high", freq_hz=high.freq_hz, gain_db=high.gain_db))

        # Compressing near-silent material pumps the noise floor
        if input_analysis.integrated_loudness_lufs > self.compressor_gate_lufs:
            stages.append(
                Compressor(
                    threshold_db=compressor.threshold_db,
                    ratio=compressor.ratio,
                    attack_ms=compressor.attack_ms,
                    release_ms=compressor.release_ms,
                )
            )

        stages.extend(self._gain_stage(gain_db))
        stages.append(
            Limiter(ceiling_db=limiter.ceiling_db, attack_ms=limiter.attack_ms, release_ms=limiter.release_ms)
        )
        return stages

    def _build_custom(self, preset: Preset, gain_db: float) -> list[FilterStage]:
        recipe = self.recipes.get(preset.recipe or preset.preset_id)
        if recipe is None:
            LOG.warning(
                "No recipe '%s' for preset '%s'; rendering high-pass, gain and limiter only",
                preset.recipe,
                preset.preset_id,
            )
            fallback_limiter = Limiter(
                ceiling_db=preset.true_peak_ceiling_db,
                attack_ms=DEFAULT_LIMITER_ATTACK_MS,
                release_ms=DEFAULT_LIMITER_RELEASE_MS,
            )
            return [HighPass(freq_hz=DEFAULT_HIGHPASS_HZ), *self._gain_stage(gain_db), fallback_limiter]

        return [*recipe.stages, *self._gain_stage(gain_db), recipe.limiter]
