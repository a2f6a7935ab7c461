"""Mastering presets and the catalog that resolves preset identifiers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from .chain import CUSTOM_RECIPES

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

    from ..config import MasteringToolkitConfig

LOG = logging.getLogger(__name__)

DEFAULT_PRESET_ID = "kidandali"


@dataclass(frozen=True)
class EQBand:
    freq_hz: float
    gain_db: float
    q: float | None = None


@dataclass(frozen=True)
class CompressorSettings:
    threshold_db: float
    ratio: float
    attack_ms: float
    release_ms: float


@dataclass(frozen=True)
class LimiterSettings:
    ceiling_db: float
    attack_ms: float
    release_ms: float


@dataclass(frozen=True)
class Preset:
    """
    Immutable mastering preset.

    Parametric presets carry three EQ bands plus compressor and limiter
    settings. Custom-chain presets carry none of those and instead name a
    fixed recipe (see ``chain.CUSTOM_RECIPES``).
    """

    preset_id: str
    name: str
    target_loudness_lufs: float
    true_peak_ceiling_db: float
    is_custom_chain: bool = False
    bass: EQBand | None = None
    mid: EQBand | None = None
    high: EQBand | None = None
    compressor: CompressorSettings | None = None
    limiter: LimiterSettings | None = None
    recipe: str | None = None
    tolerance_lufs: float | None = None
    description: str = ""

    def __post_init__(self) -> None:
        parametric = (self.bass, self.mid, self.high, self.compressor, self.limiter)
        if self.is_custom_chain:
            if any(part is not None for part in parametric):
                msg = f"Custom-chain preset '{self.preset_id}' must not define parametric settings"
                raise ValueError(msg)
            if not self.recipe:
                msg = f"Custom-chain preset '{self.preset_id}' must name a recipe"
                raise ValueError(msg)
        elif any(part is None for part in parametric):
            msg = f"Parametric preset '{self.preset_id}' needs bass, mid, high, compressor and limiter settings"
            raise ValueError(msg)


def _band(data: Mapping[str, Any], *, with_q: bool = False) -> EQBand:
    q = data.get("q", 1.0) if with_q else None
    return EQBand(
        freq_hz=float(data["freq"]),
        gain_db=float(data["gain"]),
        q=float(q) if q is not None else None,
    )


def preset_from_dict(preset_id: str, data: Mapping[str, Any]) -> Preset:
    """
    Build a Preset from its config mapping.

    Raises KeyError, TypeError or ValueError on malformed data.
    """
    preset_id = preset_id.lower()
    custom = bool(data.get("custom", False))
    tolerance = data.get("tolerance")
    common = {
        "preset_id": preset_id,
        "name": str(data.get("name", preset_id)),
        "target_loudness_lufs": float(data["lufs"]),
        "true_peak_ceiling_db": float(data["tp"]),
        "tolerance_lufs": float(tolerance) if tolerance is not None else None,
        "description": str(data.get("description", "")),
    }
    if custom:
        return Preset(is_custom_chain=True, recipe=str(data.get("recipe", preset_id)), **common)

    comp = data["comp"]
    lim = data["limiter"]
    return Preset(
        bass=_band(data["bass"]),
        mid=_band(data["mid"], with_q=True),
        high=_band(data["high"]),
        compressor=CompressorSettings(
            threshold_db=float(comp["threshold"]),
            ratio=float(comp["ratio"]),
            attack_ms=float(comp["attack"]),
            release_ms=float(comp["release"]),
        ),
        limiter=LimiterSettings(
            ceiling_db=float(lim["limit"]),
            attack_ms=float(lim["attack"]),
            release_ms=float(lim["release"]),
        ),
        **common,
    )


def _parametric(
    name: str,
    lufs: float,
    tp: float,
    bass: tuple[float, float],
    mid: tuple[float, float, float],
    high: tuple[float, float],
    comp: tuple[float, float, float, float],
    limiter: tuple[float, float, float],
) -> dict[str, Any]:
    return {
        "name": name,
        "lufs": lufs,
        "tp": tp,
        "bass": {"freq": bass[0], "gain": bass[1]},
        "mid": {"freq": mid[0], "gain": mid[1], "q": mid[2]},
        "high": {"freq": high[0], "gain": high[1]},
        "comp": {"threshold": comp[0], "ratio": comp[1], "attack": comp[2], "release": comp[3]},
        "limiter": {"limit": limiter[0], "attack": limiter[1], "release": limiter[2]},
    }


# Built-in presets, in display order.
# bass/high: (freq Hz, gain dB); mid: (freq Hz, gain dB, q)
# comp: (threshold dB, ratio, attack ms, release ms); limiter: (ceiling dB, attack ms, release ms)
BUILTIN_PRESETS: dict[str, dict[str, Any]] = {
    "kidandali": _parametric(
        "Kidandali", -9, -1.0, (80, 1.5), (3000, 0.5, 1.5), (10000, 0.5), (-12, 2, 25, 100), (-0.5, 5, 50)
    ),
    "kidandali_banger": _parametric(
        "Kidandali Banger", -9, -0.5, (70, 2), (3500, 0.8, 1.3), (10000, 0.3), (-10, 2.5, 20, 80), (-0.3, 3, 30)
    ),
    "kidandali_2": _parametric(
        "Kidandali 2", -8.5, -0.5, (75, 1.8), (2500, 0.3, 1.2), (11000, 1.2), (-11, 2.2, 22, 90), (-0.4, 4, 40)
    ),
    "nico_pan_afro_dance": {
        "name": "NICO PAN AFRO DANCE",
        "lufs": -9,
        "tp": -1.0,
        "custom": True,
    },
    "nico_pan_afro_dance_2": {
        "name": "NICO PAN AFRO DANCE 2",
        "lufs": -9,
        "tp": -1.0,
        "custom": True,
        "description": "Adds a 2 kHz vocal presence cut",
    },
    "ugandan_clean_restore": {
        "name": "Ugandan Clean Restore",
        "lufs": -9,
        "tp": -1.0,
        "custom": True,
        "tolerance": 2.0,
    },
    "afrobeat": _parametric(
        "Afrobeat", -10, -1.0, (100, 1.5), (2500, 1, 1.2), (12000, 1), (-14, 2, 30, 120), (-0.5, 5, 50)
    ),
    "amapiano": _parametric(
        "Amapiano", -8, -0.5, (60, 2.5), (800, -1, 2), (8000, 1.5), (-8, 3, 15, 60), (-0.3, 3, 25)
    ),
    "hiphop": _parametric(
        "Hip-Hop", -9, -0.5, (60, 2), (3000, 0.5, 1.5), (10000, 1), (-10, 2.5, 20, 80), (-0.3, 3, 30)
    ),
    "pop": _parametric("Pop", -11, -1.0, (100, 1), (3000, 1, 1.2), (12000, 1.5), (-16, 1.8, 30, 150), (-0.5, 5, 60)),
    "edm": _parametric("EDM", -7, -0.3, (50, 2.5), (4000, 1, 1), (10000, 2), (-6, 4, 10, 40), (-0.2, 2, 20)),
    "transparent": _parametric(
        "Transparent", -14, -1.0, (80, 0), (3000, 0, 1), (10000, 0), (-20, 1.5, 50, 200), (-1.0, 10, 100)
    ),
    "reggaeton": _parametric(
        "Reggaeton", -8, -0.5, (60, 2.5), (2000, 0.5, 1.2), (10000, 1.5), (-8, 3, 15, 60), (-0.3, 3, 25)
    ),
    "dancehall": _parametric(
        "Dancehall", -8.5, -0.5, (70, 2.2), (2500, 0.8, 1.3), (12000, 1.2), (-9, 2.8, 18, 70), (-0.4, 4, 30)
    ),
    "soca": _parametric("Soca", -9, -0.5, (80, 2), (3000, 1, 1.2), (10000, 1.5), (-10, 2.5, 20, 80), (-0.3, 3, 30)),
    "kpop": _parametric(
        "K-Pop", -10, -1.0, (100, 1.5), (3000, 1.2, 1.2), (12000, 2), (-14, 2, 25, 100), (-0.5, 5, 50)
    ),
    "bollywood": _parametric(
        "Bollywood", -10, -1.0, (90, 1.8), (2800, 1.5, 1.3), (11000, 1.8), (-12, 2.2, 22, 90), (-0.5, 5, 50)
    ),
    "bhangra": _parametric(
        "Bhangra", -9, -0.5, (70, 2.2), (3200, 1, 1.2), (10000, 1.5), (-10, 2.5, 20, 80), (-0.3, 3, 30)
    ),
    "soukous": _parametric(
        "Soukous", -9.5, -0.5, (75, 2), (2500, 1.2, 1.3), (10000, 1.3), (-11, 2.3, 22, 85), (-0.4, 4, 35)
    ),
    "highlife": _parametric(
        "Highlife", -10, -1.0, (85, 1.5), (3000, 1, 1.2), (12000, 1.5), (-13, 2, 28, 110), (-0.5, 5, 50)
    ),
    "samba": _parametric(
        "Samba", -10, -1.0, (80, 1.8), (3000, 1.2, 1.2), (11000, 1.5), (-12, 2.2, 25, 100), (-0.5, 5, 50)
    ),
    "baile_funk": _parametric(
        "Baile Funk", -8, -0.5, (60, 2.8), (2000, 0.5, 1.2), (10000, 1.2), (-7, 3.2, 12, 55), (-0.3, 3, 25)
    ),
    "arabic_pop": _parametric(
        "Arabic Pop", -10, -1.0, (90, 1.6), (2800, 1.3, 1.3), (12000, 1.8), (-13, 2.1, 26, 105), (-0.5, 5, 50)
    ),
    "eurodance": _parametric(
        "Eurodance", -8.5, -0.5, (70, 2.2), (3000, 1, 1.2), (10000, 1.8), (-9, 2.6, 18, 75), (-0.4, 4, 30)
    ),
    "dembow": _parametric(
        "Dembow", -8, -0.5, (65, 2.6), (2200, 0.6, 1.2), (10000, 1.3), (-8, 3, 15, 60), (-0.3, 3, 25)
    ),
    "afrohouse": _parametric(
        "Afrohouse", -9, -0.5, (75, 2.3), (3000, 0.8, 1.2), (10000, 1.4), (-10, 2.5, 20, 80), (-0.3, 3, 30)
    ),
}


class PresetCatalog:
    """
    Read-only registry of presets keyed by identifier.

    Unknown identifiers resolve to the default preset; ``lookup`` never raises.
    """

    def __init__(self, presets: Mapping[str, Preset], default_id: str = DEFAULT_PRESET_ID) -> None:
        if not presets:
            msg = "A preset catalog needs at least one preset"
            raise ValueError(msg)

        normalized = {key.lower(): preset for key, preset in presets.items()}
        default_id = default_id.lower()
        if default_id not in normalized:
            fallback = next(iter(normalized))
            LOG.warning("Default preset '%s' is not defined, using '%s'", default_id, fallback)
            default_id = fallback

        self._presets: Mapping[str, Preset] = MappingProxyType(normalized)
        self.default_id = default_id

    @classmethod
    def builtin(cls, default_id: str = DEFAULT_PRESET_ID) -> PresetCatalog:
        """Catalog of the built-in presets."""
        presets = {preset_id: preset_from_dict(preset_id, data) for preset_id, data in BUILTIN_PRESETS.items()}
        return cls(presets, default_id)

    @classmethod
    def from_config(cls, config: MasteringToolkitConfig) -> PresetCatalog:
        """Built-in presets merged with the ``presets`` section of the configuration."""
        presets = {preset_id: preset_from_dict(preset_id, data) for preset_id, data in BUILTIN_PRESETS.items()}

        for preset_id, data in config.presets.items():
            try:
                preset = preset_from_dict(preset_id, data)
            except (KeyError, TypeError, ValueError) as e:
                LOG.warning("Failed to load preset '%s': %s", preset_id, e)
                continue

            if preset.is_custom_chain and preset.recipe not in CUSTOM_RECIPES:
                LOG.warning(
                    "Failed to load preset '%s': unknown recipe '%s' (known: %s)",
                    preset_id,
                    preset.recipe,
                    ", ".join(CUSTOM_RECIPES),
                )
                continue

            presets[preset_id.lower()] = preset
            LOG.debug("Loaded preset '%s' from configuration", preset_id)

        return cls(presets, config.mastering.default_preset)

    @property
    def default(self) -> Preset:
        return self._presets[self.default_id]

    def lookup(self, preset_id: str | None) -> Preset:
        """Resolve ``preset_id``; unknown or empty ids map to the default preset."""
        if preset_id:
            preset = self._presets.get(preset_id.strip().lower())
            if preset is not None:
                return preset
            LOG.info("Unknown preset '%s', using default '%s'", preset_id, self.default_id)
        return self.default

    def list_presets(self) -> list[str]:
        return list(self._presets)

    def __contains__(self, preset_id: object) -> bool:
        return isinstance(preset_id, str) and preset_id.lower() in self._presets

    def __len__(self) -> int:
        return len(self._presets)

    def __iter__(self) -> Iterator[Preset]:
        return iter(self._presets.values())
