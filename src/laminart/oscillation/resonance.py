"""
Resonance Detection.

Combines the ART matching criterion with oscillation analysis of the
bottom-up and top-down streams:

- ART resonance: match quality |f ∧ e| / |f| ≥ vigilance, with ∧ the
  element-wise minimum over the positive parts
- Phase synchronisation: |Δφ| between the dominant rhythms < π/4
- Joint gamma: both dominant frequencies inside the gamma band

The consciousness likelihood is a heuristic score:

    likelihood = (match_quality if resonant else 0)
                 + phase_sync_bonus (if synchronised)
                 + gamma_bonus (if both in gamma)

capped at 1. The bonus weights live in ``ResonanceConfig``.

References:
- Grossberg (2017): Towards solving the hard problem of consciousness:
  The varieties of brain resonances and the conscious experiences that
  they support
- Carpenter & Grossberg (1987): ART 2

Author: Laminart Project
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import ClassVar, Dict, List, Optional, Tuple

import torch

from laminart.config.validation import ValidatedConfig
from laminart.errors import ConfigurationError, DimensionMismatchError
from laminart.oscillation.analyzer import GAMMA_BAND, OscillationAnalyzer, OscillationMetrics
from laminart.utils.core_utils import wrap_phase
from laminart.utils.patterns import PatternLike, as_pattern


@dataclass(frozen=True)
class ResonanceConfig(ValidatedConfig):
    """Resonance detector settings."""

    _validation_rules: ClassVar[Dict[str, Tuple[str, ...]]] = {
        'vigilance': ('probability',),
        'sampling_rate': ('positive', 'finite'),
        'history_size': ('positive_integer',),
        'phase_sync_threshold': ('positive', 'finite'),
        'phase_sync_bonus': ('probability',),
        'gamma_bonus': ('probability',),
    }

    vigilance: float = 0.7
    sampling_rate: float = 1000.0
    history_size: int = 256
    phase_sync_threshold: float = math.pi / 4
    gamma_band: Tuple[float, float] = GAMMA_BAND
    phase_sync_bonus: float = 0.2
    gamma_bonus: float = 0.3

    def __post_init__(self) -> None:
        errors: List[str] = []
        if isinstance(self.history_size, int) and self.history_size < 2:
            errors.append(f"history_size={self.history_size} must be >= 2")
        if self.gamma_band[0] >= self.gamma_band[1]:
            errors.append(f"gamma_band={self.gamma_band} must be (low, high) with low < high")
        self.validate_config(tuple(errors))


@dataclass(frozen=True)
class ResonanceState:
    """Outcome of one resonance check."""

    art_resonance: bool
    phase_synchronized: bool
    both_in_gamma: bool
    consciousness_likelihood: float
    match_quality: float
    bottom_up_metrics: Optional[OscillationMetrics] = None
    top_down_metrics: Optional[OscillationMetrics] = None
    timestamp: float = 0.0

    def __post_init__(self) -> None:
        if not (0.0 <= self.consciousness_likelihood <= 1.0):
            raise ConfigurationError(
                f"consciousness_likelihood must be in [0, 1], got {self.consciousness_likelihood}"
            )
        if not (0.0 <= self.match_quality <= 1.0):
            raise ConfigurationError(f"match_quality must be in [0, 1], got {self.match_quality}")

    @classmethod
    def none(cls, timestamp: float = 0.0) -> "ResonanceState":
        return cls(False, False, False, 0.0, 0.0, None, None, timestamp)

    def is_likely_conscious(self, threshold: float = 0.7) -> bool:
        return self.consciousness_likelihood >= threshold

    def phase_difference(self) -> float:
        """Wrapped bottom-up minus top-down phase; NaN without metrics."""
        if self.bottom_up_metrics is None or self.top_down_metrics is None:
            return math.nan
        return wrap_phase(self.bottom_up_metrics.phase - self.top_down_metrics.phase)

    def frequency_coherence(self) -> float:
        """|Δf| between the two dominant frequencies; NaN without metrics."""
        if self.bottom_up_metrics is None or self.top_down_metrics is None:
            return math.nan
        return abs(
            self.bottom_up_metrics.dominant_frequency
            - self.top_down_metrics.dominant_frequency
        )


def match_quality(features: PatternLike, expectation: PatternLike) -> float:
    """ART match |f⁺ ∧ e⁺| / |f⁺|; 0.0 for empty or all-zero features."""
    f = as_pattern(features, name="features")
    e = as_pattern(expectation, name="expectation")
    if f.shape != e.shape:
        raise DimensionMismatchError("expectation", f.shape[0], e.shape[0])
    f = f.clamp(min=0.0)
    e = e.clamp(min=0.0)
    norm = float(f.sum())
    if f.numel() == 0 or norm <= 0.0:
        return 0.0
    return min(1.0, float(torch.minimum(f, e).sum()) / norm)


def consciousness_likelihood(
    art_resonance: bool,
    quality: float,
    phase_synchronized: bool,
    both_in_gamma: bool,
    phase_sync_bonus: float = 0.2,
    gamma_bonus: float = 0.3,
) -> float:
    likelihood = quality if art_resonance else 0.0
    if phase_synchronized:
        likelihood += phase_sync_bonus
    if both_in_gamma:
        likelihood += gamma_bonus
    return min(1.0, max(0.0, likelihood))


class ResonanceDetector:
    """Tracks both streams and reports ``ResonanceState`` on demand.

    Example:
        >>> detector = ResonanceDetector(ResonanceConfig(vigilance=0.7))
        >>> for step in range(256):
        ...     detector.record_bottom_up(l4_activation)
        ...     detector.record_top_down(l1_activation)
        >>> state = detector.detect_resonance(l23, l6, timestamp=0.256)
    """

    def __init__(self, config: Optional[ResonanceConfig] = None):
        self.config = config or ResonanceConfig()
        self.bottom_up = OscillationAnalyzer(
            self.config.sampling_rate, self.config.history_size, self.config.gamma_band,
        )
        self.top_down = OscillationAnalyzer(
            self.config.sampling_rate, self.config.history_size, self.config.gamma_band,
        )

    @property
    def vigilance(self) -> float:
        return self.config.vigilance

    def record_bottom_up(self, activation: PatternLike) -> None:
        self.bottom_up.record(as_pattern(activation, name="bottom-up activation"))

    def record_top_down(self, activation: PatternLike) -> None:
        self.top_down.record(as_pattern(activation, name="top-down activation"))

    @property
    def is_ready(self) -> bool:
        return self.bottom_up.is_ready and self.top_down.is_ready

    def match_quality(self, features: PatternLike, expectation: PatternLike) -> float:
        return match_quality(features, expectation)

    def detect_resonance(
        self,
        features: PatternLike,
        expectation: PatternLike,
        timestamp: float = 0.0,
    ) -> ResonanceState:
        """Match criterion plus oscillation checks for the current windows."""
        cfg = self.config
        quality = match_quality(features, expectation)
        resonant = quality >= cfg.vigilance

        bu_metrics: Optional[OscillationMetrics] = None
        td_metrics: Optional[OscillationMetrics] = None
        synchronized = False
        in_gamma = False
        if self.is_ready:
            bu_metrics = self.bottom_up.analyze(timestamp)
            td_metrics = self.top_down.analyze(timestamp)
            synchronized = abs(wrap_phase(bu_metrics.phase - td_metrics.phase)) < cfg.phase_sync_threshold
            low, high = cfg.gamma_band
            in_gamma = bu_metrics.is_gamma(low, high) and td_metrics.is_gamma(low, high)

        likelihood = consciousness_likelihood(
            resonant, quality, synchronized, in_gamma,
            cfg.phase_sync_bonus, cfg.gamma_bonus,
        )
        return ResonanceState(
            art_resonance=resonant,
            phase_synchronized=synchronized,
            both_in_gamma=in_gamma,
            consciousness_likelihood=likelihood,
            match_quality=quality,
            bottom_up_metrics=bu_metrics,
            top_down_metrics=td_metrics,
            timestamp=timestamp,
        )

    def reset(self) -> None:
        self.bottom_up.reset()
        self.top_down.reset()
