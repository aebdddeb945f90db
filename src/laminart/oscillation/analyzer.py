"""
Oscillation Analysis of Layer Activity.

Each recorded snapshot (a layer activation vector) is reduced to its mean;
once ``history_size`` samples are buffered the series is analysed with an
FFT:

1. Remove the DC component (subtract the mean)
2. Zero-pad to the next power of two
3. Real FFT, power spectrum |X_k|² excluding the DC bin
4. Dominant frequency = peak bin, refined by maximising the periodogram
   of the unpadded window within half a bin of it
5. Gamma power = fraction of total power inside the gamma band
6. Phase = phase at the dominant frequency projected to the last sample,
   wrapped to [-π, π]

The bin spacing is sampling_rate / padded_length (3.9 Hz for 256 samples
at 1 kHz); the refinement locates a single rhythm well inside one bin.

Gamma (30-50 Hz here) is the band associated with resonant binding in
laminar cortex models.

References:
- Grossberg & Versace (2008): Spikes, synchrony, and attentive learning
  by laminar thalamocortical circuits

Author: Laminart Project
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

import numpy as np
import torch
from scipy.fft import rfft, rfftfreq
from scipy.optimize import minimize_scalar

from laminart.errors import ConfigurationError
from laminart.oscillation.buffer import CircularBuffer
from laminart.utils.core_utils import wrap_phase

GAMMA_BAND: Tuple[float, float] = (30.0, 50.0)


@dataclass(frozen=True)
class OscillationMetrics:
    """Spectral summary of one analysis window."""

    dominant_frequency: float
    gamma_power: float
    phase: float
    timestamp: float

    def __post_init__(self) -> None:
        if self.dominant_frequency < 0.0:
            raise ConfigurationError(
                f"dominant_frequency must be >= 0, got {self.dominant_frequency}"
            )
        if not (0.0 <= self.gamma_power <= 1.0):
            raise ConfigurationError(f"gamma_power must be in [0, 1], got {self.gamma_power}")
        if not (-math.pi - 1e-12 <= self.phase <= math.pi + 1e-12):
            raise ConfigurationError(f"phase must be in [-π, π], got {self.phase}")

    @classmethod
    def none(cls, timestamp: float = 0.0) -> "OscillationMetrics":
        """Metrics for a window with no detectable oscillation."""
        return cls(0.0, 0.0, 0.0, timestamp)

    def is_gamma(self, low: float = GAMMA_BAND[0], high: float = GAMMA_BAND[1]) -> bool:
        return low <= self.dominant_frequency <= high


def _next_power_of_two(n: int) -> int:
    return 1 << max(0, (n - 1).bit_length())


class OscillationAnalyzer:
    """FFT analysis of a rolling window of activity means.

    Args:
        sampling_rate: Samples per second (1000 for 1 ms steps)
        history_size: Window length in samples
        gamma_band: (low, high) gamma band in Hz
    """

    def __init__(
        self,
        sampling_rate: float = 1000.0,
        history_size: int = 256,
        gamma_band: Tuple[float, float] = GAMMA_BAND,
    ):
        if sampling_rate <= 0.0:
            raise ConfigurationError(f"sampling_rate must be positive, got {sampling_rate}")
        if history_size < 2:
            raise ConfigurationError(f"history_size must be >= 2, got {history_size}")
        if gamma_band[0] >= gamma_band[1]:
            raise ConfigurationError(f"invalid gamma band {gamma_band}")
        self.sampling_rate = float(sampling_rate)
        self.history_size = history_size
        self.gamma_band = gamma_band
        self._buffer = CircularBuffer(history_size)
        self._samples = 0

    def record(self, snapshot: Union[torch.Tensor, np.ndarray, Sequence[float], float]) -> None:
        """Append the mean of ``snapshot`` to the window."""
        if isinstance(snapshot, torch.Tensor):
            value = float(snapshot.detach().to(torch.float64).mean()) if snapshot.numel() else 0.0
        elif isinstance(snapshot, (int, float)):
            value = float(snapshot)
        else:
            arr = np.asarray(snapshot, dtype=np.float64)
            value = float(arr.mean()) if arr.size else 0.0
        self._buffer.append(value)
        self._samples += 1

    @property
    def is_ready(self) -> bool:
        return self._buffer.is_full()

    @property
    def samples_recorded(self) -> int:
        return self._samples

    def analyze(self, timestamp: Optional[float] = None) -> OscillationMetrics:
        """Analyse the current window; zero metrics until it is full."""
        if timestamp is None:
            timestamp = self._samples / self.sampling_rate
        if not self.is_ready:
            return OscillationMetrics.none(timestamp)
        return self.analyze_buffer(self._buffer.ordered(), timestamp)

    def analyze_buffer(self, series: np.ndarray, timestamp: float = 0.0) -> OscillationMetrics:
        """Spectral metrics of an arbitrary 1-D series sampled at ``sampling_rate``."""
        signal = np.asarray(series, dtype=np.float64)
        n = signal.shape[0]
        if n < 2:
            return OscillationMetrics.none(timestamp)

        signal = signal - signal.mean()
        n_padded = _next_power_of_two(n)
        spectrum = rfft(signal, n=n_padded)
        freqs = rfftfreq(n_padded, d=1.0 / self.sampling_rate)

        power = np.abs(spectrum[1:]) ** 2
        total = float(power.sum())
        if total <= 0.0 or not math.isfinite(total):
            return OscillationMetrics.none(timestamp)

        peak = int(np.argmax(power)) + 1
        dominant = self._refine_peak(signal, float(freqs[peak]), float(freqs[1] - freqs[0]))

        low, high = self.gamma_band
        band = (freqs[1:] >= low) & (freqs[1:] <= high)
        gamma_power = min(1.0, max(0.0, float(power[band].sum()) / total))

        # Advance the phase at the dominant frequency from sample 0 to the last sample
        t = np.arange(n) / self.sampling_rate
        coefficient = np.dot(signal, np.exp(-2j * math.pi * dominant * t))
        phase = float(np.angle(coefficient)) + 2.0 * math.pi * dominant * t[-1]
        return OscillationMetrics(dominant, gamma_power, wrap_phase(phase), timestamp)

    def _refine_peak(self, signal: np.ndarray, coarse: float, resolution: float) -> float:
        """Maximise the periodogram within half a bin of the peak bin."""
        t = np.arange(signal.shape[0]) / self.sampling_rate

        def negative_power(frequency: float) -> float:
            return -abs(np.dot(signal, np.exp(-2j * math.pi * frequency * t))) ** 2

        low = max(0.0, coarse - 0.5 * resolution)
        high = min(0.5 * self.sampling_rate, coarse + 0.5 * resolution)
        result = minimize_scalar(
            negative_power, bounds=(low, high), method="bounded", options={"xatol": 1e-6},
        )
        return float(result.x)

    def reset(self) -> None:
        self._buffer.clear()
        self._samples = 0
