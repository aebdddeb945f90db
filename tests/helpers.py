"""Helpers shared by the test modules."""

import numpy as np
import torch


def gamma_series(n_samples=256, frequency=40.0, sampling_rate=1000.0, phase=0.0):
    """Sampled sine wave centred at 0.5."""
    t = np.arange(n_samples) / sampling_rate
    return 0.5 + 0.4 * np.sin(2.0 * np.pi * frequency * t + phase)


def assert_bounded(x: torch.Tensor, low: float, high: float, atol: float = 1e-12):
    """Every entry of ``x`` lies in [low, high]."""
    assert torch.isfinite(x).all(), "non-finite values"
    assert float(x.min()) >= low - atol, f"min {float(x.min())} < {low}"
    assert float(x.max()) <= high + atol, f"max {float(x.max())} > {high}"
