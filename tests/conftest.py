"""Shared test fixtures and configuration."""

import numpy as np
import pytest
import torch

from laminart.backends import Environment, SequentialBackend, VectorizedBackend
from laminart.circuit import CircuitConfig, CorticalCircuit


@pytest.fixture(autouse=True)
def set_random_seed():
    """Ensure reproducible tests by setting all random seeds.

    This fixture runs automatically for every test.
    """
    torch.manual_seed(42)
    np.random.seed(42)


@pytest.fixture
def size():
    """Standard population size for tests."""
    return 16


@pytest.fixture
def cpu_environment():
    """Host without CUDA, outside a test runner."""
    return Environment(cuda_available=False)


@pytest.fixture
def sequential_backend():
    return SequentialBackend()


@pytest.fixture
def vectorized_backend():
    return VectorizedBackend()


@pytest.fixture
def ramp(size):
    """Strictly positive input pattern."""
    return torch.linspace(0.2, 0.9, size, dtype=torch.float64)


@pytest.fixture
def circuit(size, cpu_environment):
    return CorticalCircuit(CircuitConfig(size=size), environment=cpu_environment)
