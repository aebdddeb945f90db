"""
Batch execution of independent circuits and patterns.

Two ways to process many inputs at once:

- ``BatchCircuitRunner`` runs independent ``CorticalCircuit`` instances on
  a thread pool. Circuits share no state, so each one produces exactly what
  a sequential run over its own sequence produces.
- ``process_patterns_vectorized`` stacks independent patterns into one
  (batch, size) tensor and pushes them through the Layer 4 dynamics stage
  in a single batched integration.

Author: Laminart Project
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence, Union

import torch

from laminart.backends.environment import Environment, select_backend
from laminart.circuit.circuit import CircuitResult, CorticalCircuit
from laminart.circuit.config import CircuitConfig
from laminart.errors import ConfigurationError
from laminart.layers.layer4 import Layer4
from laminart.utils.patterns import PatternLike

logger = logging.getLogger(__name__)


class BatchCircuitRunner:
    """Thread-pool runner for independent circuits.

    Args:
        max_workers: Upper bound on worker threads

    Example:
        >>> runner = BatchCircuitRunner(max_workers=4)
        >>> outputs = runner.run(circuits, sequences)
        >>> outputs[0][-1]  # last output of the first circuit
    """

    def __init__(self, max_workers: int = 4):
        if not isinstance(max_workers, int) or max_workers < 1:
            raise ConfigurationError(f"max_workers must be a positive integer, got {max_workers}")
        self.max_workers = max_workers

    @staticmethod
    def _run_one(
        circuit: CorticalCircuit,
        sequence: Sequence[PatternLike],
        learn: bool,
    ) -> List[CircuitResult]:
        step = circuit.process_and_learn if learn else circuit.process_detailed
        return [step(pattern) for pattern in sequence]

    def run_detailed(
        self,
        circuits: Sequence[CorticalCircuit],
        sequences: Sequence[Sequence[PatternLike]],
        learn: bool = False,
    ) -> List[List[CircuitResult]]:
        """Process ``sequences[i]`` through ``circuits[i]`` concurrently.

        Args:
            circuits: Distinct circuit instances
            sequences: One pattern sequence per circuit
            learn: Use ``process_and_learn`` instead of ``process_detailed``

        Returns:
            Per-circuit lists of results, in input order
        """
        if len(circuits) != len(sequences):
            raise ConfigurationError(
                f"got {len(circuits)} circuits but {len(sequences)} sequences"
            )
        if len({id(c) for c in circuits}) != len(circuits):
            raise ConfigurationError("each circuit may appear only once in a batch")
        if not circuits:
            return []

        workers = min(self.max_workers, len(circuits))
        logger.debug("running %d circuits on %d threads", len(circuits), workers)
        with ThreadPoolExecutor(max_workers=workers) as ex:
            futures = [
                ex.submit(self._run_one, circuit, sequence, learn)
                for circuit, sequence in zip(circuits, sequences)
            ]
            return [fut.result() for fut in futures]

    def run(
        self,
        circuits: Sequence[CorticalCircuit],
        sequences: Sequence[Sequence[PatternLike]],
        learn: bool = False,
    ) -> List[List[torch.Tensor]]:
        """Like ``run_detailed`` but keep only each step's final output."""
        return [
            [result.final_output for result in results]
            for results in self.run_detailed(circuits, sequences, learn)
        ]


def process_patterns_vectorized(
    config: CircuitConfig,
    patterns: Union[torch.Tensor, Sequence[PatternLike]],
    environment: Optional[Environment] = None,
) -> torch.Tensor:
    """Layer 4 response of a fresh circuit to each pattern, as one batch.

    Args:
        config: Circuit configuration (size, Layer 4 parameters, backend)
        patterns: Shape (batch, size) tensor or a sequence of patterns

    Returns:
        Responses, shape (batch, size)
    """
    backend = select_backend(environment, config.backend)
    layer = Layer4("L4", config.size, config.layer4, backend)
    return layer.respond_batch(patterns)
