"""
Masking Field: List Chunking.

Each input is either recognised as an existing item node (cosine match) or
stored as a new node. Item nodes compete through a shunting network; after
contrast enhancement the nodes above ``winner_threshold`` are the winners.
A coherent group of winners (no position gap larger than
``max_temporal_gap``) becomes a list chunk, at most once per
``min_chunk_interval`` seconds.

A new chunk that shares positions with existing chunks is merged with them,
so every item position belongs to at most one chunk. The number of chunks
is bounded by ``max_chunks``; the oldest chunk is dropped first.

Chunk activations decay as exp(−rate·dt); the active chunk receives a
constant boost.

Author: Laminart Project
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Optional

import torch

from laminart.backends.base import AccelerationBackend
from laminart.dynamics.shunting import ShuntingConfig, ShuntingDynamics
from laminart.temporal.chunks import ItemNode, ListChunk
from laminart.temporal.config import MaskingFieldConfig
from laminart.utils.patterns import PatternLike, as_pattern

logger = logging.getLogger(__name__)

CONTRAST_OFFSET = 0.1


@dataclass(frozen=True)
class ChunkingStatistics:
    total_item_nodes: int
    total_chunks: int
    active_chunk_index: int
    average_chunk_size: float
    chunking_efficiency: float


@dataclass(frozen=True)
class MaskingFieldState:
    item_activations: torch.Tensor
    chunk_activations: torch.Tensor
    winning_nodes: List[int]
    active_item_count: int


class MaskingField:
    """Item-node competition and list-chunk formation.

    Args:
        config: Masking field parameters
        backend: Backend for the item competition
    """

    def __init__(
        self,
        config: Optional[MaskingFieldConfig] = None,
        backend: Optional[AccelerationBackend] = None,
    ):
        self.config = config or MaskingFieldConfig()
        cfg = self.config
        self.dynamics = ShuntingDynamics(
            ShuntingConfig(
                size=cfg.max_item_nodes,
                decay_rate=cfg.item_decay_rate,
                ceiling=cfg.max_activation,
                floor=0.0,
                self_excitation=cfg.self_excitation,
                excitatory_strength=cfg.competition_strength,
                inhibitory_strength=cfg.competition_strength,
                excitatory_range=cfg.excitation_range,
                inhibitory_range=cfg.inhibition_range,
                time_step=cfg.integration_time_step,
            ),
            backend,
        )
        self.reset()

    def reset(self) -> None:
        cfg = self.config
        self._nodes: List[ItemNode] = []
        self._chunks: List[ListChunk] = []
        self._chunk_activations: List[float] = []
        self._item_activations = torch.zeros(cfg.max_item_nodes, dtype=torch.float64)
        self._winners: List[int] = []
        self._active: Optional[int] = None
        self._time = 0.0
        self._next_position = 0
        self._next_chunk_id = 0
        self.dynamics.reset()

    # =========================================================================
    # Update
    # =========================================================================

    def update(self, pattern: PatternLike, dt: float) -> MaskingFieldState:
        """Present one item for ``dt`` seconds."""
        x = as_pattern(pattern, name="masking field input")
        self._process_input(x)
        self._compete()
        if self._should_form_chunk():
            self._form_chunk()
        self._evolve(dt)
        return self.state()

    def _process_input(self, x: torch.Tensor) -> None:
        cfg = self.config
        for i, node in enumerate(self._nodes):
            if node.matches(x, cfg.matching_threshold):
                node.strengthen(cfg.learning_rate)
                self._item_activations[i] += cfg.activation_boost
                return

        if len(self._nodes) >= cfg.max_item_nodes:
            self._prune_weakest_node()
        self._nodes.append(ItemNode(x, 1.0, self._next_position, self._time))
        self._item_activations[len(self._nodes) - 1] = cfg.initial_activation
        self._next_position += 1

    def _prune_weakest_node(self) -> None:
        weakest = min(range(len(self._nodes)), key=lambda i: self._nodes[i].strength)
        del self._nodes[weakest]
        shifted = torch.zeros_like(self._item_activations)
        shifted[:-1] = torch.cat((self._item_activations[:weakest], self._item_activations[weakest + 1:]))
        self._item_activations = shifted

    def _compete(self) -> None:
        n = len(self._nodes)
        if n < 2:
            return
        self.dynamics.set_excitatory_input(self._item_activations)
        competed = self.dynamics.update(self.config.integration_time_step)
        self._item_activations[:n] = competed[:n]

        if self.config.normalization_enabled:
            peak = float(self._item_activations[:n].max())
            if peak > 0.0:
                self._item_activations[:n] /= peak + CONTRAST_OFFSET

        above = self._item_activations[:n] > self.config.winner_threshold
        self._winners = torch.nonzero(above).flatten().tolist()

    def _is_coherent(self, winners: List[int]) -> bool:
        positions = [self._nodes[i].position for i in winners]
        return all(
            abs(b - a) <= self.config.max_temporal_gap
            for a, b in zip(positions, positions[1:])
        )

    def _should_form_chunk(self) -> bool:
        cfg = self.config
        if len(self._winners) < cfg.min_chunk_size:
            return False
        if not self._is_coherent(self._winners):
            return False
        active = self.active_chunk
        if active is not None and self._time - active.formation_time < cfg.min_chunk_interval:
            return False
        return True

    def _form_chunk(self) -> None:
        cfg = self.config
        winners = sorted(
            self._winners, key=lambda i: float(self._item_activations[i]), reverse=True,
        )[:cfg.max_chunk_size]
        chunk = ListChunk([self._nodes[i] for i in winners], self._time, self._next_chunk_id)
        self._next_chunk_id += 1

        overlapping = [i for i, c in enumerate(self._chunks) if c.overlaps(chunk)]
        activation = 0.0
        if overlapping:
            activation = max(self._chunk_activations[i] for i in overlapping)
            chunk = ListChunk.merge_all([self._chunks[i] for i in overlapping] + [chunk], self._time)
            for i in reversed(overlapping):
                del self._chunks[i]
                del self._chunk_activations[i]
            logger.debug("merged %d chunk(s) into chunk %d", len(overlapping), chunk.chunk_id)

        self._chunks.append(chunk)
        self._chunk_activations.append(activation)
        while len(self._chunks) > cfg.max_chunks:
            oldest = min(range(len(self._chunks)), key=lambda i: self._chunks[i].formation_time)
            del self._chunks[oldest]
            del self._chunk_activations[oldest]
        self._active = chunk.chunk_id
        logger.debug(
            "formed chunk %d of %d items at t=%.3f", chunk.chunk_id, chunk.size, self._time,
        )

        if cfg.reset_after_chunk:
            self._item_activations *= cfg.reset_decay_factor
            self._winners = []

    def _evolve(self, dt: float) -> None:
        cfg = self.config
        self._time += dt
        decay = math.exp(-cfg.chunk_decay_rate * dt)
        for i, chunk in enumerate(self._chunks):
            value = self._chunk_activations[i] * decay
            if chunk.chunk_id == self._active:
                value += cfg.active_chunk_boost * dt
            self._chunk_activations[i] = min(cfg.max_activation, max(0.0, value))

    # =========================================================================
    # Readout
    # =========================================================================

    def state(self) -> MaskingFieldState:
        return MaskingFieldState(
            item_activations=self._item_activations.clone(),
            chunk_activations=torch.tensor(self._chunk_activations, dtype=torch.float64),
            winning_nodes=list(self._winners),
            active_item_count=len(self._nodes),
        )

    @property
    def list_chunks(self) -> List[ListChunk]:
        return list(self._chunks)

    @property
    def item_nodes(self) -> List[ItemNode]:
        return list(self._nodes)

    @property
    def active_chunk(self) -> Optional[ListChunk]:
        for chunk in self._chunks:
            if chunk.chunk_id == self._active:
                return chunk
        return None

    @property
    def active_chunk_index(self) -> int:
        """Index of the active chunk in ``list_chunks``; -1 when none."""
        for i, chunk in enumerate(self._chunks):
            if chunk.chunk_id == self._active:
                return i
        return -1

    @property
    def current_time(self) -> float:
        return self._time

    def statistics(self) -> ChunkingStatistics:
        chunked = sum(chunk.size for chunk in self._chunks)
        return ChunkingStatistics(
            total_item_nodes=len(self._nodes),
            total_chunks=len(self._chunks),
            active_chunk_index=self.active_chunk_index,
            average_chunk_size=chunked / len(self._chunks) if self._chunks else 0.0,
            chunking_efficiency=chunked / len(self._nodes) if self._nodes else 0.0,
        )
