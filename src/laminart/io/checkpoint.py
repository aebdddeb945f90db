"""
Circuit Checkpoints.

Persists what a circuit has learned: per-layer weights, per-layer and
circuit learning statistics, learning rates and the configuration (as
JSON-compatible values). Dynamic state (activations, working memory,
oscillation history) is not saved; a loaded circuit continues from a
fresh dynamic state with the saved weights.

File layout (a single ``torch.save`` payload):

    {
        "format_version": 1,
        "metadata": {...},        # timestamp, versions, user metadata
        "state": {...},           # CorticalCircuit.get_full_state()
    }

Usage:
======
    save_checkpoint(circuit, "run/circuit.pt", metadata={"epoch": 3})
    load_checkpoint(other_circuit, "run/circuit.pt")
    checkpoint_info("run/circuit.pt")["metadata"]["epoch"]

Author: Laminart Project
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

import torch

from laminart import __version__
from laminart.circuit.circuit import CorticalCircuit
from laminart.errors import CheckpointError

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1


def _read(path: Union[str, Path]) -> Dict[str, Any]:
    path = Path(path)
    if not path.exists():
        raise CheckpointError(f"Checkpoint not found: {path}")
    try:
        payload = torch.load(path, map_location="cpu", weights_only=True)
    except Exception as e:
        raise CheckpointError(f"Could not read checkpoint {path}: {e}") from e

    if not isinstance(payload, dict) or "format_version" not in payload:
        raise CheckpointError(f"{path} is not a laminart checkpoint")
    version = payload["format_version"]
    if version != FORMAT_VERSION:
        raise CheckpointError(
            f"Unsupported checkpoint format version {version} (expected {FORMAT_VERSION})"
        )
    return payload


def save_checkpoint(
    circuit: CorticalCircuit,
    path: Union[str, Path],
    metadata: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Save ``circuit``'s learned state to ``path``.

    Args:
        circuit: Circuit to save
        path: Destination file (parent directories are created)
        metadata: Optional user metadata; must be JSON-compatible

    Returns:
        Summary dict with the path, file size and total synapse count
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    state = circuit.get_full_state()
    meta = dict(metadata or {})
    meta.update({
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "laminart_version": __version__,
        "pytorch_version": torch.__version__,
        "size": circuit.size,
    })

    torch.save({"format_version": FORMAT_VERSION, "metadata": meta, "state": state}, path)

    total_synapses = sum(layer["weights"].numel() for layer in state["layers"].values())
    file_size = path.stat().st_size
    logger.debug("saved checkpoint %s (%d bytes)", path, file_size)
    return {
        "path": str(path),
        "file_size": file_size,
        "num_layers": len(state["layers"]),
        "total_synapses": total_synapses,
    }


def load_checkpoint(circuit: CorticalCircuit, path: Union[str, Path]) -> Dict[str, Any]:
    """Restore weights and statistics saved by ``save_checkpoint`` into ``circuit``.

    Returns:
        The checkpoint metadata

    Raises:
        CheckpointError: Missing file, unknown format version or size mismatch
    """
    payload = _read(path)
    state = payload["state"]
    saved_size = state["config"].get("size")
    if saved_size != circuit.size:
        raise CheckpointError(
            f"Checkpoint size {saved_size} does not match circuit size {circuit.size}"
        )
    try:
        circuit.load_full_state(state)
    except (KeyError, ValueError) as e:
        raise CheckpointError(f"Incomplete checkpoint {path}: {e}") from e
    return payload["metadata"]


def checkpoint_info(path: Union[str, Path]) -> Dict[str, Any]:
    """Describe a checkpoint without loading it into a circuit."""
    payload = _read(path)
    state = payload["state"]
    return {
        "format_version": payload["format_version"],
        "metadata": payload["metadata"],
        "config": state["config"],
        "layers": sorted(state["layers"]),
        "total_synapses": sum(layer["weights"].numel() for layer in state["layers"].values()),
        "circuit_events": state["circuit_statistics"]["total_events"],
    }
