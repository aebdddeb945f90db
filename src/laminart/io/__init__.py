"""
Checkpoint persistence for cortical circuits.

Usage:
======
    from laminart.io import load_checkpoint, save_checkpoint

    save_checkpoint(circuit, "circuit.pt")
    load_checkpoint(circuit, "circuit.pt")
"""

from laminart.io.checkpoint import FORMAT_VERSION, checkpoint_info, load_checkpoint, save_checkpoint

__all__ = [
    "FORMAT_VERSION",
    "checkpoint_info",
    "load_checkpoint",
    "save_checkpoint",
]
