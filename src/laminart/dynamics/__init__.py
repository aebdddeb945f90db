"""Shunting population dynamics."""

from laminart.dynamics.shunting import ShuntingConfig, ShuntingDynamics

__all__ = [
    "ShuntingConfig",
    "ShuntingDynamics",
]
