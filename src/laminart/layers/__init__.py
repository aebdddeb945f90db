"""
Laminar cortical layers.

Usage:
======
    from laminart.layers import Layer4, Layer23

    l4 = Layer4("L4", size=16)
    l23 = Layer23("L2/3", size=16)
    out = l23.process_bottom_up(l4.process_bottom_up(pattern))
"""

from laminart.layers.base import ActivationCallback, CorticalLayer
from laminart.layers.bipole import BipoleConfig, BipoleGrouping
from laminart.layers.layer1 import Layer1
from laminart.layers.layer4 import Layer4
from laminart.layers.layer5 import Layer5
from laminart.layers.layer6 import Layer6
from laminart.layers.layer23 import Layer23

__all__ = [
    "ActivationCallback",
    "CorticalLayer",
    "BipoleConfig",
    "BipoleGrouping",
    "Layer1",
    "Layer23",
    "Layer4",
    "Layer5",
    "Layer6",
]
