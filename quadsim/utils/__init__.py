"""Utility module.

Configuration and autopilot loading live in :mod:`quadsim.utils.utils`, the quaternion and euler
angle math used throughout the simulator in :mod:`quadsim.utils.rotations`.
"""

from quadsim.utils.utils import load_autopilot, load_config

__all__ = ["load_autopilot", "load_config"]
