"""Mixer for the X configuration quadrotor.

Distributes a collective thrust and a body torque demand onto the four rotors. Rotors are ordered
like :attr:`AirframeParams.rotor_positions`, i.e. (+a, +a), (+a, -a), (-a, -a), (-a, +a) with the
arm offset a.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from quadsim.sim.airframe import AirframeParams


def mix(
    torque: NDArray[np.floating], collective: float, airframe: AirframeParams
) -> NDArray[np.floating]:
    """Compute the per-rotor thrust targets.

    Args:
        torque: Body torque demand (x, y, z) in Nm.
        collective: Total thrust demand in N.
        airframe: The airframe parameters providing arm offset and yaw torque factor.

    Returns:
        The non-negative thrust targets of the four rotors in N.
    """
    d = airframe.arm_offset if airframe.arm_offset != 0 else 1e-3
    k = airframe.yaw_torque_factor if abs(airframe.yaw_torque_factor) >= 1e-4 else 1e-4
    x, y, z = torque[0] / d, torque[1] / d, torque[2] / k
    s = collective
    thrusts = np.array(
        [
            (s + x - y - z) / 4,
            (s - x - y + z) / 4,
            (s - x + y - z) / 4,
            (s + x + y + z) / 4,
        ]
    )
    return np.maximum(thrusts, 0.0)
