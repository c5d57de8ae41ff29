"""Complementary attitude filter.

The filter integrates the gyroscope rates into an orientation quaternion and corrects the roll and
pitch drift with the gravity direction measured by the accelerometer. Yaw is not observable from
the accelerometer and follows the gyroscope only.

The filter state is an immutable record. :func:`update_filter` returns the next state together with
the attitude estimate instead of mutating its input.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from math import atan2, hypot
from typing import TYPE_CHECKING

import numpy as np

from quadsim.utils.rotations import (
    euler_from_quat,
    quat_from_euler,
    quat_identity,
    quat_integrate,
    wrap_pi,
)

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from quadsim.sim.sensors import SensorReading

MIN_ACC_NORM = 1e-4  # Free fall, no usable gravity reference


@dataclass(frozen=True)
class FilterState:
    """State of the complementary filter."""

    quat: NDArray[np.floating] = field(default_factory=quat_identity)
    alpha: float = 0.05
    """Weight of the accelerometer correction per update."""


@dataclass(frozen=True)
class AttitudeEstimate:
    """Estimated attitude. Angles in radians, wrapped to (-pi, pi]."""

    roll: float
    pitch: float
    yaw: float
    quat: NDArray[np.floating]

    @property
    def euler(self) -> NDArray[np.floating]:
        """The estimate as (roll, pitch, yaw) array."""
        return np.array([self.roll, self.pitch, self.yaw])


def init_filter(alpha: float = 0.05, quat: NDArray[np.floating] | None = None) -> FilterState:
    """Create a filter state.

    Args:
        alpha: Weight of the accelerometer correction.
        quat: Initial orientation. Identity if None.
    """
    q = quat_identity() if quat is None else np.array(quat, dtype=float)
    return FilterState(quat=q, alpha=float(alpha))


def update_filter(
    state: FilterState, reading: SensorReading, dt: float
) -> tuple[FilterState, AttitudeEstimate]:
    """Fuse one sensor reading into the attitude estimate.

    Args:
        state: The current filter state.
        reading: The sensor reading. Only gyro and accelerometer are used.
        dt: The time since the last update in seconds.

    Returns:
        The next filter state and the attitude estimate.
    """
    q = quat_integrate(state.quat, reading.gyro, dt)
    roll, pitch, yaw = euler_from_quat(q)

    acc_norm = float(np.linalg.norm(reading.acc))
    if acc_norm > MIN_ACC_NORM:
        ax, ay, az = (float(a) / acc_norm for a in reading.acc)
        roll_acc = atan2(ay, az)
        pitch_acc = atan2(-ax, hypot(ay, az))
        alpha = state.alpha
        roll = (1 - alpha) * roll + alpha * roll_acc
        pitch = (1 - alpha) * pitch + alpha * pitch_acc
    roll, pitch, yaw = wrap_pi(roll), wrap_pi(pitch), wrap_pi(yaw)

    # The quaternion is rebuilt from the blended angles on every update
    q = quat_from_euler(roll, pitch, yaw)
    return FilterState(quat=q, alpha=state.alpha), AttitudeEstimate(roll, pitch, yaw, q.copy())
