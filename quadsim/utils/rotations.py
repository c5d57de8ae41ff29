"""Rotation conversion utils module.

Quaternions are stored as numpy arrays in scalar-first order (w, x, y, z) and describe the rotation
from the body frame into the world frame.
"""

from __future__ import annotations

from math import asin, atan2, copysign, cos, fmod, pi, sin
from typing import TypeVar

import numpy as np
import numpy.typing as npt

T = TypeVar("T", float, npt.NDArray[np.floating])

EPS = 1e-9


def quat_identity() -> npt.NDArray[np.floating]:
    """Create the identity quaternion (1, 0, 0, 0)."""
    return np.array([1.0, 0.0, 0.0, 0.0])


def quat_normalize(q: npt.NDArray[np.floating]) -> npt.NDArray[np.floating]:
    """Normalize a quaternion in place.

    Quaternions with a norm below 1e-9 cannot be normalized and collapse to the identity instead of
    producing NaNs.

    Args:
        q: The quaternion (w, x, y, z). Modified in place.

    Returns:
        The normalized quaternion.
    """
    norm = np.linalg.norm(q)
    if norm < EPS:
        q[:] = (1.0, 0.0, 0.0, 0.0)
        return q
    q /= norm
    return q


def quat_derivative(
    q: npt.NDArray[np.floating], omega: npt.NDArray[np.floating]
) -> npt.NDArray[np.floating]:
    """Time derivative of a quaternion under a body-frame angular velocity.

    Implements dq/dt = 0.5 * q ⊗ [0, ω].

    Args:
        q: The orientation quaternion (w, x, y, z).
        omega: The body-frame angular velocity in rad/s.

    Returns:
        The quaternion derivative.
    """
    w, x, y, z = q
    wx, wy, wz = omega
    return 0.5 * np.array(
        [
            -(x * wx + y * wy + z * wz),
            w * wx + y * wz - z * wy,
            w * wy - x * wz + z * wx,
            w * wz + x * wy - y * wx,
        ]
    )


def quat_integrate(
    q: npt.NDArray[np.floating], omega: npt.NDArray[np.floating], dt: float
) -> npt.NDArray[np.floating]:
    """Integrate a quaternion over one time step with explicit Euler and renormalize.

    Args:
        q: The orientation quaternion (w, x, y, z).
        omega: The body-frame angular velocity in rad/s.
        dt: The time step in seconds.

    Returns:
        A new, normalized quaternion.
    """
    return quat_normalize(q + quat_derivative(q, omega) * dt)


def quat_to_rotation_matrix(q: npt.NDArray[np.floating]) -> npt.NDArray[np.floating]:
    """Convert a unit quaternion into the world-from-body rotation matrix.

    The body-from-world matrix is the transpose of the result.
    """
    w, x, y, z = q
    xx, yy, zz = x * x, y * y, z * z
    wx, wy, wz = w * x, w * y, w * z
    xy, xz, yz = x * y, x * z, y * z
    return np.array(
        [
            [1 - 2 * (yy + zz), 2 * (xy - wz), 2 * (xz + wy)],
            [2 * (xy + wz), 1 - 2 * (xx + zz), 2 * (yz - wx)],
            [2 * (xz - wy), 2 * (yz + wx), 1 - 2 * (xx + yy)],
        ]
    )


def rotate(m: npt.NDArray[np.floating], v: npt.NDArray[np.floating]) -> npt.NDArray[np.floating]:
    """Rotate a vector by a rotation matrix."""
    return m @ v


def euler_from_quat(q: npt.NDArray[np.floating]) -> tuple[float, float, float]:
    """Convert a quaternion into euler angles (roll, pitch, yaw).

    roll is rotation around x in radians (counterclockwise)
    pitch is rotation around y in radians (counterclockwise)
    yaw is rotation around z in radians (counterclockwise)

    Pitch is clamped to ±pi/2 at gimbal lock instead of propagating an undefined asin.
    """
    w, x, y, z = (float(c) for c in q)
    t0 = +2.0 * (w * x + y * z)
    t1 = +1.0 - 2.0 * (x * x + y * y)
    roll_x = atan2(t0, t1)

    t2 = +2.0 * (w * y - z * x)
    pitch_y = copysign(pi / 2, t2) if abs(t2) >= 1.0 else asin(t2)

    t3 = +2.0 * (w * z + x * y)
    t4 = +1.0 - 2.0 * (y * y + z * z)
    yaw_z = atan2(t3, t4)

    return roll_x, pitch_y, yaw_z  # in radians


def quat_from_euler(roll: float, pitch: float, yaw: float) -> npt.NDArray[np.floating]:
    """Convert euler angles (roll, pitch, yaw) in radians into a quaternion (w, x, y, z)."""
    cr, sr = cos(roll * 0.5), sin(roll * 0.5)
    cp, sp = cos(pitch * 0.5), sin(pitch * 0.5)
    cy, sy = cos(yaw * 0.5), sin(yaw * 0.5)
    return np.array(
        [
            cy * cp * cr + sy * sp * sr,
            cy * cp * sr - sy * sp * cr,
            cy * sp * cr + sy * cp * sr,
            sy * cp * cr - cy * sp * sr,
        ]
    )


def deg2rad(angle: T) -> T:
    """Convert degrees to radians."""
    return angle * (pi / 180.0)


def rad2deg(angle: T) -> T:
    """Convert radians to degrees."""
    return angle * (180.0 / pi)


def wrap_pi(angle: float) -> float:
    """Map an angle to the interval (-pi, pi].

    Args:
        angle: A finite angle in radians.

    Returns:
        The remapped angle. Angles already inside the interval are returned unchanged.
    """
    if -pi < angle <= pi:
        return angle
    wrapped = fmod(angle, 2 * pi)  # (-2pi, 2pi)
    if wrapped <= -pi:
        wrapped += 2 * pi
    elif wrapped > pi:
        wrapped -= 2 * pi
    return wrapped
