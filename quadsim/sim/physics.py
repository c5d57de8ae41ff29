"""Rigid body physics of the quadrotor.

This module integrates the 6-DOF state of the vehicle (position, velocity, angular velocity and
orientation) under rotor thrust and torque, linear and angular drag, gravity and a simple ground
contact model. Rotor speeds follow their commands with a first-order lag.

Explicit Euler integration is adequate at the simulator's time step (~5 ms) given the damping terms,
and the single-pole motor lag avoids a stiff solver for the motor dynamics.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, NamedTuple

import numpy as np

from quadsim.utils.rotations import quat_identity, quat_integrate, quat_to_rotation_matrix

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from quadsim.sim.airframe import AirframeParams
    from quadsim.sim.propulsion import Propulsion


GROUND_FRICTION = 0.65  # Horizontal velocity factor per step while in ground contact
GROUND_SPIN_DAMPING = 0.6  # Angular velocity factor per step while grounded
GROUND_TOLERANCE = 1e-4  # Height below which the vehicle counts as sitting on the ground
LIFTOFF_THRUST_RATIO = 0.9  # Fraction of the weight the rotors have to produce to count as airborne


class StepForces(NamedTuple):
    """Forces and accelerations computed during one physics step."""

    total_thrust: float
    thrust_body: NDArray[np.floating]
    torque_body: NDArray[np.floating]
    thrust_world: NDArray[np.floating]
    acc_world: NDArray[np.floating]


def _zeros4() -> NDArray[np.floating]:
    return np.zeros(4)


@dataclass
class QuadState:
    """True state of the vehicle. Owned by the physics and mutated in place each step."""

    pos: NDArray[np.floating] = field(default_factory=lambda: np.zeros(3))
    """Position in the world frame (m)."""
    vel: NDArray[np.floating] = field(default_factory=lambda: np.zeros(3))
    """Velocity in the world frame (m/s)."""
    ang_vel: NDArray[np.floating] = field(default_factory=lambda: np.zeros(3))
    """Angular velocity in the body frame (rad/s)."""
    quat: NDArray[np.floating] = field(default_factory=quat_identity)
    """World-from-body orientation (w, x, y, z). Unit norm after every step."""
    cmd_rpm: NDArray[np.floating] = field(default_factory=_zeros4)
    rpm: NDArray[np.floating] = field(default_factory=_zeros4)
    """Rotor speeds after the motor lag (RPM)."""
    thrust: NDArray[np.floating] = field(default_factory=_zeros4)
    torque: NDArray[np.floating] = field(default_factory=_zeros4)
    world_acc: NDArray[np.floating] = field(default_factory=lambda: np.zeros(3))
    """World-frame linear acceleration of the last step, read by the sensors as specific force."""
    on_ground: bool = True

    def copy(self) -> QuadState:
        """Create a deep copy of the state."""
        return copy.deepcopy(self)


def step_quad(
    state: QuadState,
    rpm_commands: NDArray[np.floating],
    dt: float,
    airframe: AirframeParams,
    propulsion: Propulsion,
) -> StepForces:
    """Advance the vehicle state by one time step.

    Args:
        state: The vehicle state. Modified in place.
        rpm_commands: The commanded rotor speeds in RPM. Shape: (4,).
        dt: The time step in seconds.
        airframe: The airframe parameters.
        propulsion: The propulsion model used to compute rotor thrust and torque.

    Returns:
        The forces and accelerations of this step.
    """
    mass, inertia, gravity = airframe.mass, airframe.inertia, airframe.gravity
    rot = quat_to_rotation_matrix(state.quat)
    body_vel = rot.T @ state.vel
    axial_velocity = -body_vel[2]  # Airflow through the rotor discs

    # Rotors: first-order lag towards the command, then thrust and torque from the tables
    alpha = dt / (airframe.motor_time_constant + dt)
    thrust_body, torque_body = np.zeros(3), np.zeros(3)
    for i in range(airframe.rotor_count):
        target = min(max(float(rpm_commands[i]), 0.0), airframe.max_rpm)
        state.cmd_rpm[i] = target
        state.rpm[i] += (target - state.rpm[i]) * alpha
        thrust, torque, _, _ = propulsion.thrust_and_torque_from_rpm(state.rpm[i], axial_velocity)
        state.thrust[i], state.torque[i] = thrust, torque
        force = np.array([0.0, 0.0, thrust])
        lever = np.array([*airframe.rotor_positions[i], 0.0])
        thrust_body += force
        torque_body += np.cross(lever, force)
        torque_body[2] += airframe.spin_directions[i] * torque
    total_thrust = float(thrust_body[2])

    # Translation
    thrust_world = rot @ thrust_body
    force_world = thrust_world - airframe.linear_damping * state.vel
    force_world[2] -= mass * gravity
    acc_world = force_world / mass
    state.vel += acc_world * dt
    state.pos += state.vel * dt

    if state.pos[2] < 0:  # Ground contact at z = 0
        state.pos[2] = 0.0
        if state.vel[2] < 0:
            state.vel[2] = 0.0
        state.vel[:2] *= GROUND_FRICTION
        acc_world[2] = max(acc_world[2], 0.0)  # The ground's normal force cancels the descent
    state.world_acc = acc_world

    # Rotation
    gyroscopic = np.cross(state.ang_vel, inertia * state.ang_vel)
    ang_acc = (torque_body - gyroscopic - airframe.angular_damping * state.ang_vel) / inertia
    state.ang_vel += ang_acc * dt
    state.quat = quat_integrate(state.quat, state.ang_vel, dt)

    state.on_ground = bool(
        state.pos[2] <= GROUND_TOLERANCE and total_thrust < airframe.weight * LIFTOFF_THRUST_RATIO
    )
    if state.on_ground:  # Suppress residual spin and jitter on the ground
        state.ang_vel *= GROUND_SPIN_DAMPING

    return StepForces(total_thrust, thrust_body, torque_body, thrust_world, acc_world.copy())
