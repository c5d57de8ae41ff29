"""Closed-loop quadrotor simulation.

The :class:`Simulator` composes the sensor model, the attitude filter, the PID controllers, the
mixer and the rigid body physics into a fixed-step control loop. Each call to :meth:`Simulator.step`

1. reads the noisy sensors from the true vehicle state,
2. updates the attitude estimate,
3. computes the wrapped attitude errors against the setpoint,
4. runs the PID controllers to obtain the body torque demand,
5. mixes torque and collective thrust into per-rotor thrust targets and inverts them into rotor
   speed commands, replacing the commands of overridden rotors,
6. integrates the physics over one time step, and
7. advances the session timeline, resetting the vehicle whenever a session ends.

The simulator does not own a clock. It is stepped either by the :class:`~quadsim.worker.SimWorker`
in real time or directly by scripts and tests.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any, Mapping, Sequence

import numpy as np
from gymnasium.utils import seeding

from quadsim.control.estimator import AttitudeEstimate, init_filter, update_filter
from quadsim.control.mixer import mix
from quadsim.control.pid import AXES, DEFAULT_GAINS, PIDGains, PIDState, pid_update, with_gains
from quadsim.messages import Snapshot
from quadsim.sim.airframe import AirframeParams
from quadsim.sim.physics import QuadState, StepForces, step_quad
from quadsim.sim.propulsion import Propulsion
from quadsim.sim.sensors import SensorModel, SensorReading
from quadsim.utils.rotations import euler_from_quat, rad2deg, wrap_pi

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = logging.getLogger(__name__)


@dataclass
class Setpoint:
    """Attitude setpoint in radians and normalized throttle in [0, 1]."""

    roll: float = 0.0
    pitch: float = 0.0
    yaw: float = 0.0
    throttle: float = 0.0


@dataclass
class Timeline:
    """Session clock of the simulation.

    ``time`` runs from 0 to ``duration`` within a session. ``session_id`` and ``absolute`` are never
    reset.
    """

    time: float = 0.0
    duration: float = 30.0
    session_id: int = 0
    absolute: float = 0.0


@dataclass(frozen=True)
class StepResult:
    """Intermediate values of one simulation step."""

    reading: SensorReading
    estimate: AttitudeEstimate
    errors: dict[str, float]
    torque: NDArray[np.floating]
    thrusts: NDArray[np.floating]
    """Thrust targets of the mixer in N."""
    rpm_commands: NDArray[np.floating]
    overrides: list[float | None]
    timeline: Timeline
    session_reset: bool
    forces: StepForces


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


class Simulator:
    """Fixed-step quadrotor simulation with onboard estimation and attitude control."""

    def __init__(
        self,
        dt: float = 0.005,
        pid: Mapping[str, Mapping[str, float]] | None = None,
        filter_alpha: float = 0.05,
        session_duration: float = 30.0,
        airframe: AirframeParams | None = None,
        sensors: Mapping[str, Any] | None = None,
        seed: int | None = None,
    ):
        """Create the simulator with the vehicle at rest on the ground.

        Args:
            dt: The simulation time step in seconds.
            pid: Per-axis gain overrides, e.g. ``{"roll": {"kp": 3.0}}``.
            filter_alpha: Weight of the accelerometer correction in the attitude filter.
            session_duration: Length of a session in seconds.
            airframe: The airframe parameters. Defaults to the packaged airframe.
            sensors: Keyword arguments for the :class:`~quadsim.sim.sensors.SensorModel`.
            seed: Seed of the sensor noise. If None, the seed is random.
        """
        assert dt > 0, f"Time step must be positive, got {dt}"
        assert session_duration > 0, f"Session duration must be positive, got {session_duration}"
        self.dt = float(dt)
        self.filter_alpha = float(filter_alpha)
        self.airframe = airframe if airframe is not None else AirframeParams.default()
        self.propulsion = Propulsion(self.airframe)
        self.sensor_settings = dict(sensors or {})
        self.np_random, _ = seeding.np_random(seed)

        af = self.airframe
        self.rotor_count = af.rotor_count
        self.hover_collective = af.mass * af.gravity
        self.max_thrust_per_rotor = self.propulsion.thrust_from_rpm(af.max_rpm)
        self.max_collective = self.max_thrust_per_rotor * self.rotor_count
        self.hover_throttle = self.hover_collective / max(self.max_collective, 1e-6)

        self.pid_gains: dict[str, PIDGains] = dict(DEFAULT_GAINS)
        if pid is not None and not isinstance(pid, Mapping):
            logger.warning(f"Dropping malformed gain overrides {pid!r}")
            pid = None
        for axis, gains in (pid or {}).items():
            self.update_pid(axis, gains)

        self.setpoint = Setpoint()
        self.timeline = Timeline(duration=float(session_duration))
        self.overrides: list[float | None] = [None] * self.rotor_count
        self.last_step: StepResult | None = None
        self.reset()
        logger.info(
            f"Simulator created (dt={self.dt}, session duration={session_duration}s, "
            f"hover throttle={self.hover_throttle:.3f})"
        )

    def reset(self):
        """Reset vehicle, estimator, sensors and controllers.

        The setpoint, the gains, the rotor overrides and the timeline are kept. The result of the
        last step is discarded.
        """
        self.state = QuadState()
        self.filter_state = init_filter(self.filter_alpha, self.state.quat)
        self.sensors = self._create_sensors()
        self.rpm_commands = np.zeros(self.rotor_count)
        self.pid_states = {axis: PIDState() for axis in AXES}
        self.last_step = None
        logger.debug("Simulation state reset")

    def seed(self, seed: int | None = None) -> int:
        """Set up the random number generator of the sensor noise for a given seed.

        Args:
            seed: The seed. If None, the seed is random.

        Returns:
            The seed that was used.
        """
        self.np_random, seed = seeding.np_random(seed)
        self.sensors = self._create_sensors()
        return seed

    def step(self) -> StepResult:
        """Advance the closed-loop simulation by one time step."""
        dt, af = self.dt, self.airframe
        reading = self.sensors.measure(self.state, self.state.world_acc)
        self.filter_state, estimate = update_filter(self.filter_state, reading, dt)

        sp = self.setpoint
        errors = {axis: wrap_pi(getattr(sp, axis) - getattr(estimate, axis)) for axis in AXES}
        torque = np.zeros(3)
        for i, axis in enumerate(AXES):
            self.pid_states[axis], torque[i] = pid_update(
                self.pid_states[axis], self.pid_gains[axis], errors[axis], dt
            )

        collective = min(max(self.setpoint.throttle, 0.0), 1.0) * self.max_collective
        thrusts = mix(torque, collective, af)
        for i in range(self.rotor_count):
            if (override := self.overrides[i]) is not None:
                self.rpm_commands[i] = min(max(override, 0.0), af.max_rpm)
                continue
            rpm = self.propulsion.rpm_from_thrust(min(thrusts[i], self.max_thrust_per_rotor))
            self.rpm_commands[i] = min(rpm, af.max_rpm)
        rpm_commands = self.rpm_commands.copy()

        forces = step_quad(self.state, rpm_commands, dt, af, self.propulsion)

        self.timeline.time += dt
        self.timeline.absolute += dt
        session_reset = False
        if self.timeline.time >= self.timeline.duration:
            self.timeline.session_id += 1
            self.timeline.time = 0.0
            session_reset = True
            logger.info(f"Session duration reached, starting session {self.timeline.session_id}")
            self.reset()

        self.last_step = StepResult(
            reading=reading,
            estimate=estimate,
            errors=errors,
            torque=torque,
            thrusts=thrusts,
            rpm_commands=rpm_commands,
            overrides=list(self.overrides),
            timeline=Timeline(**asdict(self.timeline)),
            session_reset=session_reset,
            forces=forces,
        )
        return self.last_step

    def set_setpoint(
        self,
        roll: float | None = None,
        pitch: float | None = None,
        yaw: float | None = None,
        throttle: float | None = None,
    ):
        """Update parts of the setpoint. Non-finite values are dropped.

        Args:
            roll: Desired roll angle in radians.
            pitch: Desired pitch angle in radians.
            yaw: Desired yaw angle in radians.
            throttle: Desired normalized collective thrust. Clamped to [0, 1].
        """
        changes = {"roll": roll, "pitch": pitch, "yaw": yaw, "throttle": throttle}
        for name, value in changes.items():
            if value is None:
                continue
            if not _is_number(value):
                logger.warning(f"Dropping invalid {name} setpoint {value!r}")
                continue
            if name == "throttle":
                value = min(max(value, 0.0), 1.0)
            setattr(self.setpoint, name, float(value))
        logger.debug(f"Setpoint: {self.setpoint}")

    def update_pid(self, axis: str, gains: Mapping[str, float]):
        """Change the gains of an axis. The controller memory is kept.

        Unknown axes are ignored. Unknown gain names and non-finite values are dropped.

        Args:
            axis: One of "roll", "pitch" or "yaw".
            gains: New values for any of the :class:`~quadsim.control.pid.PIDGains` fields.
        """
        if not isinstance(axis, str) or axis not in self.pid_gains:
            logger.warning(f"Dropping gain update for unknown axis {axis!r}")
            return
        if not hasattr(gains, "items"):
            logger.warning(f"Dropping malformed gain update for {axis}: {gains!r}")
            return
        updated = self.pid_gains[axis]
        for name, value in gains.items():
            try:
                updated = with_gains(updated, **{name: value})
            except (ValueError, TypeError) as e:
                logger.warning(f"Dropping {axis} gain update: {e}")
        self.pid_gains[axis] = updated
        logger.debug(f"{axis} gains: {updated}")

    def set_rotor_overrides(
        self,
        overrides: Mapping[int, float | None] | Sequence[float | None] | None = None,
        replace_all: bool = False,
    ):
        """Override the commanded speed of individual rotors.

        Args:
            overrides: Mapping from rotor index to RPM, or one value per rotor in a sequence. None
                clears the override of a rotor. Values are clamped to [0, max RPM], invalid indices
                and non-finite values are dropped.
            replace_all: Clear all overrides before applying the new ones.
        """
        if replace_all:
            self.overrides = [None] * self.rotor_count
        if overrides is None:
            return
        if isinstance(overrides, Mapping):
            items = list(overrides.items())
        elif isinstance(overrides, Sequence) and not isinstance(overrides, str):
            items = list(enumerate(overrides))
        else:
            logger.warning(f"Dropping malformed rotor overrides {overrides!r}")
            return
        for key, value in items:
            try:
                idx = int(key)
            except (TypeError, ValueError):
                idx = -1
            if isinstance(key, (bool, float)) or not 0 <= idx < self.rotor_count:
                logger.warning(f"Dropping override for invalid rotor index {key!r}")
                continue
            if value is None:
                self.overrides[idx] = None
            elif _is_number(value):
                self.overrides[idx] = min(max(float(value), 0.0), self.airframe.max_rpm)
            else:
                logger.warning(f"Dropping invalid override {value!r} for rotor {idx}")
        logger.debug(f"Rotor overrides: {self.overrides}")

    def snapshot(self) -> Snapshot:
        """Capture the current simulation state.

        Returns:
            A snapshot that shares no mutable data with the simulator.
        """
        af, state = self.airframe, self.state
        roll, pitch, yaw = euler_from_quat(state.quat)
        estimate, reading, actuators, errors, session_reset = None, None, None, None, False
        if (last := self.last_step) is not None:
            est = last.estimate
            estimate = {
                "roll": est.roll,
                "pitch": est.pitch,
                "yaw": est.yaw,
                "quat": est.quat.tolist(),
            }
            r = last.reading
            reading = {
                "gyro": r.gyro.tolist(),
                "acc": r.acc.tolist(),
                "mag": r.mag.tolist(),
                "abs_altitude": r.abs_altitude,
                "altitude": r.altitude,
                "tof": r.tof,
                "field_height": r.field_height,
            }
            actuators = {
                "thrusts": last.thrusts.tolist(),
                "rpm_commands": last.rpm_commands.tolist(),
                "torque": last.torque.tolist(),
            }
            errors = {axis: float(e) for axis, e in last.errors.items()}
            session_reset = last.session_reset
        return Snapshot(
            dt=self.dt,
            mass=af.mass,
            gravity=af.gravity,
            hover_throttle=self.hover_throttle,
            setpoint=asdict(self.setpoint),
            timeline=asdict(self.timeline),
            pid={axis: gains.to_dict() for axis, gains in self.pid_gains.items()},
            state={
                "pos": state.pos.tolist(),
                "vel": state.vel.tolist(),
                "ang_vel": state.ang_vel.tolist(),
                "quat": state.quat.tolist(),
                "euler": {"roll": roll, "pitch": pitch, "yaw": yaw},
                "euler_deg": {"roll": rad2deg(roll), "pitch": rad2deg(pitch), "yaw": rad2deg(yaw)},
                "on_ground": state.on_ground,
            },
            motors={
                "rpm": state.rpm.tolist(),
                "command_rpm": self.rpm_commands.tolist(),
                "thrust": state.thrust.tolist(),
                "overrides": list(self.overrides),
            },
            airframe={
                "mass": af.mass,
                "inertia": af.inertia.tolist(),
                "wheelbase": af.wheelbase,
                "yaw_torque_factor": af.yaw_torque_factor,
                "hover_rpm": af.hover_rpm,
                "max_rpm": af.max_rpm,
                "max_collective": self.max_collective,
            },
            estimate=estimate,
            reading=reading,
            actuators=actuators,
            errors=errors,
            session_reset=session_reset,
        )

    def _create_sensors(self) -> SensorModel:
        """Create a sensor model with fresh biases drawn from the simulator's generator."""
        seed = int(self.np_random.integers(2**32))
        return SensorModel(self.airframe, **self.sensor_settings, seed=seed)
