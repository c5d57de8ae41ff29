"""Simulated onboard sensors.

The :class:`SensorModel` synthesizes the readings of a gyroscope, an accelerometer, a magnetometer,
a barometric altimeter and a downward facing time-of-flight range finder from the true vehicle
state. Gyroscope, accelerometer and magnetometer carry a constant per-axis bias drawn on creation
plus white Gaussian noise on every reading.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from quadsim.sim.noise import GaussianNoise
from quadsim.utils.rotations import quat_to_rotation_matrix

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from quadsim.sim.airframe import AirframeParams
    from quadsim.sim.physics import QuadState

EARTH_MAG_FIELD = (0.21, 0.0, 0.43)  # Normalized field in the world frame, pointing north and down
MIN_DOWN_COSINE = 1e-3  # The range finder sees no ground beyond ~90 degrees of tilt
TOF_RANGE_FACTOR = 1.2  # Maximum range of the range finder relative to the field height


@dataclass(frozen=True)
class SensorReading:
    """One set of sensor measurements.

    Vectors are given in the body frame.
    """

    gyro: NDArray[np.floating]
    acc: NDArray[np.floating]
    """Specific force, i.e. +g along the body z axis when the vehicle is level and at rest."""
    mag: NDArray[np.floating]
    abs_altitude: float
    """True altitude clamped to [0, field height]."""
    altitude: float
    tof: float | None
    """Slant range to the ground. None if the range finder does not point towards the ground."""
    field_height: float


class SensorModel:
    """Noisy sensor suite of the quadrotor."""

    def __init__(
        self,
        airframe: AirframeParams,
        gyro_bias_std: float = 0.001,
        acc_bias_std: float = 0.02,
        gyro_noise_std: float = 0.01,
        acc_noise_std: float = 0.1,
        mag_bias_std: float = 0.02,
        mag_noise_std: float = 0.005,
        alt_noise_std: float = 0.05,
        tof_noise_std: float = 0.02,
        field_height: float | None = None,
        earth_mag_field: tuple[float, float, float] | NDArray[np.floating] = EARTH_MAG_FIELD,
        seed: int | None = None,
    ):
        """Create the sensor suite and draw the sensor biases.

        Args:
            airframe: The airframe parameters. Provides gravity and the default field height.
            gyro_bias_std: Standard deviation of the constant gyroscope bias (rad/s).
            acc_bias_std: Standard deviation of the constant accelerometer bias (m/s^2).
            gyro_noise_std: Standard deviation of the gyroscope noise (rad/s).
            acc_noise_std: Standard deviation of the accelerometer noise (m/s^2).
            mag_bias_std: Standard deviation of the constant magnetometer bias.
            mag_noise_std: Standard deviation of the magnetometer noise.
            alt_noise_std: Standard deviation of the altimeter noise (m).
            tof_noise_std: Standard deviation of the range finder noise (m).
            field_height: Ceiling of the flight field (m). Defaults to the airframe's field height.
            earth_mag_field: The earth magnetic field vector in the world frame.
            seed: Seed of the noise generator. If None, the seed is random.
        """
        self.gravity = airframe.gravity
        if field_height is None:
            field_height = airframe.field_height
        self.field_height = float(field_height)
        self.earth_mag_field = np.asarray(earth_mag_field, dtype=float)
        assert self.earth_mag_field.shape == (3,), "Earth magnetic field must be a 3D vector."
        self.np_random = np.random.default_rng(seed)
        rng = self.np_random
        self.gyro_noise = GaussianNoise(3, gyro_noise_std, gyro_bias_std, np_random=rng)
        self.acc_noise = GaussianNoise(3, acc_noise_std, acc_bias_std, np_random=rng)
        self.mag_noise = GaussianNoise(3, mag_noise_std, mag_bias_std, np_random=rng)
        self.alt_noise = GaussianNoise(1, alt_noise_std, np_random=rng)
        self.tof_noise = GaussianNoise(1, tof_noise_std, np_random=rng)

    @property
    def _channels(self) -> tuple[GaussianNoise, ...]:
        return self.gyro_noise, self.acc_noise, self.mag_noise, self.alt_noise, self.tof_noise

    def seed(self, seed: int | None = None):
        """Reseed the noise generator and redraw the sensor biases.

        Args:
            seed: The seed to set the random number generator to. If None, the seed is random.
        """
        self.np_random = np.random.default_rng(seed)
        for channel in self._channels:
            channel.seed(self.np_random)

    @property
    def biases(self) -> dict[str, NDArray[np.floating]]:
        """The constant biases of the gyroscope, accelerometer and magnetometer."""
        return {
            "gyro": self.gyro_noise.bias.copy(),
            "acc": self.acc_noise.bias.copy(),
            "mag": self.mag_noise.bias.copy(),
        }

    def measure(self, state: QuadState, world_acc: NDArray[np.floating]) -> SensorReading:
        """Read all sensors.

        Args:
            state: The true vehicle state.
            world_acc: The world-frame linear acceleration of the vehicle.

        Returns:
            The sensor reading.
        """
        rot = quat_to_rotation_matrix(state.quat)
        gyro = self.gyro_noise.apply(state.ang_vel)
        specific_force = np.asarray(world_acc, dtype=float) + np.array([0.0, 0.0, self.gravity])
        acc = self.acc_noise.apply(rot.T @ specific_force)
        mag = self.mag_noise.apply(rot.T @ self.earth_mag_field)

        abs_altitude = min(max(float(state.pos[2]), 0.0), self.field_height)
        altitude = max(0.0, float(self.alt_noise.apply(abs_altitude)[0]))

        body_down = rot @ np.array([0.0, 0.0, -1.0])
        down_cos = max(0.0, -float(body_down[2]))
        tof = None
        if down_cos > MIN_DOWN_COSINE:
            distance = max(0.0, float(self.tof_noise.apply(abs_altitude / down_cos)[0]))
            tof = min(distance, self.field_height * TOF_RANGE_FACTOR)

        return SensorReading(
            gyro=gyro,
            acc=acc,
            mag=mag,
            abs_altitude=abs_altitude,
            altitude=altitude,
            tof=tof,
            field_height=self.field_height,
        )
