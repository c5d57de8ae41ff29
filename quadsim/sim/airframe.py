"""Airframe parameters of the simulated quadrotor.

The :class:`AirframeParams` dataclass collects the physical and derived constants of the vehicle.
It is built once from the static airframe document in `assets/airframe.toml` (or any document with
the same layout) and passed explicitly to every component that needs it, i.e. the propulsion model,
the physics, the mixer and the simulator. Derived quantities are:

* The arm offset of the rotors from the wheelbase, assuming an X frame with four equally spaced
  rotors.
* The rotor positions (±arm offset, ±arm offset).
* The yaw torque factor Cq0 / Ct0 * D that converts yaw torque demands into differential thrust.
* The maximum rotor speed, limited by kV * battery voltage and by 2.8 times the hover speed.
* The motor time constant from the assumed rate controller bandwidth.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np

from quadsim.utils import load_config

if TYPE_CHECKING:
    from ml_collections import ConfigDict
    from numpy.typing import NDArray

AIRFRAME_PATH = Path(__file__).resolve().parent / "assets/airframe.toml"
MAX_RPM_HOVER_RATIO = 2.8  # Caps the ideal kV * V speed to a realistic multiple of the hover speed
SPIN_DIRECTIONS = (-1.0, 1.0, -1.0, 1.0)  # Alternating spin cancels the reaction torques in hover


@dataclass(frozen=True)
class AirframeParams:
    """Immutable collection of physical and derived parameters of the quadrotor.

    The preferred way to create an `AirframeParams` object is :meth:`from_config` or
    :meth:`default`.
    """

    mass: float
    inertia: NDArray[np.floating]  # Diagonal (xx, yy, zz)
    gravity: float
    air_density: float
    field_height: float

    wheelbase: float
    arm_offset: float
    rotor_positions: NDArray[np.floating]  # Shape (rotor_count, 2)
    spin_directions: NDArray[np.floating]
    yaw_torque_factor: float

    diameter: float
    ct0: float
    cq0: float
    advance_ratios: NDArray[np.floating]
    ct_table: NDArray[np.floating]
    cq_table: NDArray[np.floating]
    hover_rpm: float
    max_rpm: float
    rotor_count: int

    motor_time_constant: float
    linear_damping: float = 0.4
    angular_damping: float = 0.015

    @property
    def weight(self) -> float:
        """Weight force of the vehicle in Newtons."""
        return self.mass * self.gravity

    @staticmethod
    def from_config(config: ConfigDict) -> AirframeParams:
        """Derive the airframe parameters from an airframe document.

        Args:
            config: The airframe document. See `assets/airframe.toml` for the expected layout.

        Returns:
            The airframe parameters.
        """
        env = config.environment_model
        prop = config.propulsion_model
        comps = config.components
        sim = config.get("simulation", {})

        rotor_count = int(config.airframe.rotor_count)
        assert rotor_count == 4, f"Only quadrotors are supported, got {rotor_count} rotors."
        wheelbase = float(config.airframe.wheelbase_m_est)
        arm_offset = wheelbase / (2 * math.sqrt(2))
        rotor_positions = np.array(
            [
                [arm_offset, arm_offset],
                [arm_offset, -arm_offset],
                [-arm_offset, -arm_offset],
                [-arm_offset, arm_offset],
            ]
        )

        table = prop.ct_cq_table
        advance_ratios = np.asarray(table.J, dtype=float)
        ct_table = np.asarray(table.C_T, dtype=float)
        cq_table = np.asarray(table.C_Q, dtype=float)
        assert len(advance_ratios) > 0, "Empty propeller coefficient table."
        assert len(advance_ratios) == len(ct_table) == len(cq_table), "Ragged coefficient table."
        assert np.all(np.diff(advance_ratios) > 0), "Advance ratios must be strictly increasing."

        ct0 = float(prop.aero_coeffs_assumed.C_T0)
        cq0 = float(prop.aero_coeffs_assumed.C_Q0)
        diameter = float(comps.propellers.diameter_m)
        hover_rpm = float(config.performance_targets.hover.hover_rpm)
        max_rpm_ideal = float(comps.motors.kv_rpm_per_V) * float(comps.battery.nominal_voltage_V)
        bandwidth = float(config.control_limits.rate_controller_bandwidth_hz_est)
        min_time_constant = float(sim.get("min_motor_time_constant_s", 0.002))

        params = AirframeParams(
            mass=float(config.mass_breakdown.auw_kg),
            inertia=np.array(
                [
                    float(config.inertia_estimates.Ixx_kgm2_est),
                    float(config.inertia_estimates.Iyy_kgm2_est),
                    float(config.inertia_estimates.Izz_kgm2_est),
                ]
            ),
            gravity=float(env.gravity_mps2),
            air_density=float(env.rho0_kg_per_m3),
            field_height=float(env.get("field_height_m", 50.0)),
            wheelbase=wheelbase,
            arm_offset=arm_offset,
            rotor_positions=rotor_positions,
            spin_directions=np.array(SPIN_DIRECTIONS),
            yaw_torque_factor=cq0 / ct0 * diameter,
            diameter=diameter,
            ct0=ct0,
            cq0=cq0,
            advance_ratios=advance_ratios,
            ct_table=ct_table,
            cq_table=cq_table,
            hover_rpm=hover_rpm,
            max_rpm=min(max_rpm_ideal, hover_rpm * MAX_RPM_HOVER_RATIO),
            rotor_count=rotor_count,
            motor_time_constant=max(1 / (2 * math.pi * bandwidth), min_time_constant),
            linear_damping=float(sim.get("linear_damping", 0.4)),
            angular_damping=float(sim.get("angular_damping", 0.015)),
        )
        arrays = ("inertia", "rotor_positions", "spin_directions")
        for name in arrays + ("advance_ratios", "ct_table", "cq_table"):
            getattr(params, name).flags.writeable = False  # Shared read-only configuration
        return params

    @staticmethod
    def default() -> AirframeParams:
        """Load the airframe parameters of the packaged airframe document."""
        return AirframeParams.from_config(load_config(AIRFRAME_PATH))
