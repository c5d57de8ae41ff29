"""Propeller thrust and torque model.

Thrust and torque follow the propeller affinity laws

* T = Ct * rho * n^2 * D^4
* Q = Cq * rho * n^2 * D^5

with n in rev/s and the coefficients Ct, Cq interpolated from a lookup table indexed by the advance
ratio J = |V| / (n * D), where V is the axial airflow through the propeller. Values outside of the
table domain are clamped to the first/last table entry and never extrapolated.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple

import numpy as np

if TYPE_CHECKING:
    from quadsim.sim.airframe import AirframeParams

MIN_REV_PER_SEC = 1e-3  # Below this rotor speed, coefficients are zero to avoid dividing by n


class Coefficients(NamedTuple):
    """Interpolated propeller coefficients."""

    ct: float
    cq: float
    advance_ratio: float


class ThrustTorque(NamedTuple):
    """Thrust (N) and reaction torque (Nm) of a single rotor."""

    thrust: float
    torque: float
    ct: float
    cq: float


class Propulsion:
    """Rotor thrust/torque model of the airframe's propellers."""

    def __init__(self, airframe: AirframeParams):
        """Initialize the propulsion model.

        Args:
            airframe: The airframe parameters containing the propeller geometry and tables.
        """
        self.airframe = airframe
        self._j_min = float(airframe.advance_ratios[0])
        self._j_max = float(airframe.advance_ratios[-1])
        # Constant parts of the affinity laws
        self._thrust_k = airframe.air_density * airframe.diameter**4
        self._torque_k = airframe.air_density * airframe.diameter**5

    def compute_ct_cq(self, n: float, axial_velocity: float) -> Coefficients:
        """Interpolate the thrust and torque coefficients.

        Args:
            n: Rotor speed in rev/s.
            axial_velocity: Airflow velocity through the propeller disc in m/s.

        Returns:
            The thrust coefficient, torque coefficient and the advance ratio. All zero if the rotor
            is (almost) stopped.
        """
        if n < MIN_REV_PER_SEC:
            return Coefficients(0.0, 0.0, 0.0)
        af = self.airframe
        j = min(max(abs(axial_velocity) / (n * af.diameter), self._j_min), self._j_max)
        ct = float(np.interp(j, af.advance_ratios, af.ct_table))
        cq = float(np.interp(j, af.advance_ratios, af.cq_table))
        return Coefficients(ct, cq, j)

    def thrust_and_torque_from_rpm(self, rpm: float, axial_velocity: float) -> ThrustTorque:
        """Compute the thrust and reaction torque of a rotor.

        Args:
            rpm: Rotor speed in RPM. Negative values are treated as zero.
            axial_velocity: Airflow velocity through the propeller disc in m/s.
        """
        n = max(rpm, 0.0) / 60.0
        ct, cq, _ = self.compute_ct_cq(n, axial_velocity)
        return ThrustTorque(ct * self._thrust_k * n * n, cq * self._torque_k * n * n, ct, cq)

    def thrust_from_rpm(self, rpm: float) -> float:
        """Static thrust of a rotor without axial airflow."""
        return self.thrust_and_torque_from_rpm(rpm, 0.0).thrust

    def rpm_from_thrust(self, thrust: float) -> float:
        """Invert the static thrust equation with the baseline coefficient Ct0.

        Note:
            The inversion ignores the induced airflow and is therefore only an open-loop
            approximation. The attitude controllers compensate for the residual error.

        Args:
            thrust: Desired rotor thrust in N. Negative values are treated as zero.

        Returns:
            The rotor speed in RPM.
        """
        ct = max(self.airframe.ct0, 1e-6)
        n = np.sqrt(max(thrust, 0.0) / (ct * self._thrust_k))
        return float(n * 60.0)
