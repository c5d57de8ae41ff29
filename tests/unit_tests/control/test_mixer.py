import dataclasses

import numpy as np
import pytest

from quadsim.control.mixer import mix
from quadsim.sim.airframe import AirframeParams


def body_torque(thrusts: np.ndarray, airframe: AirframeParams) -> np.ndarray:
    """Torque produced by the given rotor thrusts, computed like the physics does."""
    torque = np.zeros(3)
    for (x, y), spin, thrust in zip(
        airframe.rotor_positions, airframe.spin_directions, thrusts
    ):
        torque += [y * thrust, -x * thrust, spin * airframe.yaw_torque_factor * thrust]
    return torque


@pytest.mark.unit
def test_collective_only(airframe: AirframeParams):
    thrusts = mix(np.zeros(3), 12.0, airframe)
    assert np.allclose(thrusts, 3.0)


@pytest.mark.unit
@pytest.mark.parametrize(
    "torque", [[0.2, 0.0, 0.0], [0.0, -0.3, 0.0], [0.0, 0.0, 0.05], [0.1, 0.1, -0.02]]
)
def test_torque_allocation(airframe: AirframeParams, torque: list[float]):
    thrusts = mix(np.array(torque), airframe.weight, airframe)
    assert np.all(thrusts > 0)
    assert np.sum(thrusts) == pytest.approx(airframe.weight)
    assert np.allclose(body_torque(thrusts, airframe), torque)


@pytest.mark.unit
def test_non_negative(airframe: AirframeParams):
    thrusts = mix(np.array([5.0, 0.0, 0.0]), 1.0, airframe)
    assert np.all(thrusts >= 0)
    assert thrusts[1] == thrusts[2] == 0.0
    assert np.all(mix(np.zeros(3), -10.0, airframe) == 0)


@pytest.mark.unit
def test_degenerate_geometry(airframe: AirframeParams):
    degenerate = dataclasses.replace(airframe, arm_offset=0.0, yaw_torque_factor=0.0)
    thrusts = mix(np.array([0.01, 0.01, 0.01]), 10.0, degenerate)
    assert np.all(np.isfinite(thrusts))
    assert np.all(thrusts >= 0)
