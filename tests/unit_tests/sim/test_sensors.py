import numpy as np
import pytest

from quadsim.sim.airframe import AirframeParams
from quadsim.sim.physics import QuadState
from quadsim.sim.sensors import EARTH_MAG_FIELD, SensorModel
from quadsim.utils.rotations import quat_from_euler, quat_to_rotation_matrix


@pytest.fixture
def sensors(airframe: AirframeParams, no_noise: dict[str, float]) -> SensorModel:
    return SensorModel(airframe, **no_noise)


def state_at(z: float, roll: float = 0.0, pitch: float = 0.0, yaw: float = 0.0) -> QuadState:
    return QuadState(pos=np.array([0.0, 0.0, z]), quat=quat_from_euler(roll, pitch, yaw))


@pytest.mark.unit
def test_level_at_rest(sensors: SensorModel, airframe: AirframeParams):
    reading = sensors.measure(QuadState(), np.zeros(3))
    assert np.array_equal(reading.gyro, np.zeros(3))
    assert np.allclose(reading.acc, [0.0, 0.0, airframe.gravity])
    assert np.allclose(reading.mag, EARTH_MAG_FIELD)
    assert reading.abs_altitude == 0.0
    assert reading.altitude == 0.0
    assert reading.tof == 0.0
    assert reading.field_height == airframe.field_height


@pytest.mark.unit
def test_free_fall_reads_zero(sensors: SensorModel, airframe: AirframeParams):
    reading = sensors.measure(state_at(10.0), np.array([0.0, 0.0, -airframe.gravity]))
    assert np.allclose(reading.acc, 0.0)


@pytest.mark.unit
def test_body_frame_readings(sensors: SensorModel, airframe: AirframeParams):
    state = state_at(2.0, roll=0.3, pitch=-0.2, yaw=1.0)
    state.ang_vel[:] = [0.1, 0.2, 0.3]
    reading = sensors.measure(state, np.zeros(3))
    rot = quat_to_rotation_matrix(state.quat)
    assert np.allclose(reading.gyro, [0.1, 0.2, 0.3])
    assert np.allclose(rot @ reading.acc, [0.0, 0.0, airframe.gravity])
    assert np.allclose(rot @ reading.mag, EARTH_MAG_FIELD)


@pytest.mark.unit
def test_range_finder_slant(sensors: SensorModel):
    reading = sensors.measure(state_at(2.0, roll=np.pi / 3), np.zeros(3))
    assert reading.tof == pytest.approx(4.0)
    assert reading.abs_altitude == 2.0
    reading = sensors.measure(state_at(2.0, pitch=-np.pi / 4), np.zeros(3))
    assert reading.tof == pytest.approx(2.0 * np.sqrt(2))


@pytest.mark.unit
@pytest.mark.parametrize("roll", [np.pi / 2, 2.0, np.pi])
def test_range_finder_no_ground(sensors: SensorModel, roll: float):
    reading = sensors.measure(state_at(2.0, roll=roll), np.zeros(3))
    assert reading.tof is None


@pytest.mark.unit
def test_field_ceiling(sensors: SensorModel, airframe: AirframeParams):
    reading = sensors.measure(state_at(80.0), np.zeros(3))
    assert reading.abs_altitude == airframe.field_height
    assert reading.altitude == airframe.field_height
    assert reading.tof == airframe.field_height
    reading = sensors.measure(state_at(45.0, roll=1.3), np.zeros(3))
    assert reading.tof == pytest.approx(airframe.field_height * 1.2), "Range has to be limited"


@pytest.mark.unit
def test_custom_field_height(airframe: AirframeParams, no_noise: dict[str, float]):
    sensors = SensorModel(airframe, field_height=10.0, **no_noise)
    reading = sensors.measure(state_at(20.0), np.zeros(3))
    assert reading.abs_altitude == 10.0
    assert reading.field_height == 10.0


@pytest.mark.unit
def test_altitude_never_negative(airframe: AirframeParams):
    sensors = SensorModel(airframe, alt_noise_std=1.0, tof_noise_std=1.0, seed=0)
    for _ in range(100):
        reading = sensors.measure(QuadState(), np.zeros(3))
        assert reading.altitude >= 0.0
        assert reading.tof >= 0.0


@pytest.mark.unit
def test_seed(airframe: AirframeParams):
    sensors_1 = SensorModel(airframe, seed=7)
    sensors_2 = SensorModel(airframe, seed=7)
    for name, bias in sensors_1.biases.items():
        assert np.array_equal(bias, sensors_2.biases[name])
    state = state_at(3.0, roll=0.1)
    reading_1 = sensors_1.measure(state, np.zeros(3))
    reading_2 = sensors_2.measure(state, np.zeros(3))
    assert np.array_equal(reading_1.acc, reading_2.acc)
    assert reading_1.tof == reading_2.tof

    biases = sensors_1.biases
    sensors_1.seed(8)
    assert not np.array_equal(sensors_1.biases["gyro"], biases["gyro"])
    sensors_1.seed(7)
    assert np.array_equal(sensors_1.biases["gyro"], biases["gyro"])


@pytest.mark.unit
def test_biases_are_copies(airframe: AirframeParams):
    sensors = SensorModel(airframe, seed=1)
    sensors.biases["acc"][:] = 100.0
    assert np.all(np.abs(sensors.biases["acc"]) < 100.0)


@pytest.mark.unit
def test_invalid_mag_field(airframe: AirframeParams):
    with pytest.raises(AssertionError):
        SensorModel(airframe, earth_mag_field=(1.0, 0.0))
