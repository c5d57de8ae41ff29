import pytest

from quadsim.sim.airframe import AirframeParams

NO_NOISE = {
    "gyro_bias_std": 0.0,
    "acc_bias_std": 0.0,
    "gyro_noise_std": 0.0,
    "acc_noise_std": 0.0,
    "mag_bias_std": 0.0,
    "mag_noise_std": 0.0,
    "alt_noise_std": 0.0,
    "tof_noise_std": 0.0,
}


@pytest.fixture(scope="session")
def airframe() -> AirframeParams:
    return AirframeParams.default()


@pytest.fixture
def no_noise() -> dict[str, float]:
    """Sensor settings without any bias or noise."""
    return dict(NO_NOISE)
