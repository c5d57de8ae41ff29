import math

import numpy as np
import pytest

from quadsim.control.pid import DEFAULT_GAINS, PIDGains, PIDState, pid_update, with_gains

DT = 0.01


@pytest.mark.unit
def test_reset_state():
    state = PIDState()
    assert state.integral == state.prev_error == state.derivative == state.last_output == 0.0


@pytest.mark.unit
def test_proportional():
    gains = PIDGains(kp=2.0)
    state, output = pid_update(PIDState(), gains, 0.5, DT)
    assert output == 1.0
    assert state.last_output == 1.0
    assert state.prev_error == 0.5


@pytest.mark.unit
def test_integral():
    gains = PIDGains(ki=1.0, integral_limit=0.05)
    state = PIDState()
    for i in range(1, 4):
        state, output = pid_update(state, gains, 1.0, DT)
        assert state.integral == pytest.approx(i * DT)
        assert output == pytest.approx(i * DT)
    for _ in range(100):
        state, output = pid_update(state, gains, 1.0, DT)
    assert state.integral == 0.05, "Integral has to saturate at its limit"
    for _ in range(100):
        state, _ = pid_update(state, gains, -1.0, DT)
    assert state.integral == -0.05


@pytest.mark.unit
def test_derivative():
    gains = PIDGains(kd=1.0, derivative_alpha=0.0)
    state, output = pid_update(PIDState(prev_error=1.0), gains, 1.5, DT)
    assert output == gains.output_limit
    assert state.derivative == pytest.approx(50.0)


@pytest.mark.unit
def test_derivative_filter():
    gains = PIDGains(kd=1.0, derivative_alpha=0.8, output_limit=100.0)
    state, _ = pid_update(PIDState(), gains, 0.1, DT)
    assert state.derivative == pytest.approx(0.2 * 10.0)
    state, _ = pid_update(state, gains, 0.1, DT)
    assert state.derivative == pytest.approx(0.8 * 2.0)


@pytest.mark.unit
def test_output_limit():
    gains = PIDGains(kp=100.0, output_limit=0.8)
    _, output = pid_update(PIDState(), gains, 1.0, DT)
    assert output == 0.8
    _, output = pid_update(PIDState(), gains, -1.0, DT)
    assert output == -0.8


@pytest.mark.unit
def test_zero_dt():
    gains = PIDGains(kp=1.0, kd=1.0)
    _, output = pid_update(PIDState(), gains, 0.1, 0.0)
    assert math.isfinite(output)


@pytest.mark.unit
def test_default_gains():
    assert set(DEFAULT_GAINS) == {"roll", "pitch", "yaw"}
    assert DEFAULT_GAINS["roll"] == DEFAULT_GAINS["pitch"]
    assert DEFAULT_GAINS["yaw"].to_dict()["kp"] == 2.0


@pytest.mark.unit
def test_with_gains():
    gains = with_gains(DEFAULT_GAINS["roll"], kp=5, ki=0.0)
    assert gains.kp == 5.0 and isinstance(gains.kp, float)
    assert gains.ki == 0.0
    assert gains.kd == DEFAULT_GAINS["roll"].kd
    assert DEFAULT_GAINS["roll"].kp == 4.0


@pytest.mark.unit
@pytest.mark.parametrize("value", [float("nan"), float("inf"), "1.0", None, True])
def test_with_gains_invalid_value(value):
    with pytest.raises(ValueError):
        with_gains(PIDGains(), kp=value)


@pytest.mark.unit
def test_with_gains_unknown_name():
    with pytest.raises(TypeError):
        with_gains(PIDGains(), gain=1.0)


@pytest.mark.unit
@pytest.mark.parametrize(
    "name, value",
    [
        ("output_limit", -0.5),
        ("integral_limit", -1.0),
        ("derivative_alpha", 1.5),
        ("derivative_alpha", -0.1),
    ],
)
def test_with_gains_invalid_limit(name: str, value: float):
    with pytest.raises(ValueError):
        with_gains(PIDGains(), **{name: value})
    gains = with_gains(PIDGains(), output_limit=0.0, derivative_alpha=1.0)
    assert gains.output_limit == 0.0 and gains.derivative_alpha == 1.0


@pytest.mark.unit
def test_clamping_random_errors():
    gains = PIDGains(kp=3.0, ki=20.0, kd=0.5, integral_limit=0.3, output_limit=0.8)
    state = PIDState()
    rng = np.random.default_rng(0)
    for error in rng.uniform(-5.0, 5.0, 1000):
        state, output = pid_update(state, gains, float(error), DT)
        assert abs(output) <= gains.output_limit
        assert abs(state.integral) <= gains.integral_limit
