import time
from pathlib import Path

import numpy as np
import pytest

from quadsim.console import MAX_MOTOR_POWER, AutopilotRunner, ConsoleApi
from quadsim.control import Autopilot
from quadsim.messages import Init, SetSetpoint
from quadsim.utils import load_autopilot
from quadsim.worker import SimWorker

ROOT = Path(__file__).parents[2]


class Spin(Autopilot):
    def __init__(self, api: ConsoleApi):
        super().__init__(api)
        self.updates = 0
        self.resets = 0

    def update(self, api: ConsoleApi):
        self.updates += 1
        api.set_motor_power(0, 100)

    def on_session_reset(self):
        self.resets += 1


class Crash(Autopilot):
    def update(self, api: ConsoleApi):
        api.set_motor_power(0, 200)
        if api.timeline()["absolute"] > 0.02:
            raise RuntimeError("boom")


class BrokenInit(Autopilot):
    def __init__(self, api: ConsoleApi):
        raise ValueError("bad autopilot")

    def update(self, api: ConsoleApi):
        pass


def make_worker(sensors: dict[str, float], **kwargs) -> SimWorker:
    worker = SimWorker(publish_every=1)
    worker.send(Init(sensors=sensors, seed=0, **kwargs))
    worker.tick()
    return worker


@pytest.mark.integration
def test_reads_before_init():
    api = ConsoleApi(SimWorker())
    assert api.snapshot is None
    assert api.altitude() is None
    assert api.absolute_altitude() is None
    assert api.range_finder() is None
    assert api.true_altitude() is None
    assert api.attitude() is None
    assert api.estimated_attitude() is None
    assert api.imu() is None
    assert api.magnetometer() is None
    assert api.timeline() is None
    api.set_motor_power(0, 100)  # Dropped without a simulation


@pytest.mark.integration
def test_reads(no_noise: dict[str, float]):
    worker = make_worker(no_noise)
    api = ConsoleApi(worker)
    assert api.absolute_altitude() == 0.0
    assert api.altitude() == 0.0
    assert api.range_finder() == 0.0
    assert api.true_altitude() == 0.0
    assert api.attitude() == {"roll": 0.0, "pitch": 0.0, "yaw": 0.0}
    assert api.estimated_attitude() == pytest.approx({"roll": 0.0, "pitch": 0.0, "yaw": 0.0})
    imu = api.imu()
    assert np.allclose(imu["gyro"], 0.0)
    assert np.allclose(imu["acc"], [0.0, 0.0, 9.81])
    assert len(api.magnetometer()) == 3
    assert api.timeline()["time"] == pytest.approx(0.005)


@pytest.mark.integration
def test_reads_follow_latest(no_noise: dict[str, float]):
    worker = make_worker(no_noise)
    api = ConsoleApi(worker)
    pinned = api.snapshot
    worker.tick()
    assert api.timeline()["time"] == pytest.approx(0.01)
    api.use(pinned)
    assert api.timeline()["time"] == pytest.approx(0.005)
    api.use(None)
    assert api.timeline()["time"] == pytest.approx(0.01)


@pytest.mark.integration
@pytest.mark.parametrize(
    "power, fraction", [(MAX_MOTOR_POWER, 1.0), (127.5, 0.5), (0, 0.0), (300, 1.0), (-10, 0.0)]
)
def test_motor_power(no_noise: dict[str, float], power: float, fraction: float):
    worker = make_worker(no_noise)
    api = ConsoleApi(worker)
    api.set_motor_power(2, power)
    result = worker.tick()
    max_rpm = worker.sim.airframe.max_rpm
    assert result.overrides[2] == pytest.approx(fraction * max_rpm)
    assert result.rpm_commands[2] == pytest.approx(fraction * max_rpm)


@pytest.mark.integration
@pytest.mark.parametrize("power", [float("nan"), float("inf"), "100", None])
def test_invalid_motor_power(no_noise: dict[str, float], power: float):
    worker = make_worker(no_noise)
    api = ConsoleApi(worker)
    api.set_motor_power(0, power)
    result = worker.tick()
    assert result.overrides == [None] * 4


@pytest.mark.integration
def test_clear_motors(no_noise: dict[str, float]):
    worker = make_worker(no_noise)
    api = ConsoleApi(worker)
    for i in range(4):
        api.set_motor_power(i, 50)
    api.clear_motor(1)
    result = worker.tick()
    assert result.overrides[1] is None
    assert all(o is not None for i, o in enumerate(result.overrides) if i != 1)
    api.clear_all_motors()
    result = worker.tick()
    assert result.overrides == [None] * 4


@pytest.mark.integration
def test_runner(no_noise: dict[str, float]):
    worker = make_worker(no_noise, session_duration=0.06)
    runner = AutopilotRunner(worker, Spin)
    assert not runner.poll(), "Snapshots published before subscribing are not delivered"
    for _ in range(20):
        worker.tick()
        assert runner.poll()
    assert runner.enabled
    assert runner.autopilot.updates == 20
    assert runner.autopilot.resets == 1
    expected = 100 / MAX_MOTOR_POWER * worker.sim.airframe.max_rpm
    assert worker.sim.overrides[0] == pytest.approx(expected)


@pytest.mark.integration
def test_runner_isolates_faults(no_noise: dict[str, float]):
    worker = make_worker(no_noise)
    runner = AutopilotRunner(worker, Crash)
    for _ in range(10):
        worker.tick()
        runner.poll()
    assert not runner.enabled
    assert runner.last_error == "RuntimeError: boom"
    result = worker.tick()
    assert result.overrides == [None] * 4, "Overrides of a failed autopilot have to be cleared"
    runner.poll()
    assert worker.tick().overrides == [None] * 4, "A disabled autopilot must not run"
    worker.send(SetSetpoint(throttle=0.5))
    for _ in range(10):
        assert worker.tick() is not None, "The simulation has to keep running"


@pytest.mark.integration
def test_runner_broken_init(no_noise: dict[str, float]):
    worker = make_worker(no_noise)
    runner = AutopilotRunner(worker, BrokenInit)
    assert not runner.enabled
    assert runner.autopilot is None
    assert runner.last_error == "ValueError: bad autopilot"
    worker.tick()
    runner.poll()
    assert worker.tick() is not None


@pytest.mark.integration
def test_runner_thread(no_noise: dict[str, float]):
    worker = make_worker(no_noise)
    runner = AutopilotRunner(worker, Spin)
    runner.start()
    try:
        worker.start()
        for _ in range(200):
            if runner.autopilot.updates > 5:
                break
            time.sleep(0.01)
        assert runner.autopilot.updates > 5
    finally:
        worker.stop(timeout=2.0)
        runner.stop(timeout=2.0)


@pytest.mark.integration
def test_altitude_hold(no_noise: dict[str, float]):
    worker = make_worker(no_noise)
    runner = AutopilotRunner(worker, load_autopilot(ROOT / "examples/hover_autopilot.py"))
    altitudes = []
    for _ in range(1200):
        worker.tick()
        runner.poll()
        altitudes.append(worker.sim.state.pos[2])
    assert runner.enabled, f"Autopilot failed: {runner.last_error}"
    assert max(altitudes) > 0.5, "The autopilot has to take off"
    assert all(o is not None for o in worker.sim.overrides)
