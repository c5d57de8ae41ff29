from pathlib import Path

from pyinstrument import Profiler

from quadsim.sim import Simulator
from quadsim.utils import load_config


def main():
    config = load_config(Path(__file__).parents[1] / "config/default.toml")
    sim = Simulator(
        dt=config.sim.dt,
        pid=config.sim.pid.to_dict(),
        filter_alpha=config.sim.filter_alpha,
        session_duration=config.sim.session_duration,
        sensors=config.sensors.to_dict(),
        seed=config.sim.seed,
    )
    sim.set_setpoint(roll=0.1, throttle=sim.hover_throttle)
    sim.step()

    profiler = Profiler()
    profiler.start()

    for i in range(10_000):
        sim.step()
        if i % 3 == 0:
            sim.snapshot()

    profiler.stop()
    profiler.print()
    profiler.open_in_browser()


if __name__ == "__main__":
    main()
