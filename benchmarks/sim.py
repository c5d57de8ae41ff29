from __future__ import annotations

import timeit
from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import NDArray

load_config_code = f"""
from pathlib import Path

from quadsim.utils import load_config

config = load_config(Path('{Path(__file__).parents[1] / "config/default.toml"}'))
"""

sim_setup_code = """
from quadsim.sim import Simulator

sim = Simulator(
    dt=config.sim.dt,
    pid=config.sim.pid.to_dict(),
    filter_alpha=config.sim.filter_alpha,
    session_duration=config.sim.session_duration,
    sensors=config.sensors.to_dict(),
    seed=config.sim.seed,
)
sim.set_setpoint(throttle=sim.hover_throttle)
sim.step()
"""

worker_setup_code = """
from quadsim.messages import Init
from quadsim.worker import SimWorker

worker = SimWorker(publish_every={publish_every})
worker.send(Init(dt=config.sim.dt, sensors=config.sensors.to_dict(), seed=config.sim.seed))
worker.tick()
"""


def time_sim_reset(n_tests: int = 10, number: int = 1) -> NDArray[np.floating]:
    setup = load_config_code + sim_setup_code
    stmt = """sim.reset()"""
    return np.array(timeit.repeat(stmt=stmt, setup=setup, number=number, repeat=n_tests))


def time_sim_step(n_tests: int = 10, number: int = 1) -> NDArray[np.floating]:
    setup = load_config_code + sim_setup_code
    stmt = """sim.step()"""
    return np.array(timeit.repeat(stmt=stmt, setup=setup, number=number, repeat=n_tests))


def time_worker_tick(
    n_tests: int = 10, number: int = 1, publish_every: int = 1
) -> NDArray[np.floating]:
    setup = load_config_code + worker_setup_code.format(publish_every=publish_every)
    stmt = """worker.tick()"""
    return np.array(timeit.repeat(stmt=stmt, setup=setup, number=number, repeat=n_tests))
