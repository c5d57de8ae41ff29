"""Fly the simulated quadrotor headless.

Run as:

    $ python scripts/sim.py --config default.toml --duration 10 --roll 0.1

The vehicle holds the given attitude setpoint (radians) at the given throttle. If no throttle is
set, the hover throttle is used. An autopilot script can take over individual motors:

    $ python scripts/sim.py --autopilot examples/hover_autopilot.py

By default, the simulation is stepped as fast as possible. Use ``--realtime`` to run it on the
background worker thread at wall clock speed instead.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING

import fire

from quadsim.console import AutopilotRunner
from quadsim.messages import Init, Pause, Resume, SetSetpoint
from quadsim.utils import load_autopilot, load_config
from quadsim.worker import SimWorker

if TYPE_CHECKING:
    from quadsim.messages import Snapshot

logger = logging.getLogger(__name__)

ROOT = Path(__file__).parents[1]


def simulate(
    config: str = "default.toml",
    duration: float = 5.0,
    throttle: float | None = None,
    roll: float = 0.0,
    pitch: float = 0.0,
    yaw: float = 0.0,
    autopilot: str | None = None,
    realtime: bool = False,
):
    """Run the simulation for a fixed time and log the vehicle state.

    Args:
        config: The path to the configuration file. Assumes the file is in `config/`.
        duration: Simulated time in seconds.
        throttle: Normalized collective thrust in [0, 1]. Defaults to the hover throttle.
        roll: Roll setpoint in radians.
        pitch: Pitch setpoint in radians.
        yaw: Yaw setpoint in radians.
        autopilot: Path to an autopilot script, relative to the repository root. If None, the
            autopilot specified in the config file is used, if any.
        realtime: Step the simulation on the worker thread at wall clock speed.
    """
    config = load_config(ROOT / "config" / config)
    sim_config = config.sim
    worker = SimWorker()
    worker.send(
        Init(
            dt=sim_config.dt,
            pid=sim_config.pid.to_dict(),
            filter_alpha=sim_config.filter_alpha,
            session_duration=sim_config.session_duration,
            publish_rate=sim_config.publish_rate,
            sensors=config.sensors.to_dict(),
            seed=sim_config.get("seed"),
        )
    )
    worker.send(Pause())
    worker.tick()  # Creates the simulator without stepping it
    throttle = worker.sim.hover_throttle if throttle is None else throttle
    worker.send(SetSetpoint(roll=roll, pitch=pitch, yaw=yaw, throttle=throttle))
    worker.send(Resume())

    runner = None
    if autopilot_file := autopilot or config.get("autopilot", {}).get("file"):
        runner = AutopilotRunner(worker, load_autopilot(ROOT / autopilot_file))
    snapshots = worker.subscribe()

    n_steps = int(round(duration / sim_config.dt))
    if realtime:
        worker.start()
        if runner is not None:
            runner.start()
        end = time.perf_counter() + duration
        while time.perf_counter() < end:
            time.sleep(0.5)
            log_snapshot(worker.latest_snapshot())
        worker.stop()
        if runner is not None:
            runner.stop()
    else:
        for _ in range(n_steps):
            worker.tick()
            if runner is not None:
                runner.poll()
            if not snapshots.empty():
                log_snapshot(snapshots.get_nowait())
    log_snapshot(worker.latest_snapshot())
    if runner is not None and runner.last_error is not None:
        logger.error(f"Autopilot disabled: {runner.last_error}")


def log_snapshot(snapshot: Snapshot | None):
    """Log a one-line summary of a snapshot."""
    if snapshot is None:
        return
    tl, state = snapshot.timeline, snapshot.state
    euler = state["euler_deg"]
    logger.info(
        f"t={tl['absolute']:.2f}s session={tl['session_id']} z={state['pos'][2]:.3f}m "
        f"vz={state['vel'][2]:.3f}m/s rpy=({euler['roll']:.1f}, {euler['pitch']:.1f}, "
        f"{euler['yaw']:.1f})deg rpm={[round(r) for r in snapshot.motors['rpm']]}"
    )
    if snapshot.session_reset:
        logger.info(f"Session {tl['session_id']} started")


if __name__ == "__main__":
    logging.basicConfig()
    logging.getLogger("quadsim").setLevel(logging.INFO)
    logger.setLevel(logging.INFO)
    fire.Fire(simulate, serialize=lambda _: None)
