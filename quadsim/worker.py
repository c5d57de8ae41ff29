"""Background simulation worker.

The :class:`SimWorker` owns the :class:`~quadsim.sim.sim.Simulator` and steps it on a dedicated
thread at a fixed period. Other threads never touch the simulator directly. They send commands from
:mod:`quadsim.messages` through a queue, which the worker applies at the start of its next tick, and
read snapshots that the worker publishes every ``publish_every`` steps.

Snapshots are published into a lock-protected latest-value cell and into the size-1 queues of all
subscribers. Subscriber queues always hold the most recent snapshot only, so slow consumers skip
snapshots instead of stalling the simulation.

For deterministic use without a thread, e.g. in tests and batch scripts, call :meth:`SimWorker.tick`
directly.
"""

from __future__ import annotations

import logging
import threading
import time
from queue import Empty, Full, Queue
from typing import TYPE_CHECKING

from quadsim.messages import (
    Init,
    Pause,
    RequestSnapshot,
    Reset,
    Resume,
    SetRotorOverrides,
    SetSetpoint,
    UpdatePid,
)
from quadsim.sim.sim import Simulator

if TYPE_CHECKING:
    from quadsim.messages import Command, Snapshot
    from quadsim.sim.airframe import AirframeParams
    from quadsim.sim.sim import StepResult

logger = logging.getLogger(__name__)

IDLE_PERIOD = 0.01  # Loop period while no simulator exists or the simulation is paused


class SimWorker:
    """Thread-safe owner of the simulation loop."""

    def __init__(self, airframe: AirframeParams | None = None, publish_every: int | None = None):
        """Create the worker. The simulator is created by the first :class:`Init` command.

        Args:
            airframe: The airframe parameters. Defaults to the packaged airframe.
            publish_every: Publish a snapshot every N steps. Overrides the publish rate of
                :class:`Init` if set.
        """
        assert publish_every is None or publish_every >= 1, "publish_every must be at least 1."
        self.airframe = airframe
        self.sim: Simulator | None = None
        self.paused = False
        self.publish_every = publish_every or 1
        self._publish_every_override = publish_every
        self._step_count = 0
        self._commands: Queue = Queue()
        self._subscribers: list[Queue] = []
        self._latest: Snapshot | None = None
        self._lock = threading.Lock()
        self._shutdown = threading.Event()
        self._thread: threading.Thread | None = None

    def send(self, command: Command):
        """Queue a command for the next tick. Never blocks.

        Args:
            command: One of the commands in :mod:`quadsim.messages`.
        """
        self._commands.put_nowait(command)

    def subscribe(self) -> Queue:
        """Create a queue that receives every published snapshot.

        The queue holds only the most recent snapshot. Older ones are discarded when a new snapshot
        is published before the previous one was consumed.
        """
        queue = Queue(1)
        with self._lock:
            self._subscribers.append(queue)
        return queue

    def latest_snapshot(self) -> Snapshot | None:
        """Return a copy of the latest published snapshot, or None if nothing was published yet."""
        with self._lock:
            return None if self._latest is None else self._latest.copy()

    def tick(self) -> StepResult | None:
        """Apply all pending commands and advance the simulation by one step.

        Returns:
            The result of the step, or None if no simulator exists or the simulation is paused.
        """
        self._apply_commands()
        if self.sim is None or self.paused:
            return None
        result = self.sim.step()
        self._step_count += 1
        if result.session_reset or self._step_count % self.publish_every == 0:
            self._publish()
        return result

    def start(self):
        """Start the simulation loop on a background thread."""
        assert self._thread is None or not self._thread.is_alive(), "Worker is already running."
        self._shutdown.clear()
        self._thread = threading.Thread(target=self._run, name="quadsim-worker", daemon=True)
        self._thread.start()
        logger.info("Simulation worker started")

    def stop(self, timeout: float | None = None):
        """Stop the simulation loop and wait for the thread to finish.

        Args:
            timeout: Maximum time to wait for the thread in seconds.
        """
        self._shutdown.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Simulation worker stopped")

    @property
    def running(self) -> bool:
        """True if the background thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    def _run(self):
        deadline = time.perf_counter()
        while not self._shutdown.is_set():
            self.tick()
            period = IDLE_PERIOD if self.sim is None or self.paused else self.sim.dt
            deadline += period
            delay = deadline - time.perf_counter()
            if delay > 0:
                self._shutdown.wait(delay)
            else:  # Behind schedule. Skip the missed deadlines instead of stepping in a burst
                deadline = time.perf_counter()

    def _apply_commands(self):
        while True:
            try:
                command = self._commands.get_nowait()
            except Empty:
                return
            try:
                self._apply(command)
            except Exception:  # A single command must never end the simulation loop
                logger.exception(f"Dropping command {command!r} after an error")

    def _apply(self, command: Command):
        if isinstance(command, Init):
            self._init(command)
            return
        if self.sim is None:
            logger.warning(f"Dropping {type(command).__name__} command before initialization")
            return
        logger.debug(f"Applying {command}")
        if isinstance(command, SetSetpoint):
            self.sim.set_setpoint(command.roll, command.pitch, command.yaw, command.throttle)
        elif isinstance(command, UpdatePid):
            self.sim.update_pid(command.axis, command.gains)
        elif isinstance(command, SetRotorOverrides):
            self.sim.set_rotor_overrides(command.overrides, replace_all=command.replace_all)
        elif isinstance(command, Reset):
            self.sim.reset()
        elif isinstance(command, Pause):
            self.paused = True
        elif isinstance(command, Resume):
            self.paused = False
        elif isinstance(command, RequestSnapshot):
            self._publish()
        else:
            logger.warning(f"Dropping unknown command {command!r}")

    def _init(self, command: Init):
        try:
            sim = Simulator(
                dt=command.dt,
                pid=command.pid,
                filter_alpha=command.filter_alpha,
                session_duration=command.session_duration,
                airframe=self.airframe,
                sensors=command.sensors,
                seed=command.seed,
            )
            assert command.publish_rate > 0, f"Invalid publish rate {command.publish_rate}"
        except (AssertionError, TypeError, ValueError) as e:
            logger.warning(f"Dropping invalid Init command: {e}")
            return
        self.sim = sim
        self.paused = False
        self._step_count = 0
        self.publish_every = self._publish_every_override or max(
            1, round(1 / (command.publish_rate * sim.dt))
        )
        logger.info(f"Simulation initialized, publishing every {self.publish_every} steps")
        self._publish()

    def _publish(self):
        snapshot = self.sim.snapshot()
        with self._lock:
            self._latest = snapshot
            subscribers = list(self._subscribers)
        for queue in subscribers:
            _clear_producing_queue(queue)
            try:
                queue.put_nowait(snapshot.copy())
            except Full:  # Only possible if another producer filled the queue in between
                logger.debug("Subscriber queue full, snapshot skipped")


def _clear_producing_queue(queue: Queue):
    """Clear the queue if it is not empty and this thread is the ONLY producer.

    Warning:
        Only works for queues with a length of 1.
    """
    if not queue.empty():  # There are remaining items in the queue
        try:
            queue.get_nowait()
        except Empty:  # The consumer could have taken the last item in between
            pass  # This is fine, the queue is empty
