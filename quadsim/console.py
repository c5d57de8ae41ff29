"""Scripting console surface and autopilot host.

:class:`ConsoleApi` is the narrow interface through which user scripts interact with the
simulation. Reads are served from a snapshot, writes are sent to the worker as commands. Scripts
therefore never see live simulator state and never mutate it directly.

:class:`AutopilotRunner` calls an :class:`~quadsim.control.autopilot.Autopilot` on every published
snapshot. A failing autopilot is disabled and its motor overrides are cleared, while the simulation
keeps running unaffected.
"""

from __future__ import annotations

import logging
import math
import threading
from queue import Empty
from typing import TYPE_CHECKING, Any

from quadsim.messages import SetRotorOverrides

if TYPE_CHECKING:
    from quadsim.control.autopilot import Autopilot
    from quadsim.messages import Snapshot
    from quadsim.worker import SimWorker

logger = logging.getLogger(__name__)

MAX_MOTOR_POWER = 255  # Full scale of the analog motor power command


class ConsoleApi:
    """Sensor and actuator surface for user scripts."""

    def __init__(self, worker: SimWorker):
        """Create the console surface.

        Args:
            worker: The simulation worker to read snapshots from and send commands to.
        """
        self.worker = worker
        self._snapshot: Snapshot | None = None

    @property
    def snapshot(self) -> Snapshot | None:
        """The snapshot the console currently reads from."""
        if self._snapshot is not None:
            return self._snapshot
        return self.worker.latest_snapshot()

    def use(self, snapshot: Snapshot | None):
        """Pin the snapshot to read from. None reads the latest published snapshot on every call."""
        self._snapshot = snapshot

    def _reading(self, key: str) -> Any:
        snapshot = self.snapshot
        if snapshot is None or snapshot.reading is None:
            return None
        return snapshot.reading[key]

    def absolute_altitude(self) -> float | None:
        """True altitude above ground, clamped to the field height, in m."""
        return self._reading("abs_altitude")

    def altitude(self) -> float | None:
        """Noisy altimeter reading in m."""
        return self._reading("altitude")

    def range_finder(self) -> float | None:
        """Noisy slant range of the downward range finder in m. None if it misses the ground."""
        return self._reading("tof")

    def true_altitude(self) -> float | None:
        """Unclamped true altitude of the vehicle in m."""
        if (snapshot := self.snapshot) is None:
            return None
        return snapshot.state["pos"][2]

    def estimated_attitude(self) -> dict[str, float] | None:
        """Estimated roll, pitch and yaw in radians."""
        if (snapshot := self.snapshot) is None or snapshot.estimate is None:
            return None
        return {k: snapshot.estimate[k] for k in ("roll", "pitch", "yaw")}

    def attitude(self) -> dict[str, float] | None:
        """True roll, pitch and yaw in radians."""
        if (snapshot := self.snapshot) is None:
            return None
        return dict(snapshot.state["euler"])

    def imu(self) -> dict[str, list[float]] | None:
        """Raw gyroscope (rad/s) and accelerometer (m/s^2) readings in the body frame."""
        if (snapshot := self.snapshot) is None or snapshot.reading is None:
            return None
        return {"gyro": list(snapshot.reading["gyro"]), "acc": list(snapshot.reading["acc"])}

    def magnetometer(self) -> list[float] | None:
        """Raw magnetometer reading in the body frame."""
        mag = self._reading("mag")
        return None if mag is None else list(mag)

    def timeline(self) -> dict[str, float] | None:
        """Session time, session duration, session id and absolute time."""
        if (snapshot := self.snapshot) is None:
            return None
        return dict(snapshot.timeline)

    def set_motor_power(self, index: int, power: float):
        """Drive a motor with a fixed power, bypassing the attitude controller.

        Args:
            index: The rotor index.
            power: Power on the analog scale [0, 255], mapped linearly to [0, max RPM]. Values
                outside the scale are clamped.
        """
        snapshot = self.snapshot
        if snapshot is None:
            logger.warning("Dropping motor power command, the simulation is not initialized")
            return
        valid = isinstance(power, (int, float)) and not isinstance(power, bool)
        if not valid or not math.isfinite(power):
            logger.warning(f"Dropping invalid motor power {power!r}")
            return
        power = min(max(float(power), 0.0), MAX_MOTOR_POWER)
        rpm = power / MAX_MOTOR_POWER * snapshot.airframe["max_rpm"]
        self.worker.send(SetRotorOverrides({index: rpm}))

    def clear_motor(self, index: int):
        """Hand a motor back to the attitude controller."""
        self.worker.send(SetRotorOverrides({index: None}))

    def clear_all_motors(self):
        """Hand all motors back to the attitude controller."""
        self.worker.send(SetRotorOverrides(None, replace_all=True))


class AutopilotRunner:
    """Fault-isolating host that runs an autopilot on every published snapshot."""

    def __init__(self, worker: SimWorker, autopilot_cls: type[Autopilot]):
        """Create the autopilot and subscribe to the worker's snapshots.

        Args:
            worker: The simulation worker.
            autopilot_cls: The autopilot class. Instantiated with the console surface.
        """
        self.api = ConsoleApi(worker)
        self.snapshots = worker.subscribe()
        self.enabled = True
        self.last_error: str | None = None
        self.autopilot: Autopilot | None = None
        self._shutdown = threading.Event()
        self._thread: threading.Thread | None = None
        try:
            self.autopilot = autopilot_cls(self.api)
        except Exception as e:
            self._disable(e)

    def process(self, snapshot: Snapshot):
        """Run the autopilot on a snapshot.

        Args:
            snapshot: The snapshot the autopilot reads from.
        """
        if not self.enabled or self.autopilot is None:
            return
        self.api.use(snapshot)
        if snapshot.session_reset:
            self._guarded(self.autopilot.on_session_reset)
        if self.enabled:
            self._guarded(lambda: self.autopilot.update(self.api))

    def poll(self) -> bool:
        """Process the pending snapshot, if any, without blocking.

        Returns:
            True if a snapshot was processed.
        """
        try:
            snapshot = self.snapshots.get_nowait()
        except Empty:
            return False
        self.process(snapshot)
        return True

    def start(self):
        """Run the autopilot on a background thread until :meth:`stop` is called."""
        self._shutdown.clear()
        self._thread = threading.Thread(target=self._run, name="quadsim-autopilot", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None):
        """Stop the background thread."""
        self._shutdown.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _run(self):
        while not self._shutdown.is_set():
            try:
                snapshot = self.snapshots.get(timeout=0.1)
            except Empty:
                continue
            self.process(snapshot)

    def _guarded(self, fn):
        """Call into user code. Any exception disables the autopilot and clears its overrides."""
        try:
            fn()
        except Exception as e:
            self._disable(e)

    def _disable(self, error: Exception):
        logger.exception("Autopilot failed and was disabled")
        self.last_error = f"{type(error).__name__}: {error}"
        self.enabled = False
        self.api.clear_all_motors()
