"""Example autopilot that holds a fixed altitude.

All four motors are driven with the same power, so the attitude controller is bypassed entirely.
The power is the hover power plus a PD correction on the altimeter reading. The climb rate is
low-pass filtered to keep the altimeter noise out of the motor commands.

Run as:

    $ python scripts/sim.py --autopilot examples/hover_autopilot.py --duration 20
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from quadsim.console import MAX_MOTOR_POWER
from quadsim.control import Autopilot

if TYPE_CHECKING:
    from quadsim.console import ConsoleApi


class AltitudeHold(Autopilot):
    """Climb to and hold a target altitude with equal power on all motors."""

    def __init__(
        self,
        api: ConsoleApi,
        target: float = 1.5,
        kp: float = 8.0,
        kd: float = 10.0,
        smoothing: float = 0.8,
    ):
        super().__init__(api)
        self.target = target
        self.kp, self.kd = kp, kd
        self.smoothing = smoothing
        self.climb_rate = 0.0
        self._prev_altitude: float | None = None
        self._prev_time: float | None = None

    def update(self, api: ConsoleApi):
        altitude, timeline = api.altitude(), api.timeline()
        snapshot = api.snapshot
        if altitude is None or timeline is None or snapshot is None:
            return
        t = timeline["absolute"]
        if self._prev_altitude is not None and t > self._prev_time:
            raw_rate = (altitude - self._prev_altitude) / (t - self._prev_time)
            self.climb_rate = self.smoothing * self.climb_rate + (1 - self.smoothing) * raw_rate
        self._prev_altitude, self._prev_time = altitude, t

        airframe = snapshot.airframe
        hover_power = airframe["hover_rpm"] / airframe["max_rpm"] * MAX_MOTOR_POWER
        power = hover_power + self.kp * (self.target - altitude) - self.kd * self.climb_rate
        for i in range(4):
            api.set_motor_power(i, power)

    def on_session_reset(self):
        self.climb_rate = 0.0
        self._prev_altitude, self._prev_time = None, None
