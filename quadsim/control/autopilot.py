"""Base class for autopilot scripts.

Autopilots are user scripts that fly the vehicle through the scripting console surface. They read
the latest sensor data and set the power of individual motors, bypassing the attitude controller
for those motors. Your autopilot must be the only subclass of :class:`Autopilot` in its file, so
that :func:`~quadsim.utils.load_autopilot` can determine which class to use.

Example:
    A minimal autopilot that spins all motors at a fixed power::

        class Spin(Autopilot):
            def update(self, api):
                for i in range(4):
                    api.set_motor_power(i, 120)

Note:
    Exceptions raised by an autopilot never reach the simulation. The host logs them, disables the
    autopilot and clears all motor overrides.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from quadsim.console import ConsoleApi


class Autopilot(ABC):
    """Base class for autopilot implementations."""

    def __init__(self, api: ConsoleApi):
        """Initialization of the autopilot.

        Use this method to initialize constants, counters, internal controllers, etc.

        Args:
            api: The scripting console surface. Provides read access to the latest snapshot.
        """

    @abstractmethod
    def update(self, api: ConsoleApi):
        """Run the autopilot on a new snapshot.

        Called once for every snapshot the simulation publishes.

        Args:
            api: The scripting console surface to read sensors and set motor powers.
        """

    def on_session_reset(self):
        """Callback function called once after each session reset.

        You can use this function to reset your autopilot's internal state.
        """
