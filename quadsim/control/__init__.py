"""Onboard estimation and control of the quadrotor.

The modules mirror the onboard processing chain of the vehicle:

* :mod:`~quadsim.control.estimator`: Complementary attitude filter fusing gyroscope and
  accelerometer readings.
* :mod:`~quadsim.control.pid`: PID controllers for the roll, pitch and yaw axes.
* :mod:`~quadsim.control.mixer`: Distribution of torque and collective thrust onto the rotors.
* :class:`~quadsim.control.autopilot.Autopilot`: The base class for user autopilot scripts that
  fly the vehicle through the scripting console surface.
"""

from quadsim.control.autopilot import Autopilot

__all__ = ["Autopilot"]
