"""Quadrotor flight simulation.

This module provides the simulated vehicle and its closed control loop:

* :mod:`~quadsim.sim.airframe`: Physical parameters of the airframe, derived from the airframe
  document in `assets/airframe.toml`.
* :mod:`~quadsim.sim.propulsion`: Propeller thrust and torque from lookup tables of the thrust and
  torque coefficients over the advance ratio.
* :mod:`~quadsim.sim.physics`: Rigid body dynamics with motor lag, drag and ground contact.
* :mod:`~quadsim.sim.sensors`: Noisy gyroscope, accelerometer, magnetometer, altimeter and range
  finder.
* :mod:`~quadsim.sim.sim`: The :class:`~quadsim.sim.sim.Simulator` tying the vehicle, the onboard
  estimator and the attitude controllers together in a fixed-step loop with timed sessions.

The simulation is intentionally simple. It models the effects that matter for an interactive
attitude control sandbox, not exact aerodynamics.
"""

from quadsim.sim.sim import Setpoint, Simulator, StepResult, Timeline

__all__ = ["Setpoint", "Simulator", "StepResult", "Timeline"]
