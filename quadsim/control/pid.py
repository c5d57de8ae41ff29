"""PID controllers for the attitude axes.

Gains and controller memory are separate immutable records. :func:`pid_update` is a pure function
that computes the controller output and the next state, which keeps the controllers trivially
resettable and easy to test.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, replace

AXES = ("roll", "pitch", "yaw")


@dataclass(frozen=True)
class PIDGains:
    """Gains and limits of a PID controller."""

    kp: float = 0.0
    ki: float = 0.0
    kd: float = 0.0
    derivative_alpha: float = 0.8
    """Smoothing factor of the low-pass filtered derivative. 0 disables the filter."""
    integral_limit: float = 10.0
    output_limit: float = 10.0

    def to_dict(self) -> dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class PIDState:
    """Memory of a PID controller. ``PIDState()`` is the reset state."""

    integral: float = 0.0
    prev_error: float = 0.0
    derivative: float = 0.0
    last_output: float = 0.0


DEFAULT_GAINS = {
    "roll": PIDGains(kp=4.0, ki=0.5, kd=1.5, output_limit=0.8),
    "pitch": PIDGains(kp=4.0, ki=0.5, kd=1.5, output_limit=0.8),
    "yaw": PIDGains(kp=2.0, ki=0.3, kd=0.8, output_limit=0.4),
}


def _clip(value: float, limit: float) -> float:
    return min(max(value, -limit), limit)


def pid_update(
    state: PIDState, gains: PIDGains, error: float, dt: float
) -> tuple[PIDState, float]:
    """Run one PID update.

    Args:
        state: The controller memory.
        gains: The controller gains.
        error: The control error (setpoint - measurement).
        dt: The time since the last update in seconds.

    Returns:
        The next controller state and the clamped output.
    """
    integral = _clip(state.integral + error * dt * gains.ki, gains.integral_limit)
    raw_derivative = (error - state.prev_error) / max(dt, 1e-5)
    alpha = gains.derivative_alpha
    derivative = alpha * state.derivative + (1 - alpha) * raw_derivative
    output = _clip(gains.kp * error + integral + gains.kd * derivative, gains.output_limit)
    return PIDState(integral, error, derivative, output), output


def with_gains(gains: PIDGains, **changes: float) -> PIDGains:
    """Create a copy of the gains with some values replaced.

    Args:
        gains: The current gains.
        **changes: New values for any of the :class:`PIDGains` fields.

    Returns:
        The updated gains.

    Raises:
        ValueError: A value is not a finite number, a limit is negative or the derivative
            smoothing factor lies outside of [0, 1].
        TypeError: An unknown gain name was given.
    """
    for name, value in changes.items():
        valid = isinstance(value, (int, float)) and not isinstance(value, bool)
        if not valid or not math.isfinite(value):
            raise ValueError(f"Gain '{name}' must be a finite number, got {value!r}")
        if name in ("integral_limit", "output_limit") and value < 0:
            raise ValueError(f"Limit '{name}' must not be negative, got {value!r}")
        if name == "derivative_alpha" and not 0 <= value <= 1:
            raise ValueError(f"Derivative smoothing must lie in [0, 1], got {value!r}")
    return replace(gains, **{k: float(v) for k, v in changes.items()})
