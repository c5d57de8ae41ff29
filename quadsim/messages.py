"""Messages exchanged with the simulation worker.

Commands flow from any thread into the worker's command queue and are applied at the start of the
next simulation tick. Snapshots flow back out. Both are plain, immutable dataclasses so they can be
passed between threads without further synchronization.

Angles are given in radians, rotor speeds in RPM.
"""

from __future__ import annotations

import copy
from dataclasses import asdict, dataclass, field
from typing import Any, Mapping, Sequence, Union


@dataclass(frozen=True)
class Init:
    """Create (or recreate) the simulator and start stepping it."""

    dt: float = 0.005
    pid: Mapping[str, Mapping[str, float]] | None = None
    """Per-axis gain overrides, e.g. ``{"roll": {"kp": 3.0}}``."""
    filter_alpha: float = 0.05
    session_duration: float = 30.0
    publish_rate: float = 60.0
    """Snapshots published per second of simulated time."""
    sensors: Mapping[str, Any] | None = None
    seed: int | None = None


@dataclass(frozen=True)
class SetSetpoint:
    """Update the attitude and throttle setpoint. Fields left at None keep their value."""

    roll: float | None = None
    pitch: float | None = None
    yaw: float | None = None
    throttle: float | None = None


@dataclass(frozen=True)
class UpdatePid:
    """Change the gains of one attitude axis without resetting the controller memory."""

    axis: str
    gains: Mapping[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class SetRotorOverrides:
    """Replace the controller's command of individual rotors by a fixed speed.

    ``overrides`` maps rotor indices to RPM values, or lists one value per rotor. None clears the
    override of a rotor.
    """

    overrides: Mapping[int, float | None] | Sequence[float | None] | None = None
    replace_all: bool = False
    """Clear all overrides before applying the new ones."""


@dataclass(frozen=True)
class Reset:
    """Reset the vehicle, estimator and controllers. The session timeline keeps running."""


@dataclass(frozen=True)
class Pause:
    """Stop stepping the simulation."""


@dataclass(frozen=True)
class Resume:
    """Continue stepping the simulation."""


@dataclass(frozen=True)
class RequestSnapshot:
    """Publish a snapshot immediately, independent of the publish interval."""


Command = Union[
    Init, SetSetpoint, UpdatePid, SetRotorOverrides, Reset, Pause, Resume, RequestSnapshot
]


@dataclass(frozen=True)
class Snapshot:
    """Complete, self-contained view of the simulation after a step.

    All containers are plain Python lists and dicts owned by the snapshot.
    """

    dt: float
    mass: float
    gravity: float
    hover_throttle: float
    setpoint: dict[str, float]
    timeline: dict[str, float]
    """``time``, ``duration``, ``session_id`` and ``absolute``."""
    pid: dict[str, dict[str, float]]
    state: dict[str, Any]
    """True vehicle state: ``pos``, ``vel``, ``ang_vel``, ``quat``, ``euler``, ``euler_deg``."""
    motors: dict[str, list]
    """Per-rotor ``rpm``, ``command_rpm``, ``thrust`` and ``overrides``."""
    airframe: dict[str, Any]
    estimate: dict[str, Any] | None = None
    """Estimated attitude: ``roll``, ``pitch``, ``yaw`` and ``quat``. None before the first step."""
    reading: dict[str, Any] | None = None
    """Latest sensor reading. None before the first step."""
    actuators: dict[str, list] | None = None
    """Mixer ``thrusts`` in N, ``rpm_commands`` and body ``torque`` demand of the last step."""
    errors: dict[str, float] | None = None
    """Wrapped attitude errors per axis of the last step in radians."""
    session_reset: bool = False
    """True if the step that produced this snapshot crossed a session boundary."""

    def to_dict(self) -> dict[str, Any]:
        """Convert the snapshot into a JSON-serializable dictionary."""
        return asdict(self)

    def copy(self) -> Snapshot:
        """Create a deep copy of the snapshot."""
        return copy.deepcopy(self)
