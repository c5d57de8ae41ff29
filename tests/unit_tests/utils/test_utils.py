import sys
from pathlib import Path

import pytest

from quadsim.control.autopilot import Autopilot
from quadsim.utils import load_autopilot, load_config

ROOT = Path(__file__).parents[3]


@pytest.mark.unit
def test_load_config():
    config = load_config(ROOT / "config/default.toml")
    assert config.sim.dt == 0.005
    assert set(config.sim.pid.keys()) == {"roll", "pitch", "yaw"}
    assert len(config.sensors.earth_mag_field) == 3


@pytest.mark.unit
def test_load_config_invalid(tmp_path: Path):
    with pytest.raises(AssertionError):
        load_config(tmp_path / "missing.toml")
    path = tmp_path / "config.yaml"
    path.write_text("sim: {}")
    with pytest.raises(AssertionError):
        load_config(path)


@pytest.mark.unit
def test_load_autopilot():
    autopilot_cls = load_autopilot(ROOT / "examples/hover_autopilot.py")
    assert issubclass(autopilot_cls, Autopilot), f"{autopilot_cls} is not an Autopilot"
    assert autopilot_cls.__name__ == "AltitudeHold"


@pytest.mark.unit
def test_load_autopilot_invalid(tmp_path: Path):
    with pytest.raises(AssertionError):
        load_autopilot(tmp_path / "missing.py")
    path = tmp_path / "empty.py"
    path.write_text("x = 1\n")
    with pytest.raises(AssertionError, match="No autopilot"):
        load_autopilot(path)
    path = tmp_path / "multiple.py"
    path.write_text(
        "from quadsim.control import Autopilot\n\n"
        "class A(Autopilot):\n    def update(self, api):\n        pass\n\n"
        "class B(Autopilot):\n    def update(self, api):\n        pass\n"
    )
    with pytest.raises(AssertionError, match="Multiple autopilots"):
        load_autopilot(path)


@pytest.mark.unit
def test_load_autopilot_separate_scripts(tmp_path: Path):
    classes = []
    for name in ("Climb", "Descend"):
        folder = tmp_path / name.lower()
        folder.mkdir()
        path = folder / "autopilot.py"
        path.write_text(
            "from quadsim.control import Autopilot\n\n"
            f"class {name}(Autopilot):\n    def update(self, api):\n        pass\n"
        )
        classes.append(load_autopilot(str(path)))
    assert [c.__name__ for c in classes] == ["Climb", "Descend"]
    assert classes[0].__module__ not in sys.modules
