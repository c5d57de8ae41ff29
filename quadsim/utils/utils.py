"""Utility module."""

from __future__ import annotations

import importlib.util
import inspect
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Type

import toml
from ml_collections import ConfigDict

from quadsim.control.autopilot import Autopilot

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)


def load_autopilot(path: Path) -> Type[Autopilot]:
    """Import a user script and return the single Autopilot subclass it defines.

    The script is executed as a private module named after the file. It is not registered in
    ``sys.modules``, so scripts loaded one after another never replace each other.

    Args:
        path: Path to the autopilot script.
    """
    path = Path(path)
    assert path.is_file(), f"Autopilot file not found: {path}"
    spec = importlib.util.spec_from_file_location(f"quadsim_autopilot_{path.stem}", path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    def defined_in_script(obj: Any) -> bool:
        return inspect.isclass(obj) and issubclass(obj, Autopilot) and obj.__module__ == spec.name

    autopilots = [c for _, c in inspect.getmembers(module, defined_in_script)]
    assert len(autopilots) > 0, f"No autopilot found in {path}. Have you subclassed Autopilot?"
    assert len(autopilots) == 1, f"Multiple autopilots found in {path}. Only one is allowed."
    logger.debug(f"Loaded autopilot {autopilots[0].__name__} from {path}")
    return autopilots[0]


def load_config(path: Path) -> ConfigDict:
    """Load a TOML configuration file into a ConfigDict.

    Args:
        path: Path to the config file.
    """
    path = Path(path)
    assert path.is_file(), f"Configuration file not found: {path}"
    assert path.suffix == ".toml", f"Configuration file has to be a TOML file: {path}"
    config = ConfigDict(toml.loads(path.read_text()))
    logger.debug(f"Loaded configuration from {path}")
    return config
