"""EV Dynamic Charging.

Closed-loop controller that sets an EV charger's current so it tracks the
available household power: no grid overdraw, solar surplus first, and
optional coordination with a home battery.
"""

from __future__ import annotations

from .config import ControllerConfig, load_config
from .coordinator import ChargerBackend, EvDynamicChargingCoordinator, ReadingsSource
from .models import ChargerReadings, ControlState

__version__ = "1.0.0"

__all__ = [
    "ChargerBackend",
    "ChargerReadings",
    "ControlState",
    "ControllerConfig",
    "EvDynamicChargingCoordinator",
    "ReadingsSource",
    "load_config",
]
