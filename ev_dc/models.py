"""Data containers passed between the controller components."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class ChargerReadings:
    """One raw read of every input the controller consumes.

    Values come straight from the external collaborator and may be ``None``
    or unparsable; the power estimator and the coordinator convert them with
    the "missing value is zero" rule.  Units: kW for the grid meter, W for
    battery power and power setpoints, V for voltage, A for charger currents,
    percent for state of charge.
    """

    consumption_kw: Any = None
    injection_kw: Any = None
    voltage_v: Any = None
    charger_status: Optional[str] = None
    charger_current_offered_a: Any = None
    charger_current_import_a: Any = None
    net_max_power_w: Any = None
    static_power_w: Any = None
    charger_enabled: Any = None
    dynamic_charging: Any = None
    battery_charging_w: Any = None
    battery_discharging_w: Any = None
    battery_soc: Any = None


@dataclass(frozen=True)
class ControlState:
    """Normalised per-tick snapshot consumed by the budget policy.

    ``voltage_v`` is ``None`` when the line voltage is absent or not
    positive; every other numeric field has already been defaulted to 0.0.
    """

    charger_enabled: bool
    dynamic_charging: bool
    charging: bool
    voltage_v: Optional[float]
    average_grid_power_w: float
    battery_power_w: float
    battery_soc: float
    net_max_power_w: float
    static_power_w: float
    charger_current_import_a: float
    last_applied_a: float
