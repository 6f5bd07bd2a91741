"""Net grid power and battery power estimation.

Raw readings arrive from an external collaborator and may be missing or
unparsable.  Every conversion here follows the same contract: an absent or
invalid value is read as ``0.0`` rather than raising, so a faulty sensor
degrades the controller towards "no budget" instead of stalling the loop.

Functions:
    read_float               : fail-to-zero numeric conversion
    compute_net_power_w      : (consumption - injection) kW → W, positive = import
    compute_battery_power_w  : signed battery power, positive = charging

Classes:
    RollingPowerWindow       : fixed three-slot circular buffer of net power
    PowerEstimator           : stateful estimator owned by the coordinator
"""

from __future__ import annotations

import math
from typing import Any, Optional

from .const import WINDOW_SIZE


def read_float(value: Any) -> float:
    """Return *value* as a finite float, or ``0.0`` when it cannot be read.

    ``None``, empty strings, ``"unavailable"``/``"unknown"`` states,
    non-numeric text, NaN and infinities all map to ``0.0``.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        result = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(result):
        return 0.0
    return result


def read_voltage(value: Any) -> Optional[float]:
    """Return the line voltage, or ``None`` when no computation is possible.

    A voltage of zero is treated exactly like an absent one.
    """
    voltage_v = read_float(value)
    return voltage_v if voltage_v > 0 else None


def compute_net_power_w(consumption_kw: Any, injection_kw: Any) -> float:
    """Return net grid power in Watts from the meter's kW readings.

    Positive means importing from the grid, negative means exporting.  A
    missing consumption or injection reading contributes ``0.0``.
    """
    return (read_float(consumption_kw) - read_float(injection_kw)) * 1000


def compute_battery_power_w(charging_w: Any, discharging_w: Any) -> float:
    """Return signed home-battery power: positive charging, negative discharging."""
    return read_float(charging_w) - read_float(discharging_w)


class RollingPowerWindow:
    """Circular buffer holding the last three net-power samples.

    The average is always the mean of all three slots.  With
    *seed_with_first_sample* enabled (the default) the first sample is copied
    into every slot, so the average is not dragged towards zero during the
    first two ticks.  Disabling it reproduces the zero-filled warm-up.
    """

    def __init__(self, seed_with_first_sample: bool = True) -> None:
        self._slots: list[float] = [0.0] * WINDOW_SIZE
        self._index = 0
        self._filled = False
        self._seed = seed_with_first_sample
        self.average: float = 0.0

    @property
    def samples(self) -> tuple[float, ...]:
        """Return the slot contents in storage order."""
        return tuple(self._slots)

    def push(self, value_w: float) -> float:
        """Store *value_w* at the current index and return the new average."""
        if self._seed and not self._filled:
            self._slots = [value_w] * WINDOW_SIZE
        else:
            self._slots[self._index] = value_w
        self._filled = True
        self._index = (self._index + 1) % WINDOW_SIZE
        self.average = sum(self._slots) / WINDOW_SIZE
        return self.average


class PowerEstimator:
    """Track net grid power, its rolling average, and battery power."""

    def __init__(self, seed_with_first_sample: bool = True) -> None:
        self.window = RollingPowerWindow(seed_with_first_sample)
        self.net_grid_power_w: float = 0.0
        self.battery_power_w: float = 0.0

    @property
    def average_grid_power_w(self) -> float:
        """Return the three-sample average of net grid power in Watts."""
        return self.window.average

    def update_grid_power(self, consumption_kw: Any, injection_kw: Any) -> float:
        """Compute net grid power, push it into the window, and return it."""
        self.net_grid_power_w = compute_net_power_w(consumption_kw, injection_kw)
        self.window.push(self.net_grid_power_w)
        return self.net_grid_power_w

    def update_battery_power(self, charging_w: Any, discharging_w: Any) -> float:
        """Compute and return the signed home-battery power."""
        self.battery_power_w = compute_battery_power_w(charging_w, discharging_w)
        return self.battery_power_w
