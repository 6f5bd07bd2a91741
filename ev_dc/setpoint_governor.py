"""Setpoint governor: clamp and hysteresis between target and charger.

The governor owns ``last_applied_a``, the single source of truth for every
hysteresis and sync-guard comparison.  Nothing else writes it.
"""

from __future__ import annotations

from typing import Any, Optional

from .const import HYSTERESIS_A, MAX_CHARGER_CURRENT, MIN_CHARGER_CURRENT
from .power_estimator import read_float


def clamp_setpoint(current_a: float) -> float:
    """Clamp *current_a* to the ``[0, 31]`` A output range."""
    if current_a < MIN_CHARGER_CURRENT:
        return MIN_CHARGER_CURRENT
    if current_a > MAX_CHARGER_CURRENT:
        return MAX_CHARGER_CURRENT
    return current_a


def exceeds_hysteresis(last_applied_a: float, target_a: float) -> bool:
    """Return True when the change is large enough to be written (> 0.5 A)."""
    return abs(last_applied_a - target_a) > HYSTERESIS_A


def compute_offered_power_w(current_a: float, voltage_v: Optional[float]) -> float:
    """Return the offered charging power, 0 W when the voltage is unknown."""
    if voltage_v is None:
        return 0.0
    return current_a * voltage_v


class SetpointGovernor:
    """Convert target currents into applied setpoints, suppressing churn."""

    def __init__(self, initial_a: float = 0.0) -> None:
        self.last_applied_a: float = clamp_setpoint(initial_a)

    def seed(self, offered_current_a: Any) -> float:
        """Initialise from the charger-reported offered current (start-up only)."""
        self.last_applied_a = clamp_setpoint(read_float(offered_current_a))
        return self.last_applied_a

    def apply(self, target_a: float) -> tuple[float, bool]:
        """Apply *target_a* and report whether the charger must be written.

        The target is clamped to ``[0, 31]`` A first.  Only a change of more
        than 0.5 A from the last applied current updates it; smaller changes
        keep the previous setpoint and produce no write.

        Returns:
            ``(applied_a, changed)`` where *applied_a* is the setpoint now in
            force and *changed* tells the caller to write it out.
        """
        clamped_a = clamp_setpoint(target_a)
        if not exceeds_hysteresis(self.last_applied_a, clamped_a):
            return self.last_applied_a, False
        self.last_applied_a = clamped_a
        return clamped_a, True
