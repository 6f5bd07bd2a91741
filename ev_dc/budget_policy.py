"""Budget policy: turn the available power budget into a target current.

All functions are pure and work on a :class:`~ev_dc.models.ControlState`
snapshot.  Currents are in Amps, powers in Watts.  The returned target is not
yet clamped or filtered; the setpoint governor takes care of that.

Dispatch (see :func:`compute_target_current`):

- charger disabled                → 0 A
- dynamic charging off            → static setpoint / voltage, rounded
- dynamic, net max power > 0      → car-priority strategy
- dynamic, no net max power       → home-battery-priority strategy

An unknown voltage is a normal condition: the not-charging paths return 0 A
and the charging paths add no increment to the last applied current.
"""

from __future__ import annotations

import math
from typing import Optional

from .const import (
    ANTI_CHATTER_CURRENT_A,
    BATTERY_FULL_SOC,
    BATTERY_IDLE_BAND_W,
    BATTERY_SHALLOW_DISCHARGE_W,
    BATTERY_SHARE_FRACTION,
    BATTERY_STRONG_CHARGE_W,
    BATTERY_TARGET_CHARGE_W,
    DEFAULT_POWER_FACTOR,
    STRATEGY_CAR_PRIORITY,
    STRATEGY_DISABLED,
    STRATEGY_HOME_BATTERY_PRIORITY,
    STRATEGY_STATIC,
    SURPLUS_BAND_MAX_W,
    SURPLUS_BAND_MIN_W,
    SYNC_TOLERANCE_A,
)
from .models import ControlState


def select_strategy(state: ControlState) -> str:
    """Return the name of the strategy that handles *state* this tick."""
    if not state.charger_enabled:
        return STRATEGY_DISABLED
    if not state.dynamic_charging:
        return STRATEGY_STATIC
    if state.net_max_power_w > 0:
        return STRATEGY_CAR_PRIORITY
    return STRATEGY_HOME_BATTERY_PRIORITY


def compute_target_current(
    state: ControlState,
    power_factor: float = DEFAULT_POWER_FACTOR,
) -> float:
    """Compute the target charging current for this tick.

    Args:
        state:        Normalised snapshot of readings and controller state.
        power_factor: Multiplier scaling how aggressively a budget delta is
                      turned into a current change while charging.

    Returns:
        The unclamped target current in Amps.
    """
    strategy = select_strategy(state)
    if strategy == STRATEGY_DISABLED:
        return 0.0
    if strategy == STRATEGY_STATIC:
        return compute_static_current(state.static_power_w, state.voltage_v)
    if strategy == STRATEGY_CAR_PRIORITY:
        return compute_car_priority_current(state, power_factor)
    return compute_home_battery_priority_current(state, power_factor)


def compute_static_current(static_power_w: float, voltage_v: Optional[float]) -> float:
    """Return ``round(static_power_w / voltage_v)``, or 0 A without a voltage.

    Python's :func:`round` rounds halves to even, matching the charger
    setpoint convention used by the static mode.
    """
    if voltage_v is None:
        return 0.0
    return float(round(static_power_w / voltage_v))


def is_charger_syncing(charger_current_import_a: float, last_applied_a: float) -> bool:
    """Return True while the measured import has not settled to the last setpoint.

    The car and charger need a few seconds to follow a new setpoint.  While
    the measured import current differs from the last applied current by
    more than :data:`~ev_dc.const.SYNC_TOLERANCE_A`, recomputing from the
    power budget would fight the transient lag.
    """
    return abs(charger_current_import_a - last_applied_a) > SYNC_TOLERANCE_A


def _start_current(budget_w: float, voltage_v: Optional[float]) -> float:
    """Return the current to offer to a charger that is not charging yet."""
    if voltage_v is None:
        return 0.0
    return float(max(0, math.floor(budget_w / voltage_v)))


def _incremental_current(
    last_applied_a: float,
    delta_w: float,
    power_factor: float,
    voltage_v: Optional[float],
) -> float:
    """Return ``floor(last + delta * pf / V)``; no increment without a voltage."""
    increment_a = delta_w * power_factor / voltage_v if voltage_v is not None else 0.0
    return float(math.floor(last_applied_a + increment_a))


def compute_car_priority_current(state: ControlState, power_factor: float) -> float:
    """Car-priority strategy, used when a net max power budget is configured.

    The budget is the configured grid import cap minus the household draw
    excluding the home battery::

        budget_w = net_max_power_w - (average_grid_power_w - battery_power_w)

    A charger that is not charging is offered ``floor(budget / V)`` (never
    negative).  A charging one is moved incrementally from the last applied
    current, unless it is still syncing to it.
    """
    budget_w = state.net_max_power_w - (state.average_grid_power_w - state.battery_power_w)
    if not state.charging:
        return _start_current(budget_w, state.voltage_v)
    if is_charger_syncing(state.charger_current_import_a, state.last_applied_a):
        return state.last_applied_a
    return _incremental_current(state.last_applied_a, budget_w, power_factor, state.voltage_v)


def _battery_favourable(battery_power_w: float, battery_soc: float) -> bool:
    """Return True when the home battery can spare the marginal surplus.

    That is the case when it is charging hard (above 2000 W) or nearly full,
    and it is not discharging more than a shallow amount.
    """
    if battery_power_w <= -BATTERY_SHALLOW_DISCHARGE_W:
        return False
    return battery_power_w > BATTERY_STRONG_CHARGE_W or battery_soc > BATTERY_FULL_SOC


def compute_home_battery_priority_current(state: ControlState, power_factor: float) -> float:
    """Home-battery-priority strategy, used when no net max power is configured.

    Only solar surplus is used and the home battery gets first claim on it.

    Not charging:
        The budget is the exported power (``-average_grid_power_w``, never
        negative).  A narrow surplus of 500–1500 W is widened to 1500 W when
        the battery is absorbing the rest (charging above 2000 W) or almost
        full, so the car still gets a chance to start.

    Charging (and not syncing):
        - battery charging below 2500 W: pull current from the car to bring
          the battery back to its target rate (``battery - 2500``)
        - battery idle (within ±0.1 W): follow the grid; below 95 % state of
          charge also hand a quarter of the car's power to the battery
        - otherwise: follow the battery (grow while it charges hard, shrink
          while it discharges into the car)

        A negative delta is dropped near the charger's minimum current
        (below 7 A) while the battery is still favourable, to avoid
        oscillating around the 6 A start threshold.
    """
    voltage_v = state.voltage_v
    battery_w = state.battery_power_w

    if not state.charging:
        budget_w = max(0.0, -state.average_grid_power_w)
        if (
            SURPLUS_BAND_MIN_W <= budget_w <= SURPLUS_BAND_MAX_W
            and (battery_w > BATTERY_STRONG_CHARGE_W or state.battery_soc > BATTERY_FULL_SOC)
        ):
            budget_w = SURPLUS_BAND_MAX_W
        return _start_current(budget_w, voltage_v)

    last_a = state.last_applied_a
    if is_charger_syncing(state.charger_current_import_a, last_a):
        return last_a

    if BATTERY_IDLE_BAND_W < battery_w < BATTERY_TARGET_CHARGE_W:
        delta_w = battery_w - BATTERY_TARGET_CHARGE_W
    elif abs(battery_w) <= BATTERY_IDLE_BAND_W:
        delta_w = -state.average_grid_power_w
        if state.battery_soc < BATTERY_FULL_SOC and voltage_v is not None:
            delta_w = min(delta_w, BATTERY_SHARE_FRACTION * -last_a * voltage_v)
    else:
        delta_w = battery_w

    if (
        delta_w < 0
        and last_a < ANTI_CHATTER_CURRENT_A
        and _battery_favourable(battery_w, state.battery_soc)
    ):
        delta_w = 0.0

    return _incremental_current(last_a, delta_w, power_factor, voltage_v)
