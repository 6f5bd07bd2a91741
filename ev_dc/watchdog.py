"""OCPP sanity check for chargers that misreport their offered current.

Some chargers keep charging at the requested power but report an offered
current of (almost) zero after a reconnect.  The coordinator runs this check
on a slow timer and asks the backend to reconfigure the charger when it
trips.
"""

from __future__ import annotations

from typing import Optional

from .const import (
    CHARGING_STATE_VALUE,
    WATCHDOG_OFFERED_CURRENT_A,
    WATCHDOG_OFFERED_POWER_W,
)


def is_offered_current_misreported(
    charger_status: Optional[str],
    offered_power_w: float,
    charger_current_offered_a: float,
) -> bool:
    """Return True when a charging charger reports no offered current.

    Args:
        charger_status:            Connector status string.
        offered_power_w:           Power the controller currently offers (W).
        charger_current_offered_a: Offered current reported by the charger (A).

    Returns:
        True only while charging, with more than 1500 W offered and less than
        1 A reported.
    """
    return (
        charger_status == CHARGING_STATE_VALUE
        and offered_power_w > WATCHDOG_OFFERED_POWER_W
        and charger_current_offered_a < WATCHDOG_OFFERED_CURRENT_A
    )
