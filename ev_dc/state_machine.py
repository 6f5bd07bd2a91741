"""Charging state machine: suspend when charging stops, resume after a debounce.

States:

- ``idle``      : not charging, charger enabled
- ``charging``  : connector reports ``Charging``
- ``suspended`` : charging stopped; the charger is disabled until the status
                  has stayed away from ``Charging`` for *suspend_time_s*

Transitions:

- status leaves ``Charging``           → suspend immediately and start the
                                         resume timer
- status returns to ``Charging``       → cancel a pending resume timer; a
                                         suspended charger stays suspended
- resume timer fires                   → re-enable the charger, ``idle``
- non-Charging → other non-Charging    → no effect on the timer

Independently, a transition to ``Available`` (car unplugged) triggers the
disconnect callback so the owner can reset a held static power setpoint.

The machine does no I/O.  Side effects are delegated to the callbacks given
at construction and the timer is created through the injected *call_later*,
so tests can drive time explicitly.
"""

from __future__ import annotations

import logging
from typing import Optional

from .const import (
    AVAILABLE_STATE_VALUE,
    CHARGING_STATE_VALUE,
    STATE_CHARGING,
    STATE_IDLE,
    STATE_SUSPENDED,
)
from .event import CALLBACK_TYPE, CallLaterType

_LOGGER = logging.getLogger(__name__)


class ChargingStateMachine:
    """Debounced suspend/resume policy keyed on charger status transitions."""

    def __init__(
        self,
        suspend_time_s: float,
        call_later: CallLaterType,
        on_suspend: CALLBACK_TYPE,
        on_resume: CALLBACK_TYPE,
        on_disconnect: Optional[CALLBACK_TYPE] = None,
    ) -> None:
        self.suspend_time_s = suspend_time_s
        self._call_later = call_later
        self._on_suspend = on_suspend
        self._on_resume = on_resume
        self._on_disconnect = on_disconnect
        self.state: str = STATE_IDLE
        self.status: Optional[str] = None
        self._resume_unsub: Optional[CALLBACK_TYPE] = None

    @property
    def suspended(self) -> bool:
        """Return True while the charger is held disabled."""
        return self.state == STATE_SUSPENDED

    @property
    def resume_pending(self) -> bool:
        """Return True while the resume debounce timer is running."""
        return self._resume_unsub is not None

    def start(self, status: Optional[str]) -> None:
        """Adopt the status observed at start-up without firing any transition."""
        self.status = status
        self.state = STATE_CHARGING if status == CHARGING_STATE_VALUE else STATE_IDLE

    def stop(self) -> None:
        """Cancel the pending resume timer, if any."""
        self._cancel_resume()

    def handle_status_change(self, old: Optional[str], new: Optional[str]) -> None:
        """Process a connector status transition from *old* to *new*."""
        self.status = new
        if old == new:
            return

        if new == AVAILABLE_STATE_VALUE and self._on_disconnect is not None:
            self._on_disconnect()

        if new == CHARGING_STATE_VALUE:
            self._enter_charging()
        elif old == CHARGING_STATE_VALUE:
            self._leave_charging(new)

    def _enter_charging(self) -> None:
        if self._resume_unsub is not None:
            _LOGGER.debug("Charging again before the resume delay elapsed, resume cancelled")
            self._cancel_resume()
        if self.state != STATE_SUSPENDED:
            self.state = STATE_CHARGING

    def _leave_charging(self, new: Optional[str]) -> None:
        _LOGGER.info(
            "Charger left Charging (now %s), suspending, resume in %.0f s",
            new,
            self.suspend_time_s,
        )
        self.state = STATE_SUSPENDED
        self._cancel_resume()
        self._resume_unsub = self._call_later(self.suspend_time_s, self._resume)
        self._on_suspend()

    def _resume(self) -> None:
        self._resume_unsub = None
        if self.status == CHARGING_STATE_VALUE:
            return
        _LOGGER.info(
            "Charger stayed out of Charging for %.0f s, re-enabling",
            self.suspend_time_s,
        )
        self.state = STATE_IDLE
        self._on_resume()

    def _cancel_resume(self) -> None:
        if self._resume_unsub is not None:
            self._resume_unsub()
            self._resume_unsub = None
