"""Control-loop coordinator for EV Dynamic Charging.

Runs the controller on the asyncio event loop:

- every *tick_interval_s* (2 s) it reads all inputs, updates the power
  estimator, publishes net grid power, computes the target current with the
  budget policy and writes the governed setpoint to the charger;
- on every charger status change (pushed through
  :meth:`EvDynamicChargingCoordinator.async_handle_status_change` or
  detected from the polled status) it drives the charging state machine;
- every *watchdog_interval_s* (60 s) it arms the OCPP sanity check, which
  runs *watchdog_delay_s* later on its own timer.

Ticks and status changes are serialised by a single :class:`asyncio.Lock`;
the watchdog and the state-machine timers are loop callbacks, so no two
writers ever touch the controller state concurrently.

Readings and charger commands go through the :class:`ReadingsSource` and
:class:`ChargerBackend` collaborators.  A failing read is treated as an
all-absent reading and a failing write is logged, so neither can stall the
loop.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any, Optional, Protocol

from .budget_policy import compute_target_current, select_strategy
from .config import ControllerConfig
from .const import (
    CHARGING_STATE_VALUE,
    REASON_DISCONNECTED,
    REASON_RESUME,
    REASON_SUSPEND,
    REASON_TICK,
    REASON_WATCHDOG,
    STRATEGY_DISABLED,
)
from .event import CALLBACK_TYPE, async_call_later, async_track_time_interval
from .models import ChargerReadings, ControlState
from .power_estimator import PowerEstimator, read_float, read_voltage
from .setpoint_governor import SetpointGovernor, compute_offered_power_w
from .state_machine import ChargingStateMachine
from .watchdog import is_offered_current_misreported

_LOGGER = logging.getLogger(__name__)

_TRUE_STATES = ("on", "true", "1", "yes")


class ReadingsSource(Protocol):
    """Supplies one snapshot of every controller input."""

    async def async_read(self) -> ChargerReadings:
        """Return the current readings; any field may be missing."""


class ChargerBackend(Protocol):
    """Applies the controller's outputs to the charger and its helpers."""

    async def async_set_max_current(self, current_a: float) -> None:
        """Write the charger maximum current setpoint (A)."""

    async def async_set_offered_power(self, power_w: float) -> None:
        """Write the offered charging power (W)."""

    async def async_set_charger_enabled(self, enabled: bool) -> None:
        """Enable or disable the charger."""

    async def async_reconfigure(self) -> None:
        """Ask the charger to reload its configuration."""

    async def async_reset_static_power(self) -> None:
        """Reset the static charging power setpoint to 0 W."""

    async def async_publish_grid_power(self, power_w: float) -> None:
        """Publish the latest net grid power (W)."""


def read_bool(value: Any) -> bool:
    """Return *value* as a flag; anything missing or unrecognised is off."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in _TRUE_STATES


class EvDynamicChargingCoordinator:
    """Drive the power estimator, budget policy, governor and state machine."""

    def __init__(
        self,
        source: ReadingsSource,
        backend: ChargerBackend,
        config: Optional[ControllerConfig] = None,
    ) -> None:
        """Initialise the coordinator; nothing runs until :meth:`async_start`."""
        self._source = source
        self._backend = backend
        self.config = config or ControllerConfig()

        self._estimator = PowerEstimator(self.config.seed_window_with_first_sample)
        self._governor = SetpointGovernor()
        self._state_machine = ChargingStateMachine(
            self.config.suspend_time_s,
            self._schedule_later,
            on_suspend=self._on_suspend,
            on_resume=self._on_resume,
            on_disconnect=self._on_disconnect,
        )
        self._lock = asyncio.Lock()

        # Timer factories (replaced by a fake scheduler in tests)
        self._call_later: Callable[[float, CALLBACK_TYPE], CALLBACK_TYPE] = async_call_later
        self._track_interval: Callable[[CALLBACK_TYPE, float], CALLBACK_TYPE] = (
            async_track_time_interval
        )

        # Computed state (read by listeners and diagnostics)
        self.charger_status: Optional[str] = None
        self.net_grid_power_w: float = 0.0
        self.battery_power_w: float = 0.0
        self.target_current_a: float = 0.0
        self.offered_power_w: float = 0.0
        self.strategy: str = STRATEGY_DISABLED
        self.last_action_reason: str = ""

        self._unsub_tick: Optional[CALLBACK_TYPE] = None
        self._unsub_watchdog: Optional[CALLBACK_TYPE] = None
        self._watchdog_check_unsub: Optional[CALLBACK_TYPE] = None
        self._listeners: list[CALLBACK_TYPE] = []
        self._tasks: set[asyncio.Task] = set()
        self._tick_task: Optional[asyncio.Task] = None

    @property
    def current_set_a(self) -> float:
        """Return the setpoint currently applied to the charger (A)."""
        return self._governor.last_applied_a

    @property
    def average_grid_power_w(self) -> float:
        """Return the rolling three-sample average of net grid power (W)."""
        return self._estimator.average_grid_power_w

    @property
    def controller_state(self) -> str:
        """Return the charging state machine's state."""
        return self._state_machine.state

    @property
    def suspended(self) -> bool:
        """Return True while charging is suspended by the state machine."""
        return self._state_machine.suspended

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def async_start(self) -> None:
        """Seed the controller from the charger and start the timers."""
        readings = await self._async_read()
        self._governor.seed(readings.charger_current_offered_a)
        self.offered_power_w = compute_offered_power_w(
            self.current_set_a, read_voltage(readings.voltage_v)
        )
        self.charger_status = readings.charger_status
        self._state_machine.start(readings.charger_status)

        self._unsub_tick = self._track_interval(
            self._handle_tick_timer, self.config.tick_interval_s
        )
        self._unsub_watchdog = self._track_interval(
            self._handle_watchdog_timer, self.config.watchdog_interval_s
        )
        _LOGGER.debug(
            "Coordinator started (status=%s, seeded current=%.1f A, "
            "suspend_time=%d s, power_factor=%.2f)",
            self.charger_status,
            self.current_set_a,
            self.config.suspend_time_s,
            self.config.power_factor,
        )

    async def async_stop(self) -> None:
        """Cancel every timer and pending task."""
        for unsub in (self._unsub_tick, self._unsub_watchdog, self._watchdog_check_unsub):
            if unsub is not None:
                unsub()
        self._unsub_tick = None
        self._unsub_watchdog = None
        self._watchdog_check_unsub = None
        self._state_machine.stop()
        self._tick_task = None

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        _LOGGER.debug("Coordinator stopped")

    def async_add_listener(self, update_callback: CALLBACK_TYPE) -> CALLBACK_TYPE:
        """Register *update_callback* for state updates; return a remover."""
        self._listeners.append(update_callback)

        def _remove() -> None:
            if update_callback in self._listeners:
                self._listeners.remove(update_callback)

        return _remove

    # ------------------------------------------------------------------
    # Control loop
    # ------------------------------------------------------------------

    def _handle_tick_timer(self) -> None:
        if self._tick_task is not None and not self._tick_task.done():
            _LOGGER.debug("Previous tick still running, skipping this one")
            return
        self._tick_task = self._create_task(self.async_tick())

    async def async_tick(self) -> None:
        """Run one control cycle."""
        async with self._lock:
            readings = await self._async_read()
            await self._async_process(readings)
        self._notify_listeners()

    async def _async_process(self, readings: ChargerReadings) -> None:
        self.net_grid_power_w = self._estimator.update_grid_power(
            readings.consumption_kw, readings.injection_kw
        )
        self.battery_power_w = self._estimator.update_battery_power(
            readings.battery_charging_w, readings.battery_discharging_w
        )
        await self._async_call_backend(
            "publish_grid_power",
            self._backend.async_publish_grid_power,
            self.net_grid_power_w,
        )

        # Unknown status keeps the last known one; it is not a transition
        if readings.charger_status is not None and readings.charger_status != self.charger_status:
            self._apply_status_change(readings.charger_status)

        state = self._build_state(readings)
        self.strategy = select_strategy(state)
        self.target_current_a = compute_target_current(state, self.config.power_factor)
        applied_a, changed = self._governor.apply(self.target_current_a)

        _LOGGER.debug(
            "Tick (%s): grid=%.0f W, avg=%.0f W, battery=%.0f W, target=%.1f A, applied=%.1f A",
            self.strategy,
            self.net_grid_power_w,
            self.average_grid_power_w,
            self.battery_power_w,
            self.target_current_a,
            applied_a,
        )

        if not changed:
            return

        self.offered_power_w = compute_offered_power_w(applied_a, state.voltage_v)
        self.last_action_reason = REASON_TICK
        await self._async_call_backend(
            "set_max_current", self._backend.async_set_max_current, applied_a
        )
        await self._async_call_backend(
            "set_offered_power", self._backend.async_set_offered_power, self.offered_power_w
        )

    def _build_state(self, readings: ChargerReadings) -> ControlState:
        """Normalise *readings* into the snapshot consumed by the budget policy."""
        return ControlState(
            charger_enabled=read_bool(readings.charger_enabled) and not self.suspended,
            dynamic_charging=read_bool(readings.dynamic_charging),
            charging=self.charger_status == CHARGING_STATE_VALUE,
            voltage_v=read_voltage(readings.voltage_v),
            average_grid_power_w=self.average_grid_power_w,
            battery_power_w=self.battery_power_w,
            battery_soc=read_float(readings.battery_soc),
            net_max_power_w=read_float(readings.net_max_power_w),
            static_power_w=read_float(readings.static_power_w),
            charger_current_import_a=read_float(readings.charger_current_import_a),
            last_applied_a=self.current_set_a,
        )

    # ------------------------------------------------------------------
    # Charger status changes
    # ------------------------------------------------------------------

    async def async_handle_status_change(self, new_status: Optional[str]) -> None:
        """React to a pushed charger status notification."""
        async with self._lock:
            if new_status is None or new_status == self.charger_status:
                return
            self._apply_status_change(new_status)
        self._notify_listeners()

    def _apply_status_change(self, new_status: str) -> None:
        old_status = self.charger_status
        self.charger_status = new_status
        _LOGGER.debug("Charger status %s → %s", old_status, new_status)
        self._state_machine.handle_status_change(old_status, new_status)

    def _schedule_later(self, delay_s: float, action: CALLBACK_TYPE) -> CALLBACK_TYPE:
        return self._call_later(delay_s, action)

    def _on_suspend(self) -> None:
        self.last_action_reason = REASON_SUSPEND
        self._create_task(
            self._async_call_backend(
                "disable_charger", self._backend.async_set_charger_enabled, False
            )
        )

    def _on_resume(self) -> None:
        self.last_action_reason = REASON_RESUME
        self._create_task(
            self._async_call_backend(
                "enable_charger", self._backend.async_set_charger_enabled, True
            )
        )
        self._notify_listeners()

    def _on_disconnect(self) -> None:
        self.last_action_reason = REASON_DISCONNECTED
        self._create_task(
            self._async_call_backend(
                "reset_static_power", self._backend.async_reset_static_power
            )
        )

    # ------------------------------------------------------------------
    # OCPP sanity check
    # ------------------------------------------------------------------

    def _handle_watchdog_timer(self) -> None:
        """Arm the delayed sanity check while the charger is charging."""
        if self.charger_status != CHARGING_STATE_VALUE or self._watchdog_check_unsub is not None:
            return
        self._watchdog_check_unsub = self._call_later(
            self.config.watchdog_delay_s, self._handle_watchdog_check
        )

    def _handle_watchdog_check(self) -> None:
        self._watchdog_check_unsub = None
        self._create_task(self._async_watchdog_check())

    async def _async_watchdog_check(self) -> None:
        readings = await self._async_read()
        status = readings.charger_status or self.charger_status
        offered_a = read_float(readings.charger_current_offered_a)
        if not is_offered_current_misreported(status, self.offered_power_w, offered_a):
            return
        _LOGGER.info(
            "Charger reports %.1f A offered while %.0f W is offered, reconfiguring",
            offered_a,
            self.offered_power_w,
        )
        self.last_action_reason = REASON_WATCHDOG
        await self._async_call_backend("reconfigure", self._backend.async_reconfigure)

    # ------------------------------------------------------------------
    # Collaborator helpers
    # ------------------------------------------------------------------

    async def _async_read(self) -> ChargerReadings:
        """Read all inputs; a failing source yields an all-absent reading."""
        try:
            return await self._source.async_read()
        except Exception as exc:  # noqa: BLE001
            _LOGGER.warning("Reading inputs failed: %s, treating all values as absent", exc)
            return ChargerReadings()

    async def _async_call_backend(
        self,
        action_name: str,
        action: Callable[..., Awaitable[None]],
        *args: Any,
    ) -> bool:
        """Await a backend call; log and swallow failures.

        Returns True when the call succeeded.
        """
        try:
            await action(*args)
        except Exception as exc:  # noqa: BLE001
            _LOGGER.warning("Action %s failed: %s", action_name, exc)
            return False
        _LOGGER.debug("Action %s executed (args=%s)", action_name, args)
        return True

    def _create_task(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _notify_listeners(self) -> None:
        for update_callback in list(self._listeners):
            try:
                update_callback()
            except Exception:  # noqa: BLE001
                _LOGGER.exception("Error in update listener %s", update_callback)
