"""pytest configuration and shared fixtures for the EV DC test suite.

Fakes for the two external collaborators and a manual clock live here so
coordinator and state-machine tests can drive readings, capture charger
writes, and advance time explicitly without real sleeps.
"""

import asyncio
import os
import sys
from dataclasses import replace

import pytest

from ev_dc.config import ControllerConfig
from ev_dc.coordinator import EvDynamicChargingCoordinator
from ev_dc.models import ChargerReadings

sys.path.insert(0, os.path.dirname(__file__))

# -----------------------------------------------------------------------
# Shared constants
# -----------------------------------------------------------------------

VOLTAGE = 230.0

# Charger enabled, dynamic charging, idle connector, no battery, no grid flow
BASE_READINGS = ChargerReadings(
    consumption_kw=0.0,
    injection_kw=0.0,
    voltage_v=VOLTAGE,
    charger_status="Available",
    charger_current_offered_a=0.0,
    charger_current_import_a=0.0,
    net_max_power_w=0.0,
    static_power_w=0.0,
    charger_enabled="on",
    dynamic_charging="on",
    battery_charging_w=0.0,
    battery_discharging_w=0.0,
    battery_soc=50.0,
)


# -----------------------------------------------------------------------
# Fakes
# -----------------------------------------------------------------------


class FakeReadingsSource:
    """Readings source returning whatever the test last set."""

    def __init__(self, readings: ChargerReadings = BASE_READINGS) -> None:
        self.readings = readings
        self.error: Exception | None = None
        self.reads = 0

    def set(self, **changes) -> None:
        """Update individual reading fields."""
        self.readings = replace(self.readings, **changes)

    async def async_read(self) -> ChargerReadings:
        self.reads += 1
        if self.error is not None:
            raise self.error
        return self.readings


class FakeChargerBackend:
    """Charger backend recording every call as ``(action, value)`` tuples."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.failing: set[str] = set()

    def _record(self, action: str, *args) -> None:
        if action in self.failing:
            raise RuntimeError(f"{action} failed")
        self.calls.append((action, *args))

    def of(self, action: str) -> list[tuple]:
        """Return the recorded calls for *action*."""
        return [call for call in self.calls if call[0] == action]

    async def async_set_max_current(self, current_a: float) -> None:
        self._record("set_max_current", current_a)

    async def async_set_offered_power(self, power_w: float) -> None:
        self._record("set_offered_power", power_w)

    async def async_set_charger_enabled(self, enabled: bool) -> None:
        self._record("set_charger_enabled", enabled)

    async def async_reconfigure(self) -> None:
        self._record("reconfigure")

    async def async_reset_static_power(self) -> None:
        self._record("reset_static_power")

    async def async_publish_grid_power(self, power_w: float) -> None:
        self._record("publish_grid_power", power_w)


class FakeScheduler:
    """Manual clock implementing the ``call_later`` / interval timer contract."""

    def __init__(self) -> None:
        self.now = 0.0
        self._timers: list[list] = []  # [due, seq, action, interval, active]
        self._seq = 0

    def _add(self, delay_s: float, action, interval_s: float | None):
        self._seq += 1
        timer = [self.now + delay_s, self._seq, action, interval_s, True]
        self._timers.append(timer)

        def _cancel() -> None:
            timer[4] = False

        return _cancel

    def call_later(self, delay_s: float, action):
        return self._add(delay_s, action, None)

    def track_interval(self, action, interval_s: float):
        return self._add(interval_s, action, interval_s)

    @property
    def pending(self) -> int:
        """Number of timers that are still armed."""
        return sum(1 for timer in self._timers if timer[4])

    def advance(self, seconds: float) -> None:
        """Move the clock forward, firing due timers in order."""
        target = self.now + seconds
        while True:
            due = [t for t in self._timers if t[4] and t[0] <= target]
            if not due:
                break
            timer = min(due, key=lambda t: (t[0], t[1]))
            self.now = timer[0]
            if timer[3] is None:
                timer[4] = False
            else:
                timer[0] += timer[3]
            timer[2]()
        self.now = target


# -----------------------------------------------------------------------
# Shared fixtures
# -----------------------------------------------------------------------


@pytest.fixture
def source() -> FakeReadingsSource:
    return FakeReadingsSource()


@pytest.fixture
def backend() -> FakeChargerBackend:
    return FakeChargerBackend()


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def coordinator(source, backend, scheduler) -> EvDynamicChargingCoordinator:
    """Create a coordinator with default config driven by the fake scheduler."""
    return make_coordinator(source, backend, scheduler)


# -----------------------------------------------------------------------
# Shared helpers
# -----------------------------------------------------------------------


def make_coordinator(source, backend, scheduler, **config) -> EvDynamicChargingCoordinator:
    """Build a coordinator wired to the fakes, with optional config overrides."""
    coordinator = EvDynamicChargingCoordinator(
        source, backend, ControllerConfig.from_mapping(config)
    )
    coordinator._call_later = scheduler.call_later
    coordinator._track_interval = scheduler.track_interval
    return coordinator


async def settle() -> None:
    """Let tasks created by timer callbacks run to completion."""
    for _ in range(5):
        await asyncio.sleep(0)


def kw_for_grid_w(grid_w: float) -> dict:
    """Return consumption/injection kW readings producing *grid_w* net power."""
    if grid_w >= 0:
        return {"consumption_kw": grid_w / 1000, "injection_kw": 0.0}
    return {"consumption_kw": 0.0, "injection_kw": -grid_w / 1000}
