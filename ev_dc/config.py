"""Configuration schema and loading for EV Dynamic Charging.

The configuration is immutable for the lifetime of a coordinator.  A mapping
(typically parsed from YAML) is validated and coerced with
:data:`CONFIG_SCHEMA`; unknown keys are rejected so typos surface at start-up
instead of silently falling back to defaults.

Example ``ev_dc.yaml``::

    suspend_time_s: 30
    power_factor: 1.0
    tick_interval_s: 2
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import voluptuous as vol
import yaml

from .const import (
    CONF_POWER_FACTOR,
    CONF_SEED_WINDOW,
    CONF_SUSPEND_TIME,
    CONF_TICK_INTERVAL,
    CONF_WATCHDOG_DELAY,
    CONF_WATCHDOG_INTERVAL,
    DEFAULT_POWER_FACTOR,
    DEFAULT_SEED_WINDOW,
    DEFAULT_SUSPEND_TIME,
    DEFAULT_TICK_INTERVAL,
    DEFAULT_WATCHDOG_DELAY,
    DEFAULT_WATCHDOG_INTERVAL,
)

_POSITIVE_SECONDS = vol.All(vol.Coerce(float), vol.Range(min=0, min_included=False))

CONFIG_SCHEMA = vol.Schema(
    {
        vol.Optional(CONF_SUSPEND_TIME, default=DEFAULT_SUSPEND_TIME): vol.All(
            vol.Coerce(int), vol.Range(min=0)
        ),
        vol.Optional(CONF_POWER_FACTOR, default=DEFAULT_POWER_FACTOR): vol.All(
            vol.Coerce(float), vol.Range(min=0, min_included=False)
        ),
        vol.Optional(CONF_TICK_INTERVAL, default=DEFAULT_TICK_INTERVAL): _POSITIVE_SECONDS,
        vol.Optional(CONF_WATCHDOG_INTERVAL, default=DEFAULT_WATCHDOG_INTERVAL): _POSITIVE_SECONDS,
        vol.Optional(CONF_WATCHDOG_DELAY, default=DEFAULT_WATCHDOG_DELAY): vol.All(
            vol.Coerce(float), vol.Range(min=0)
        ),
        vol.Optional(CONF_SEED_WINDOW, default=DEFAULT_SEED_WINDOW): vol.Boolean(),
    }
)


@dataclass(frozen=True)
class ControllerConfig:
    """Validated controller configuration."""

    suspend_time_s: int = DEFAULT_SUSPEND_TIME
    power_factor: float = DEFAULT_POWER_FACTOR
    tick_interval_s: float = DEFAULT_TICK_INTERVAL
    watchdog_interval_s: float = DEFAULT_WATCHDOG_INTERVAL
    watchdog_delay_s: float = DEFAULT_WATCHDOG_DELAY
    seed_window_with_first_sample: bool = DEFAULT_SEED_WINDOW

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> ControllerConfig:
        """Validate *data* against :data:`CONFIG_SCHEMA` and build a config.

        Raises:
            voluptuous.Invalid: when a value is missing its constraints
                (e.g. a negative suspend time or a non-positive power factor).
        """
        validated = CONFIG_SCHEMA(dict(data or {}))
        return cls(
            suspend_time_s=validated[CONF_SUSPEND_TIME],
            power_factor=validated[CONF_POWER_FACTOR],
            tick_interval_s=validated[CONF_TICK_INTERVAL],
            watchdog_interval_s=validated[CONF_WATCHDOG_INTERVAL],
            watchdog_delay_s=validated[CONF_WATCHDOG_DELAY],
            seed_window_with_first_sample=validated[CONF_SEED_WINDOW],
        )


def load_config(path: str | Path) -> ControllerConfig:
    """Read a YAML file and return the validated configuration.

    An empty file yields the defaults.  A document that is not a mapping is
    rejected with :class:`voluptuous.Invalid`.
    """
    with open(path, encoding="utf-8") as handle:
        data = yaml.safe_load(handle)
    if data is not None and not isinstance(data, Mapping):
        raise vol.Invalid(f"expected a mapping at the top of {path}")
    return ControllerConfig.from_mapping(data)
