"""Constants for EV Dynamic Charging."""

from __future__ import annotations

# Charger connector status values of interest (OCPP StatusNotification)
CHARGING_STATE_VALUE = "Charging"
AVAILABLE_STATE_VALUE = "Available"

# Output limits and control tolerances
MAX_CHARGER_CURRENT: float = 31.0  # Amps, hard ceiling for any setpoint
MIN_CHARGER_CURRENT: float = 0.0  # Amps
HYSTERESIS_A: float = 0.5  # Amps, changes at or below this are suppressed
SYNC_TOLERANCE_A: float = 1.0  # Amps, import vs. setpoint before recomputing

# Rolling average of net grid power
WINDOW_SIZE = 3

# Home-battery-priority strategy thresholds
BATTERY_TARGET_CHARGE_W: float = 2500.0  # Watts, battery charge rate to protect
BATTERY_STRONG_CHARGE_W: float = 2000.0  # Watts, battery absorbs the surplus
BATTERY_IDLE_BAND_W: float = 0.1  # Watts, |power| at or below is "idle"
BATTERY_SHALLOW_DISCHARGE_W: float = 500.0  # Watts
BATTERY_FULL_SOC: float = 95.0  # Percent
SURPLUS_BAND_MIN_W: float = 500.0  # Watts
SURPLUS_BAND_MAX_W: float = 1500.0  # Watts, also the widened start budget
BATTERY_SHARE_FRACTION: float = 0.25  # share of car power handed back to the battery
ANTI_CHATTER_CURRENT_A: float = 7.0  # Amps, just above the 6 A charger minimum

# OCPP sanity check
WATCHDOG_OFFERED_POWER_W: float = 1500.0  # Watts
WATCHDOG_OFFERED_CURRENT_A: float = 1.0  # Amps

# Configuration keys
CONF_SUSPEND_TIME = "suspend_time_s"
CONF_POWER_FACTOR = "power_factor"
CONF_TICK_INTERVAL = "tick_interval_s"
CONF_WATCHDOG_INTERVAL = "watchdog_interval_s"
CONF_WATCHDOG_DELAY = "watchdog_delay_s"
CONF_SEED_WINDOW = "seed_window_with_first_sample"

# Defaults
DEFAULT_SUSPEND_TIME = 30  # seconds
DEFAULT_POWER_FACTOR: float = 1.0
DEFAULT_TICK_INTERVAL: float = 2.0  # seconds
DEFAULT_WATCHDOG_INTERVAL: float = 60.0  # seconds
DEFAULT_WATCHDOG_DELAY: float = 30.0  # seconds
DEFAULT_SEED_WINDOW = True

# Charging state machine states
STATE_IDLE = "idle"
STATE_CHARGING = "charging"
STATE_SUSPENDED = "suspended"

# Budget strategies (exposed as the coordinator's ``strategy`` attribute)
STRATEGY_DISABLED = "disabled"
STRATEGY_STATIC = "static"
STRATEGY_CAR_PRIORITY = "car_priority"
STRATEGY_HOME_BATTERY_PRIORITY = "home_battery_priority"

# Reasons recorded alongside every setpoint write
REASON_TICK = "tick"
REASON_SUSPEND = "suspend"
REASON_RESUME = "resume"
REASON_DISCONNECTED = "disconnected"
REASON_WATCHDOG = "watchdog"
