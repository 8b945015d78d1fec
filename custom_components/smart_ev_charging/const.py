"""Constants for the Smart EV Charging integration."""

from .engine.const import DEFAULT_BLOCKS_COUNT, SELECTION_MODE_WINDOW
from .engine.sources import DEFAULT_MARKET_AREA, SOURCE_SMARD

DOMAIN = "smart_ev_charging"

PLATFORMS = ["sensor", "binary_sensor", "switch", "number"]

# Config flow: entities
CONF_BATTERY_SENSOR = "battery_sensor"
CONF_CHARGER_SWITCH = "charger_switch"

# Config flow: price source
CONF_PRICE_SOURCE = "price_source"
CONF_MARKET_AREA = "market_area"
CONF_TIBBER_TOKEN = "tibber_token"
CONF_FALLBACK_SOURCE = "fallback_source"

# Settings (also exposed as number/switch entities)
CONF_LOW_BATTERY_THRESHOLD = "low_battery_threshold"
CONF_ENABLE_LOW_PRICE_CHARGING = "enable_low_price_charging"
CONF_LOW_PRICE_BLOCKS_COUNT = "low_price_blocks_count"
CONF_SELECTION_MODE = "selection_mode"
CONF_TIMEZONE = "timezone"

# Defaults
DEFAULT_NAME = "Smart EV Charging"
DEFAULT_LOW_BATTERY_THRESHOLD = 20.0
DEFAULT_ENABLE_LOW_PRICE_CHARGING = False
DEFAULT_LOW_PRICE_BLOCKS_COUNT = DEFAULT_BLOCKS_COUNT
DEFAULT_SELECTION_MODE = SELECTION_MODE_WINDOW
DEFAULT_TIMEZONE = "Europe/Berlin"
DEFAULT_PRICE_SOURCE = SOURCE_SMARD
DEFAULT_MARKET_AREA_OPTION = DEFAULT_MARKET_AREA
DEFAULT_FALLBACK_SOURCE = "auto"

# Block count limits (two days of 15-minute blocks)
MIN_BLOCKS_COUNT = 1
MAX_BLOCKS_COUNT = 192

# Coordinator (status poll)
UPDATE_INTERVAL_SECONDS = 60

# Daily maintenance: prune the cache at this local time
MAINTENANCE_HOUR = 3
MAINTENANCE_MINUTE = 5

# Charger switch service call timeout in seconds
CHARGER_CALL_TIMEOUT = 30

# Recent own service call contexts remembered to tell them apart from user toggles
OWN_CONTEXT_HISTORY = 20
