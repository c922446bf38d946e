"""
Configuration constants for the delivery fleet engine

This module contains all configuration constants, magic numbers, and the
bootstrap fleet definition, plus the loader that overlays a YAML file on
top of the defaults.

Components receive the merged ``config`` dict and read their own section:

    >>> config = load_config("config/fleet_config.yaml")
    >>> config["motion"]["arrival_tolerance_deg"]
    0.0005
"""

import copy
import logging
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

# =============================================================================
# SIMULATION TIMING CONSTANTS
# =============================================================================
TICK_INTERVAL_SEC = 1.0  # One engine tick per second
RANDOM_SEED = None  # None = nondeterministic random walk

# =============================================================================
# MOTION CONSTANTS (lat/lng degree space, not meters)
# =============================================================================
ARRIVAL_TOLERANCE_DEG = 0.0005  # Snap to destination below this distance
STEP_FRACTION = 0.1  # Fraction of the remaining vector covered per tick
IDLE_JITTER_DEG = 0.00005  # Max drift per axis per tick while idle

# =============================================================================
# BATTERY CONSTANTS
# =============================================================================
BATTERY_DRAIN_PER_TICK = 0.5  # Delivering drones
BATTERY_ARRIVAL_COST = 10.0  # Charged once on arrival
BATTERY_IDLE_RECOVERY = 0.1  # Idle drones recover per tick

# =============================================================================
# PROXIMITY CONSTANTS
# =============================================================================
SENSOR_RANGE_DEG = 0.002  # 4x the arrival tolerance

# =============================================================================
# LIGHT CONSTANTS
# =============================================================================
LIGHT_DRIFT_OFFSET = 0.3  # random() - 0.3 biases the walk downwards
LIGHT_STEP_STANDALONE = 10.0  # Ambient sensor / bulk simulation step
LIGHT_STEP_PER_DRONE = 5.0  # Per-drone step inside a tick
AMBIENT_ALERT_COOLDOWN_MS = 5000  # Ambient sensor only
DEFAULT_LIGHT_THRESHOLD = 50.0

# =============================================================================
# ASSIGNMENT CONSTANTS
# =============================================================================
MIN_ASSIGN_BATTERY = 20.0  # Manual assignment: battery >= 20
MIN_AUTO_ASSIGN_BATTERY = 30.0  # Auto assignment: battery > 30
DEFAULT_PICKUP_POSITION = {"lat": 39.9042, "lng": 116.4074}  # Depot
ESTIMATED_TIME_FACTOR = 10000  # ceil(distance * factor)
DEFAULT_TASK_TYPE = "delivery"
DEFAULT_TASK_DESCRIPTION = "Supply delivery"

# =============================================================================
# DRONE DEFAULTS
# =============================================================================
DEFAULT_DRONE_POSITION = {"lat": 39.9042, "lng": 116.4074}
DEFAULT_BATTERY = 100.0
DEFAULT_CAPACITY = 10
DEFAULT_LIGHT = 0.0

SEED_DRONES = [
    {
        "id": "DR001",
        "name": "Delivery Drone 1",
        "position": {"lat": 39.9042, "lng": 116.4074},
        "battery": 95,
    },
    {
        "id": "DR002",
        "name": "Delivery Drone 2",
        "position": {"lat": 39.9142, "lng": 116.4174},
        "battery": 88,
    },
    {
        "id": "DR003",
        "name": "Delivery Drone 3",
        "position": {"lat": 39.9242, "lng": 116.4274},
        "battery": 75,
    },
]

# =============================================================================
# PERSISTENCE
# =============================================================================
DATABASE_URL = "sqlite:///drone_fleet.db"

# =============================================================================
# FLASK/SOCKETIO CONFIGURATION
# =============================================================================
FLASK_SECRET_KEY = "drone-fleet-secret"
SOCKETIO_PING_TIMEOUT = 60
SOCKETIO_PING_INTERVAL = 25
SOCKETIO_CORS_ORIGINS = "*"
DASHBOARD_HOST = "0.0.0.0"
DASHBOARD_PORT = 3000

# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================
LOG_LEVEL = "INFO"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


DEFAULT_CONFIG: Dict[str, Any] = {
    "simulation": {
        "tick_interval_sec": TICK_INTERVAL_SEC,
        "random_seed": RANDOM_SEED,
    },
    "motion": {
        "arrival_tolerance_deg": ARRIVAL_TOLERANCE_DEG,
        "step_fraction": STEP_FRACTION,
        "idle_jitter_deg": IDLE_JITTER_DEG,
    },
    "battery": {
        "drain_per_tick": BATTERY_DRAIN_PER_TICK,
        "arrival_cost": BATTERY_ARRIVAL_COST,
        "idle_recovery": BATTERY_IDLE_RECOVERY,
    },
    "proximity": {
        "sensor_range_deg": SENSOR_RANGE_DEG,
    },
    "light": {
        "drift_offset": LIGHT_DRIFT_OFFSET,
        "standalone_step": LIGHT_STEP_STANDALONE,
        "per_drone_step": LIGHT_STEP_PER_DRONE,
        "ambient_cooldown_ms": AMBIENT_ALERT_COOLDOWN_MS,
        "ambient_threshold": DEFAULT_LIGHT_THRESHOLD,
    },
    "assignment": {
        "min_battery": MIN_ASSIGN_BATTERY,
        "min_auto_battery": MIN_AUTO_ASSIGN_BATTERY,
        "default_pickup": DEFAULT_PICKUP_POSITION,
        "estimated_time_factor": ESTIMATED_TIME_FACTOR,
        "default_task_type": DEFAULT_TASK_TYPE,
        "default_description": DEFAULT_TASK_DESCRIPTION,
    },
    "fleet": {
        "seed_drones": SEED_DRONES,
        "default_position": DEFAULT_DRONE_POSITION,
        "defaults": {
            "battery": DEFAULT_BATTERY,
            "capacity": DEFAULT_CAPACITY,
            "light": DEFAULT_LIGHT,
            "light_threshold": DEFAULT_LIGHT_THRESHOLD,
        },
        "allow_upsert": False,
    },
    "persistence": {
        "database_url": DATABASE_URL,
        "background_writes": True,
    },
    "dashboard": {
        "host": DASHBOARD_HOST,
        "port": DASHBOARD_PORT,
        "secret_key": FLASK_SECRET_KEY,
        "cors_origins": SOCKETIO_CORS_ORIGINS,
        "ping_timeout": SOCKETIO_PING_TIMEOUT,
        "ping_interval": SOCKETIO_PING_INTERVAL,
    },
    "logging": {
        "level": LOG_LEVEL,
        "format": LOG_FORMAT,
    },
}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively overlay ``override`` on ``base`` (in place)."""
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load a YAML configuration file over the defaults."""
    config = copy.deepcopy(DEFAULT_CONFIG)
    if path is None:
        return config

    with open(path, "r") as f:
        overrides = yaml.safe_load(f) or {}

    if not isinstance(overrides, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping")

    _deep_merge(config, overrides)
    logger.info(f"Loaded configuration from {path}")
    return config
