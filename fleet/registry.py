"""
Fleet Registry - single source of truth for fleet composition.

Maps drone id to Drone state in insertion order. Every add persists the
drone through the store collaborator; the registry never waits on it.

Usage:
    >>> registry = FleetRegistry(config, store=InMemoryFleetStore(), clock=time.time)
    >>> drone = registry.add({"name": "Courier", "battery": 80})
    >>> registry.get(drone.id) is drone
    True
    >>> [d.id for d in registry.all()]
    ['DR0001']
"""

import itertools
import logging
import math
import time
from typing import Callable, Dict, List, Optional

from .models import Drone, DroneMode, LatLng, coerce_percent, iso_timestamp
from .persistence import FleetStore, InMemoryFleetStore

logger = logging.getLogger(__name__)


class FleetError(Exception):
    """Caller error on fleet composition"""


class DuplicateDroneError(FleetError):
    pass


class InvalidDroneError(FleetError):
    pass


class FleetRegistry:
    """
    Registry of drones owned by one engine instance
    """

    def __init__(
        self,
        config: dict,
        store: Optional[FleetStore] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.store = store if store is not None else InMemoryFleetStore()
        self.clock = clock
        self.allow_upsert = config["fleet"].get("allow_upsert", False)

        self._drones: Dict[str, Drone] = {}
        self._id_seq = itertools.count(1)

    def __len__(self) -> int:
        return len(self._drones)

    def __contains__(self, drone_id: str) -> bool:
        return drone_id in self._drones

    def get(self, drone_id: str) -> Optional[Drone]:
        """Retrieve drone by ID"""
        return self._drones.get(drone_id)

    def all(self) -> List[Drone]:
        """All drones in insertion order"""
        return list(self._drones.values())

    def _next_drone_id(self) -> str:
        while True:
            drone_id = f"DR{next(self._id_seq):04d}"
            if drone_id not in self._drones:
                return drone_id

    def add(self, spec: Optional[dict] = None, upsert: bool = False) -> Drone:
        """
        Register a drone from a spec of optional overrides.

        Missing fields get defaults (battery=100, capacity=10, light=0,
        light_threshold=50, mode=idle). An existing id raises
        DuplicateDroneError unless upsert is requested (or enabled in
        config), in which case the drone is replaced in place.
        """
        if spec is not None and not isinstance(spec, dict):
            raise InvalidDroneError(
                f"Drone spec must be a mapping, got {type(spec).__name__}"
            )
        spec = dict(spec or {})
        drone_id = str(spec.get("id") or self._next_drone_id())

        if drone_id in self._drones and not (upsert or self.allow_upsert):
            raise DuplicateDroneError(f"Drone {drone_id} already registered")

        drone = self._build(drone_id, spec)
        replaced = drone.id in self._drones
        self._drones[drone.id] = drone
        self.store.save_drone(drone)

        if replaced:
            logger.warning(f"Drone {drone.id} replaced by upsert")
        else:
            logger.info(f"Drone {drone.id} registered at {drone.position}")
        return drone

    def _build(self, drone_id: str, spec: dict) -> Drone:
        try:
            mode = DroneMode(spec.get("status") or spec.get("mode") or "idle")
        except ValueError:
            raise InvalidDroneError(f"Unknown drone mode: {spec.get('mode')!r}")
        if mode is DroneMode.DELIVERING:
            # Tasks are only bound through the TaskAssigner
            raise InvalidDroneError("A drone cannot be added in delivering mode")

        defaults = self.config["fleet"]["defaults"]
        try:
            position = LatLng.from_dict(
                spec.get("position") or self.config["fleet"]["default_position"]
            )
            battery = _percent(spec, "battery", defaults["battery"])
            light = _percent(spec, "light", defaults["light"])
            threshold = _percent(spec, "light_threshold", defaults["light_threshold"])
            capacity = _value(spec, "capacity", defaults["capacity"])
            if not math.isfinite(capacity):
                raise ValueError(f"capacity must be finite, got {capacity}")
            capacity = int(capacity)
        except (TypeError, ValueError) as e:
            raise InvalidDroneError(f"Invalid drone spec for {drone_id}: {e}")

        suffix = drone_id[-4:]
        drone = Drone(
            id=drone_id,
            name=spec.get("name") or f"Drone {suffix}",
            position=position,
            battery=battery,
            capacity=capacity,
            mode=mode,
            light=light,
            light_threshold=threshold,
            created_at=iso_timestamp(self.clock()),
        )
        drone.light_alert = drone.light > drone.light_threshold
        return drone

    def bootstrap(self, seed_drones: List[dict]) -> List[Drone]:
        """Register the configured seed fleet"""
        drones = [self.add(spec, upsert=True) for spec in seed_drones]
        logger.info(f"Bootstrapped fleet with {len(drones)} drones")
        return drones

    def count_by_mode(self) -> Dict[str, int]:
        counts = {mode.value: 0 for mode in DroneMode}
        for drone in self._drones.values():
            counts[drone.mode.value] += 1
        return counts


def _value(spec: dict, key: str, default):
    """Spec value, falling back to the default only when absent or None"""
    value = spec.get(key)
    return float(default if value is None else value)


def _percent(spec: dict, key: str, default) -> float:
    """Clamped percentage; NaN and non-numbers are rejected"""
    value = spec.get(key)
    percent = coerce_percent(default if value is None else value)
    if percent is None:
        raise ValueError(f"{key} must be a number, got {value!r}")
    return percent
