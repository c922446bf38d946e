"""
Fleet Engine - deterministic per-tick simulation and event derivation.

This module wires the fleet registry, task assigner, motion model, detector
and ambient light sensor into one engine instance. Every public operation
runs to completion under a single lock, so a tick never overlaps another
tick or a command.

Tick Pipeline:
    For each drone, in registry order:
    1. DELIVERING: measure distance, detect the sensor-range rising edge,
       then either complete the delivery (snap, idle, -10 battery) or step
       10% closer (-0.5 battery)
    2. IDLE / CHARGING: jitter, +0.1 battery, clear proximity latches
    3. Light random walk (step 5) and light alert refresh
    Then for the ambient sensor:
    4. Light random walk (step 10), shade contacts, cooldown-limited alert

Commands:
    assign_task, auto_assign, add_drone, update_drone_light,
    update_light_threshold, update_ambient_light, update_ambient_threshold,
    simulate_light_changes, tick

Example:
    >>> engine = FleetEngine(load_config(), rng=np.random.default_rng(7))
    >>> result = engine.assign_task("DR001", {"destination": {"lat": 39.91, "lng": 116.41}})
    >>> batch = engine.tick()
    >>> [event.kind for event in batch.events()]
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Union

import numpy as np

from .detector import ProximityDetector
from .events import DeliveryUpdate, LightAlert, TaskAssigned, TickResult
from .light_sensor import AmbientLightSensor
from .models import (
    Drone,
    DroneMode,
    Order,
    Task,
    TaskSpec,
    coerce_percent,
    iso_timestamp,
)
from .motion_model import MotionModel
from .persistence import FleetStore
from .registry import FleetRegistry
from .task_assigner import AssignmentResult, TaskAssigner

logger = logging.getLogger(__name__)


@dataclass
class LightUpdateResult:
    """Outcome of a per-drone light or threshold update"""

    success: bool
    drone: Optional[Drone] = None
    alert: Optional[LightAlert] = None
    message: str = ""


class FleetEngine:
    """
    Owns all drone and task state for its lifetime
    """

    def __init__(
        self,
        config: dict,
        store: Optional[FleetStore] = None,
        rng=None,
        clock: Callable[[], float] = time.time,
        bootstrap: bool = True,
    ):
        self.config = config
        self.clock = clock
        if rng is None:
            rng = np.random.default_rng(config["simulation"].get("random_seed"))
        self.rng = rng

        self.registry = FleetRegistry(config, store=store, clock=clock)
        self.assigner = TaskAssigner(config, self.registry)
        self.motion = MotionModel(config, rng)
        self.detector = ProximityDetector(config)
        self.light_sensor = AmbientLightSensor(config, motion=self.motion, clock=clock)

        self.per_drone_light_step = config["light"]["per_drone_step"]
        self.standalone_light_step = config["light"]["standalone_step"]

        self.tick_count = 0
        self._lock = threading.RLock()

        if bootstrap:
            self.registry.bootstrap(config["fleet"].get("seed_drones", []))

    @property
    def store(self) -> FleetStore:
        return self.registry.store

    def _now(self) -> str:
        return iso_timestamp(self.clock())

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_drone(self, drone_id: str) -> Optional[Drone]:
        with self._lock:
            return self.registry.get(drone_id)

    def all_drones(self) -> List[Drone]:
        with self._lock:
            return self.registry.all()

    def all_tasks(self) -> List[Task]:
        with self._lock:
            return self.assigner.all_tasks()

    def tasks_for_drone(self, drone_id: str) -> List[Task]:
        with self._lock:
            return self.assigner.tasks_for_drone(drone_id)

    def drone_records(self) -> List[dict]:
        """Serialized fleet, consistent with a single point between ticks"""
        with self._lock:
            return [drone.to_dict() for drone in self.registry.all()]

    def task_records(self) -> List[dict]:
        with self._lock:
            return [task.to_dict() for task in self.assigner.all_tasks()]

    def ambient_sensor_data(self) -> dict:
        with self._lock:
            return self.light_sensor.sensor_data()

    def get_status(self) -> dict:
        """Fleet, task and sensor summary"""
        with self._lock:
            by_mode = self.registry.count_by_mode()
            return {
                "fleet": {"total": len(self.registry), "by_mode": by_mode},
                "tasks": {
                    "total": len(self.assigner.tasks),
                    "by_status": self.assigner.count_by_status(),
                },
                "light": self.light_sensor.sensor_data(),
                "tick": self.tick_count,
            }

    def invariant_violations(self) -> List[str]:
        """Describe every drone breaking the mode/task or range invariants"""
        violations = []
        with self._lock:
            for drone in self.registry.all():
                delivering = drone.mode is DroneMode.DELIVERING
                if delivering != (drone.current_task is not None):
                    violations.append(f"{drone.id}: mode/task mismatch")
                if not 0.0 <= drone.battery <= 100.0:
                    violations.append(f"{drone.id}: battery {drone.battery}")
                if not 0.0 <= drone.light <= 100.0:
                    violations.append(f"{drone.id}: light {drone.light}")
        return violations

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def add_drone(self, spec: Optional[dict] = None, upsert: bool = False) -> Drone:
        with self._lock:
            return self.registry.add(spec, upsert=upsert)

    def assign_task(
        self, drone_id: str, task_spec: Union[TaskSpec, dict, None]
    ) -> AssignmentResult:
        if not isinstance(task_spec, TaskSpec):
            task_spec = TaskSpec.from_dict(task_spec)
        with self._lock:
            return self.assigner.assign(drone_id, task_spec)

    def auto_assign(self, order: Union[Order, dict]) -> AssignmentResult:
        if not isinstance(order, Order):
            order = Order.from_dict(order)
        with self._lock:
            return self.assigner.auto_assign(order)

    @staticmethod
    def assigned_event(result: AssignmentResult) -> Optional[TaskAssigned]:
        if not result.success:
            return None
        return TaskAssigned(task=result.task, drone=result.drone)

    def update_drone_light(self, drone_id: str, light) -> LightUpdateResult:
        """Set a drone's light reading (clamped) and refresh its alert"""
        return self._update_drone_reading(drone_id, "light", light)

    def update_light_threshold(self, drone_id: str, threshold) -> LightUpdateResult:
        """Set a drone's light threshold (clamped) and refresh its alert"""
        return self._update_drone_reading(drone_id, "light_threshold", threshold)

    def _update_drone_reading(self, drone_id: str, attribute: str, raw) -> LightUpdateResult:
        with self._lock:
            drone = self.registry.get(drone_id)
            if drone is None:
                logger.warning(f"{attribute} update for unknown drone {drone_id}")
                return LightUpdateResult(
                    success=False, message=f"Drone {drone_id} does not exist"
                )

            value = coerce_percent(raw)
            if value is None:
                logger.warning(f"Ignoring malformed {attribute} {raw!r} for {drone_id}")
                return LightUpdateResult(
                    success=False, drone=drone, message=f"Invalid {attribute} value"
                )

            setattr(drone, attribute, value)
            alert = self.detector.light_alert(drone, self._now())
            return LightUpdateResult(success=True, drone=drone, alert=alert)

    def update_ambient_light(self, light) -> Optional[float]:
        with self._lock:
            return self.light_sensor.update_light(light)

    def update_ambient_threshold(self, threshold) -> Optional[float]:
        with self._lock:
            return self.light_sensor.update_threshold(threshold)

    def simulate_light_changes(self):
        """Standalone light random walk (step 10) for every drone"""
        with self._lock:
            for drone in self.registry.all():
                self.motion.advance_light(drone, self.standalone_light_step)
                self.detector.refresh_light_alert(drone)

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def tick(self) -> TickResult:
        """Advance every drone by one step and return the derived events"""
        with self._lock:
            self.tick_count += 1
            timestamp = self._now()
            result = TickResult(tick=self.tick_count)

            for drone in self.registry.all():
                if drone.mode is DroneMode.DELIVERING and drone.current_task is not None:
                    self._advance_delivering(drone, timestamp, result)
                else:
                    self.motion.drift(drone)
                    drone.reset_proximity()

                self.motion.advance_light(drone, self.per_drone_light_step)
                alert = self.detector.light_alert(drone, timestamp)
                if alert is not None:
                    result.light_alerts.append(alert)

                self.store.save_drone(drone)

            self._advance_ambient(timestamp, result)
            return result

    def _advance_delivering(self, drone: Drone, timestamp: str, result: TickResult):
        task = drone.current_task
        old_position = drone.position
        distance = self.motion.distance_to_destination(drone, task)

        approaching = self.detector.check_proximity(drone, task, distance, timestamp)
        if approaching is not None:
            result.approaching.append(approaching)

        if self.motion.has_arrived(distance):
            self.motion.complete_delivery(drone, task, timestamp)
            drone.reset_proximity()
            result.arrived.append(self.detector.arrival(drone, task, timestamp))
        else:
            self.motion.step_toward(drone, task, timestamp)

        self.store.save_task(task)

        if task.related_order_id:
            result.delivery_updates.append(
                DeliveryUpdate(
                    order_id=task.related_order_id,
                    drone_id=drone.id,
                    status="delivering",
                    timestamp=timestamp,
                    current_position=drone.position,
                    old_position=old_position,
                    destination=task.destination,
                    distance=distance,
                )
            )
            if drone.current_task is None:
                result.delivery_updates.append(
                    DeliveryUpdate(
                        order_id=task.related_order_id,
                        drone_id=drone.id,
                        status="delivered",
                        timestamp=timestamp,
                    )
                )

    def _advance_ambient(self, timestamp: str, result: TickResult):
        sensor = self.light_sensor
        sensor.simulate_light_change()

        result.reached_via_light.extend(
            self.detector.shade_contacts(
                self.registry.all(),
                sensor.current_light,
                sensor.light_threshold,
                timestamp,
            )
        )

        ambient_alert = sensor.check_alert()
        if ambient_alert is not None:
            result.light_alerts.append(ambient_alert)

        result.ambient = sensor.sensor_data()
