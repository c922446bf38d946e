"""
Motion & Battery Model - per-tick position, battery and light update.

Delivering drones close 10% of the remaining vector to their destination
each tick and snap onto it once inside the arrival tolerance. Idle (and
charging) drones drift with a small symmetric jitter and recharge.

All distances are raw Euclidean lat/lng degrees, not meters.
"""

import logging

import numpy as np

from .models import Drone, DroneMode, Task, TaskStatus, clamp_percent

logger = logging.getLogger(__name__)


class MotionModel:
    """
    Deterministic given its random source.

    The random source is a ``numpy.random.Generator`` or any object with
    ``random()`` and ``uniform(low, high)``.
    """

    def __init__(self, config: dict, rng):
        self.rng = rng

        self.arrival_tolerance = config["motion"]["arrival_tolerance_deg"]
        self.step_fraction = config["motion"]["step_fraction"]
        self.idle_jitter = config["motion"]["idle_jitter_deg"]

        self.drain_per_tick = config["battery"]["drain_per_tick"]
        self.arrival_cost = config["battery"]["arrival_cost"]
        self.idle_recovery = config["battery"]["idle_recovery"]

        self.light_offset = config["light"]["drift_offset"]

    def distance_to_destination(self, drone: Drone, task: Task) -> float:
        return drone.position.distance_to(task.destination)

    def has_arrived(self, distance: float) -> bool:
        return distance < self.arrival_tolerance

    def complete_delivery(self, drone: Drone, task: Task, timestamp: str):
        """Snap onto the destination and release the drone"""
        drone.position = task.destination
        drone.mode = DroneMode.IDLE
        drone.current_task = None
        drone.battery = clamp_percent(drone.battery - self.arrival_cost)

        task.status = TaskStatus.COMPLETED
        task.updated_at = timestamp
        logger.info(f"Drone {drone.id} completed task {task.id}")

    def step_toward(self, drone: Drone, task: Task, timestamp: str):
        """Advance a fraction of the remaining vector"""
        delta = task.destination.as_array() - drone.position.as_array()
        dlat, dlng = delta * self.step_fraction
        drone.position = drone.position.offset(float(dlat), float(dlng))
        drone.battery = clamp_percent(drone.battery - self.drain_per_tick)

        task.status = TaskStatus.IN_PROGRESS
        task.updated_at = timestamp
        logger.debug(
            f"Drone {drone.id} moved to {drone.position}, battery {drone.battery:.1f}%"
        )

    def drift(self, drone: Drone):
        """Idle jitter plus recharge"""
        dlat = self.rng.uniform(-self.idle_jitter, self.idle_jitter)
        dlng = self.rng.uniform(-self.idle_jitter, self.idle_jitter)
        drone.position = drone.position.offset(float(dlat), float(dlng))
        drone.battery = clamp_percent(drone.battery + self.idle_recovery)

    def light_step(self, light: float, step: float) -> float:
        """Biased random walk: decays on average, spikes upward sometimes"""
        change = (self.rng.random() - self.light_offset) * step
        return float(np.clip(light + change, 0.0, 100.0))

    def advance_light(self, drone: Drone, step: float):
        drone.light = self.light_step(drone.light, step)
