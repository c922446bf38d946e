"""
Proximity & Alert Detector - derives discrete events from drone state.

Detection Rules:
    1. Sensor range: ``in_sensor_range = distance < sensor_range``. The rising
       edge emits one Approaching event, guarded by a per-task latch so a
       task never produces more than one.
    2. Light alert: ``light_alert = light > light_threshold``, recomputed
       every tick and on explicit light or threshold updates. Per-drone
       alerts carry no cooldown; only the shared ambient sensor has one
       (see AmbientLightSensor).
    3. Shade contact: while the ambient sensor reads below its threshold,
       every drone in sensor range yields a ReachedViaLight event.
"""

import logging
from typing import List, Optional

from .events import Approaching, Arrived, LightAlert, ReachedViaLight
from .models import Drone, Task

logger = logging.getLogger(__name__)


class ProximityDetector:
    """Edge and threshold detection over drone state"""

    def __init__(self, config: dict):
        self.sensor_range = config["proximity"]["sensor_range_deg"]

    def check_proximity(
        self, drone: Drone, task: Task, distance: float, timestamp: str
    ) -> Optional[Approaching]:
        """Update in_sensor_range; return an event on the latched rising edge"""
        was_in_range = drone.in_sensor_range
        drone.in_sensor_range = distance < self.sensor_range

        if drone.in_sensor_range and not was_in_range and not drone.approaching_alert_sent:
            drone.approaching_alert_sent = True
            logger.info(
                f"Drone {drone.id} approaching destination of task {task.id} "
                f"({distance:.5f} deg)"
            )
            return Approaching(
                drone_id=drone.id,
                drone_name=drone.name,
                task_id=task.id,
                task_description=task.description,
                destination=task.destination,
                distance=distance,
                timestamp=timestamp,
            )
        return None

    def arrival(self, drone: Drone, task: Task, timestamp: str) -> Arrived:
        return Arrived(
            drone_id=drone.id,
            drone_name=drone.name,
            task_id=task.id,
            task_description=task.description,
            destination=task.destination,
            timestamp=timestamp,
        )

    @staticmethod
    def refresh_light_alert(drone: Drone) -> bool:
        drone.light_alert = drone.light > drone.light_threshold
        return drone.light_alert

    def light_alert(self, drone: Drone, timestamp: str) -> Optional[LightAlert]:
        """Refresh the flag and return an alert event when it is set"""
        if not self.refresh_light_alert(drone):
            return None
        return LightAlert(
            drone_id=drone.id,
            drone_name=drone.name,
            light=drone.light,
            threshold=drone.light_threshold,
            timestamp=timestamp,
        )

    def shade_contacts(
        self,
        drones: List[Drone],
        ambient_light: float,
        ambient_threshold: float,
        timestamp: str,
    ) -> List[ReachedViaLight]:
        if not ambient_light < ambient_threshold:
            return []
        return [
            ReachedViaLight(
                drone_id=drone.id,
                drone_name=drone.name,
                light=ambient_light,
                threshold=ambient_threshold,
                in_sensor_range=drone.in_sensor_range,
                timestamp=timestamp,
            )
            for drone in drones
            if drone.in_sensor_range
        ]
