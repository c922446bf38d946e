"""
Fleet data model - drones, tasks, orders and delivery records.

Key Classes:
    LatLng: Immutable decimal-degree coordinate
    Drone: Mutable drone state owned by the FleetRegistry
    Task: Delivery task bound to exactly one drone
    TaskSpec: Caller-supplied task request (validated by the TaskAssigner)
    Order: External order handed to auto-assignment
    DeliveryRecord: Durable record created by auto-assignment

Drone Modes:
    IDLE: Available for assignment, drifting and recharging
    DELIVERING: Bound to a task (mode == DELIVERING <=> current_task is set)
    CHARGING: Reserved; treated like IDLE by the motion model

Task Lifecycle:
    1. ASSIGNED: Created by a successful assignment
    2. IN_PROGRESS: Drone moved towards the destination at least once
    3. COMPLETED: Drone came within the arrival tolerance
    4. FAILED: Never produced by the engine, reserved for callers
"""

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

import numpy as np


def iso_timestamp(epoch_seconds: float) -> str:
    """Format an epoch timestamp as an ISO-8601 UTC string"""
    return datetime.fromtimestamp(epoch_seconds, tz=timezone.utc).isoformat()


def clamp_percent(value: float) -> float:
    """Clamp a reading into [0, 100]"""
    return float(np.clip(value, 0.0, 100.0))


def coerce_percent(value: Any) -> Optional[float]:
    """
    Coerce an external reading to a clamped float.

    Returns None when the value is not a number (or NaN) so callers can
    ignore it instead of raising.
    """
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return clamp_percent(number)


class DroneMode(Enum):
    IDLE = "idle"
    DELIVERING = "delivering"
    CHARGING = "charging"


class TaskStatus(Enum):
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class LatLng:
    """Coordinate in decimal degrees"""

    lat: float
    lng: float

    @classmethod
    def from_dict(cls, data: Any) -> "LatLng":
        """Parse ``{"lat": .., "lng": ..}``; raises ValueError when malformed"""
        if isinstance(data, LatLng):
            return data
        if not isinstance(data, dict) or "lat" not in data or "lng" not in data:
            raise ValueError(f"Invalid coordinate: {data!r}")
        try:
            lat, lng = float(data["lat"]), float(data["lng"])
        except (TypeError, ValueError):
            raise ValueError(f"Invalid coordinate: {data!r}")
        if not (math.isfinite(lat) and math.isfinite(lng)):
            raise ValueError(f"Invalid coordinate: {data!r}")
        return cls(lat=lat, lng=lng)

    def as_array(self) -> np.ndarray:
        return np.array([self.lat, self.lng])

    def offset(self, dlat: float, dlng: float) -> "LatLng":
        return LatLng(lat=self.lat + dlat, lng=self.lng + dlng)

    def distance_to(self, other: "LatLng") -> float:
        """Raw Euclidean distance in degree space (not geodesic)"""
        return float(np.linalg.norm(other.as_array() - self.as_array()))

    def to_dict(self) -> Dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}


@dataclass
class Task:
    """Delivery task definition"""

    id: str
    drone_id: str
    destination: LatLng
    description: str
    type: str = "delivery"
    status: TaskStatus = TaskStatus.ASSIGNED
    related_order_id: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "drone_id": self.drone_id,
            "type": self.type,
            "description": self.description,
            "destination": self.destination.to_dict(),
            "status": self.status.value,
            "related_order_id": self.related_order_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def snapshot(self) -> "Task":
        return replace(self)


@dataclass
class Drone:
    """
    Drone state tracked by the fleet registry.

    Attributes:
        id: Unique, immutable identifier
        name: Display name
        position: Current coordinate (replaced, never mutated in place)
        battery: State of charge, always within [0, 100]
        capacity: Payload capacity
        mode: IDLE, DELIVERING or CHARGING
        current_task: Task being executed, None unless DELIVERING
        light: Simulated ambient light reading within [0, 100]
        light_threshold: Alert threshold within [0, 100]
        light_alert: Derived flag, light > light_threshold
        approaching_alert_sent: One-shot latch for the current task
        in_sensor_range: Latest proximity state
        created_at: ISO timestamp of registration
    """

    id: str
    name: str
    position: LatLng
    battery: float = 100.0
    capacity: int = 10
    mode: DroneMode = DroneMode.IDLE
    current_task: Optional[Task] = None
    light: float = 0.0
    light_threshold: float = 50.0
    light_alert: bool = False
    approaching_alert_sent: bool = False
    in_sensor_range: bool = False
    created_at: str = ""

    @property
    def is_available(self) -> bool:
        return self.mode is DroneMode.IDLE

    def reset_proximity(self):
        """Clear the approaching latch and sensor range state"""
        self.approaching_alert_sent = False
        self.in_sensor_range = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.mode.value,
            "position": self.position.to_dict(),
            "battery": self.battery,
            "capacity": self.capacity,
            "light": self.light,
            "light_threshold": self.light_threshold,
            "light_alert": self.light_alert,
            "current_task": self.current_task.to_dict() if self.current_task else None,
            "approaching_alert_sent": self.approaching_alert_sent,
            "in_sensor_range": self.in_sensor_range,
            "created_at": self.created_at,
        }

    def snapshot(self) -> "Drone":
        """Shallow copy safe to hand to a background writer"""
        return replace(self)


@dataclass
class TaskSpec:
    """Task request supplied by a caller; destination is None when missing"""

    destination: Optional[LatLng] = None
    description: Optional[str] = None
    type: Optional[str] = None
    related_order_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "TaskSpec":
        if not isinstance(data, dict):
            data = {}
        try:
            destination = LatLng.from_dict(data.get("destination"))
        except ValueError:
            destination = None
        return cls(
            destination=destination,
            description=data.get("description"),
            type=data.get("type"),
            related_order_id=data.get("related_order_id"),
        )


@dataclass
class Order:
    """Order handed over by the external ordering workflow"""

    id: str
    delivery_position: Optional[LatLng]
    pickup_position: Optional[LatLng] = None
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Order":
        if not isinstance(data, dict):
            raise ValueError("Order must be a mapping")
        if not data.get("id"):
            raise ValueError("Order id is required")
        try:
            delivery = LatLng.from_dict(data.get("delivery_position"))
        except ValueError:
            delivery = None
        pickup = data.get("pickup_position")
        return cls(
            id=str(data["id"]),
            delivery_position=delivery,
            pickup_position=LatLng.from_dict(pickup) if pickup else None,
            description=data.get("description"),
        )


@dataclass
class DeliveryRecord:
    """Drone delivery record produced by auto-assignment"""

    id: str
    order_id: str
    drone_id: str
    pickup_position: LatLng
    dropoff_position: LatLng
    current_position: LatLng
    estimated_time: int
    status: str = "assigned"
    route: List[LatLng] = field(default_factory=list)
    actual_time: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "drone_id": self.drone_id,
            "status": self.status,
            "pickup_position": self.pickup_position.to_dict(),
            "dropoff_position": self.dropoff_position.to_dict(),
            "route": [point.to_dict() for point in self.route],
            "current_position": self.current_position.to_dict(),
            "estimated_time": self.estimated_time,
            "actual_time": self.actual_time,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
