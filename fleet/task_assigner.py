"""
Task Assigner - validates and binds tasks to eligible drones.

Checks are sequential and the first failure wins:

Manual Assignment (``assign``):
    1. Drone exists              -> DRONE_NOT_FOUND
    2. Drone is idle             -> DRONE_UNAVAILABLE
    3. Battery >= min_battery    -> LOW_BATTERY
    4. Destination supplied      -> INVALID_DESTINATION

Auto Assignment (``auto_assign``):
    Candidates are idle drones with battery > min_auto_battery. The one
    closest to the pickup point wins; ties go to the earliest registered
    drone. An empty candidate set yields NO_DRONE_AVAILABLE.

Rejections are returned as values and are never retried. A successful
assignment mutates both records, persists them, and returns them.

Example:
    >>> assigner = TaskAssigner(config, registry)
    >>> result = assigner.assign("DR001", TaskSpec(destination=LatLng(39.91, 116.41)))
    >>> result.success, result.drone.mode
    (True, <DroneMode.DELIVERING: 'delivering'>)
"""

import itertools
import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .models import (
    DeliveryRecord,
    Drone,
    DroneMode,
    LatLng,
    Order,
    Task,
    TaskSpec,
    TaskStatus,
    iso_timestamp,
)
from .registry import FleetRegistry

logger = logging.getLogger(__name__)


class ErrorKind(Enum):
    NOT_FOUND = "not_found"
    PRECONDITION_FAILED = "precondition_failed"
    VALIDATION_FAILED = "validation_failed"


class RejectionReason(Enum):
    DRONE_NOT_FOUND = "drone_not_found"
    DRONE_UNAVAILABLE = "drone_unavailable"
    LOW_BATTERY = "low_battery"
    NO_DRONE_AVAILABLE = "no_drone_available"
    INVALID_DESTINATION = "invalid_destination"

    @property
    def kind(self) -> ErrorKind:
        if self is RejectionReason.DRONE_NOT_FOUND:
            return ErrorKind.NOT_FOUND
        if self is RejectionReason.INVALID_DESTINATION:
            return ErrorKind.VALIDATION_FAILED
        return ErrorKind.PRECONDITION_FAILED


@dataclass
class AssignmentResult:
    """Outcome of an assignment request"""

    success: bool
    message: str
    task: Optional[Task] = None
    drone: Optional[Drone] = None
    reason: Optional[RejectionReason] = None
    delivery: Optional[DeliveryRecord] = None

    @classmethod
    def rejected(cls, reason: RejectionReason, message: str) -> "AssignmentResult":
        return cls(success=False, message=message, reason=reason)

    def to_dict(self) -> dict:
        result = {"success": self.success, "message": self.message}
        if self.success:
            result["task"] = self.task.to_dict()
            result["drone"] = self.drone.to_dict()
            if self.delivery is not None:
                result["delivery"] = self.delivery.to_dict()
        else:
            result["error"] = self.reason.value
            result["error_kind"] = self.reason.kind.value
        return result


class TaskAssigner:
    """
    Binds tasks to drones held by a FleetRegistry
    """

    def __init__(self, config: dict, registry: FleetRegistry):
        self.registry = registry

        assignment = config["assignment"]
        self.min_battery = assignment["min_battery"]
        self.min_auto_battery = assignment["min_auto_battery"]
        self.default_pickup = LatLng.from_dict(assignment["default_pickup"])
        self.estimated_time_factor = assignment["estimated_time_factor"]
        self.default_type = assignment["default_task_type"]
        self.default_description = assignment["default_description"]

        self.tasks: dict = {}  # Task ID -> Task, insertion order
        self._task_seq = itertools.count(1)
        self._delivery_seq = itertools.count(1)

    def assign(self, drone_id: str, spec: TaskSpec) -> AssignmentResult:
        """Assign a task to a specific drone"""
        drone = self.registry.get(drone_id)
        if drone is None:
            return self._reject(
                RejectionReason.DRONE_NOT_FOUND, f"Drone {drone_id} does not exist"
            )

        if not drone.is_available:
            return self._reject(
                RejectionReason.DRONE_UNAVAILABLE,
                f"Drone {drone_id} is currently {drone.mode.value}",
            )

        if drone.battery < self.min_battery:
            return self._reject(
                RejectionReason.LOW_BATTERY,
                f"Drone {drone_id} battery too low ({drone.battery:.1f}%)",
            )

        if spec.destination is None:
            return self._reject(
                RejectionReason.INVALID_DESTINATION, "Task destination is required"
            )

        task = self._bind(drone, spec)
        return AssignmentResult(
            success=True, message="Task assigned", task=task, drone=drone
        )

    def auto_assign(self, order: Order) -> AssignmentResult:
        """Assign an order to the eligible drone closest to its pickup point"""
        if order.delivery_position is None:
            return self._reject(
                RejectionReason.INVALID_DESTINATION,
                f"Order {order.id} has no delivery position",
            )

        pickup = order.pickup_position or self.default_pickup

        candidates = [
            drone
            for drone in self.registry.all()
            if drone.is_available and drone.battery > self.min_auto_battery
        ]
        if not candidates:
            return self._reject(
                RejectionReason.NO_DRONE_AVAILABLE,
                f"No drone available for order {order.id}",
            )

        # min() keeps the first of equal keys, i.e. registry order
        selected = min(candidates, key=lambda d: d.position.distance_to(pickup))

        spec = TaskSpec(
            destination=order.delivery_position,
            description=order.description or f"Deliver order {order.id}",
            type="delivery",
            related_order_id=order.id,
        )
        task = self._bind(selected, spec)
        delivery = self._create_delivery(order, selected, pickup)

        return AssignmentResult(
            success=True,
            message=f"Order {order.id} assigned to drone {selected.id}",
            task=task,
            drone=selected,
            delivery=delivery,
        )

    def _bind(self, drone: Drone, spec: TaskSpec) -> Task:
        now = iso_timestamp(self.registry.clock())
        task = Task(
            id=f"TSK{next(self._task_seq):06d}",
            drone_id=drone.id,
            destination=spec.destination,
            description=spec.description or self.default_description,
            type=spec.type or self.default_type,
            status=TaskStatus.ASSIGNED,
            related_order_id=spec.related_order_id,
            created_at=now,
            updated_at=now,
        )

        drone.mode = DroneMode.DELIVERING
        drone.current_task = task
        drone.reset_proximity()

        self.tasks[task.id] = task
        self.registry.store.save_task(task)
        self.registry.store.save_drone(drone)

        logger.info(f"Assigned task {task.id} to drone {drone.id} -> {task.destination}")
        return task

    def _create_delivery(
        self, order: Order, drone: Drone, pickup: LatLng
    ) -> DeliveryRecord:
        now = iso_timestamp(self.registry.clock())
        dropoff = order.delivery_position
        delivery = DeliveryRecord(
            id=f"DEL{next(self._delivery_seq):06d}",
            order_id=order.id,
            drone_id=drone.id,
            pickup_position=pickup,
            dropoff_position=dropoff,
            current_position=drone.position,
            route=[pickup, dropoff],
            estimated_time=math.ceil(
                pickup.distance_to(dropoff) * self.estimated_time_factor
            ),
            created_at=now,
            updated_at=now,
        )
        self.registry.store.save_delivery(delivery)
        return delivery

    def _reject(self, reason: RejectionReason, message: str) -> AssignmentResult:
        logger.warning(f"Assignment rejected ({reason.value}): {message}")
        return AssignmentResult.rejected(reason, message)

    def all_tasks(self):
        return list(self.tasks.values())

    def tasks_for_drone(self, drone_id: str):
        return [task for task in self.tasks.values() if task.drone_id == drone_id]

    def count_by_status(self) -> dict:
        counts = {status.value: 0 for status in TaskStatus}
        for task in self.tasks.values():
            counts[task.status.value] += 1
        return counts
