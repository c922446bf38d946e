"""
Engine events - typed records derived from state transitions.

Events are transient: the engine returns them from ``tick()`` and from
commands, and the transport layer fans them out. Nothing here is stored.
"""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Iterator, List, Optional

from .models import Drone, LatLng, Task


@dataclass
class TaskAssigned:
    task: Task
    drone: Drone
    kind: str = field(default="task_assigned", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "task": self.task.to_dict(),
            "drone": self.drone.to_dict(),
        }


@dataclass
class Approaching:
    drone_id: str
    drone_name: str
    task_id: str
    task_description: str
    destination: LatLng
    distance: float
    timestamp: str
    kind: str = field(default="approaching", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Arrived:
    drone_id: str
    drone_name: str
    task_id: str
    task_description: str
    destination: LatLng
    timestamp: str
    kind: str = field(default="arrived", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class LightAlert:
    """Light above threshold; drone_id is None for the ambient sensor"""

    light: float
    threshold: float
    timestamp: str
    drone_id: Optional[str] = None
    drone_name: Optional[str] = None
    kind: str = field(default="light_alert", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ReachedViaLight:
    """Drone in sensor range while the ambient sensor reads shaded"""

    drone_id: str
    drone_name: str
    light: float
    threshold: float
    in_sensor_range: bool
    timestamp: str
    kind: str = field(default="reached_via_light", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DeliveryUpdate:
    """Progress of an order-backed task"""

    order_id: str
    drone_id: str
    status: str
    timestamp: str
    current_position: Optional[LatLng] = None
    old_position: Optional[LatLng] = None
    destination: Optional[LatLng] = None
    distance: Optional[float] = None
    kind: str = field(default="delivery_update", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class TickResult:
    """
    Event batch produced by one engine tick.

    Within each list, order follows fleet registry iteration order.
    """

    tick: int
    arrived: List[Arrived] = field(default_factory=list)
    approaching: List[Approaching] = field(default_factory=list)
    light_alerts: List[LightAlert] = field(default_factory=list)
    reached_via_light: List[ReachedViaLight] = field(default_factory=list)
    delivery_updates: List[DeliveryUpdate] = field(default_factory=list)
    ambient: Dict[str, Any] = field(default_factory=dict)

    def events(self) -> Iterator[Any]:
        yield from self.approaching
        yield from self.arrived
        yield from self.delivery_updates
        yield from self.reached_via_light
        yield from self.light_alerts

    def is_empty(self) -> bool:
        return not any(True for _ in self.events())
