"""
Unit tests for proximity, light alert and shade contact detection

Tests cover:
- Sensor range rising edge with per-task latch
- Light alert flag recomputation
- Shade contacts while the ambient sensor is below threshold
"""
import pytest
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from fleet.detector import ProximityDetector  # noqa: E402
from fleet.models import Drone, DroneMode, Task  # noqa: E402


@pytest.fixture
def detector(config):
    return ProximityDetector(config)


@pytest.fixture
def drone_and_task(depot):
    task = Task(
        id="TSK000001",
        drone_id="D1",
        destination=depot.offset(0.003, 0.0),
        description="Medical supplies",
    )
    drone = Drone(
        id="D1",
        name="Courier",
        position=depot,
        mode=DroneMode.DELIVERING,
        current_task=task,
    )
    return drone, task


class TestProximityEdge:
    """Approaching fires once on entering sensor range"""

    def test_outside_range_no_event(self, detector, drone_and_task):
        drone, task = drone_and_task

        event = detector.check_proximity(drone, task, 0.003, "t1")

        assert event is None
        assert drone.in_sensor_range is False

    def test_rising_edge_emits_event(self, detector, drone_and_task):
        drone, task = drone_and_task

        event = detector.check_proximity(drone, task, 0.0019, "t1")

        assert event is not None
        assert event.kind == "approaching"
        assert event.drone_id == "D1"
        assert event.task_id == "TSK000001"
        assert event.task_description == "Medical supplies"
        assert event.distance == pytest.approx(0.0019)
        assert drone.in_sensor_range is True
        assert drone.approaching_alert_sent is True

    def test_range_boundary_is_strict(self, detector, drone_and_task):
        drone, task = drone_and_task

        assert detector.check_proximity(drone, task, 0.002, "t1") is None

    def test_staying_in_range_no_repeat(self, detector, drone_and_task):
        drone, task = drone_and_task

        detector.check_proximity(drone, task, 0.0019, "t1")
        assert detector.check_proximity(drone, task, 0.0015, "t2") is None

    def test_latch_blocks_reentry(self, detector, drone_and_task):
        """Leaving and re-entering range within one task does not re-fire"""
        drone, task = drone_and_task

        detector.check_proximity(drone, task, 0.0019, "t1")
        detector.check_proximity(drone, task, 0.0025, "t2")
        assert drone.in_sensor_range is False

        assert detector.check_proximity(drone, task, 0.0018, "t3") is None

    def test_reset_rearms_edge(self, detector, drone_and_task):
        drone, task = drone_and_task

        detector.check_proximity(drone, task, 0.0019, "t1")
        drone.reset_proximity()

        assert detector.check_proximity(drone, task, 0.0019, "t2") is not None

    def test_arrival_event(self, detector, drone_and_task):
        drone, task = drone_and_task

        event = detector.arrival(drone, task, "t5")

        assert event.kind == "arrived"
        assert event.destination == task.destination
        assert event.to_dict()["destination"] == task.destination.to_dict()


class TestLightAlert:
    """light_alert <=> light > light_threshold"""

    def test_above_threshold(self, detector, depot):
        drone = Drone(id="D1", name="Courier", position=depot, light=60.0)

        alert = detector.light_alert(drone, "t1")

        assert drone.light_alert is True
        assert alert.drone_id == "D1"
        assert alert.light == 60.0
        assert alert.threshold == 50.0

    def test_equal_is_not_alert(self, detector, depot):
        drone = Drone(id="D1", name="Courier", position=depot, light=50.0)

        assert detector.light_alert(drone, "t1") is None
        assert drone.light_alert is False

    def test_flag_cleared_when_light_drops(self, detector, depot):
        drone = Drone(id="D1", name="Courier", position=depot, light=80.0)
        detector.light_alert(drone, "t1")

        drone.light = 10.0
        detector.light_alert(drone, "t2")

        assert drone.light_alert is False

    def test_no_cooldown_for_drone_alerts(self, detector, depot):
        drone = Drone(id="D1", name="Courier", position=depot, light=80.0)

        assert detector.light_alert(drone, "t1") is not None
        assert detector.light_alert(drone, "t1") is not None


class TestShadeContacts:
    """ReachedViaLight for drones in range while the ambient sensor is shaded"""

    def test_only_drones_in_range(self, detector, depot):
        inside = Drone(id="IN", name="Inside", position=depot, in_sensor_range=True)
        outside = Drone(id="OUT", name="Outside", position=depot)

        events = detector.shade_contacts([inside, outside], 20.0, 50.0, "t1")

        assert [e.drone_id for e in events] == ["IN"]
        assert events[0].light == 20.0
        assert events[0].in_sensor_range is True

    def test_bright_ambient_no_contacts(self, detector, depot):
        inside = Drone(id="IN", name="Inside", position=depot, in_sensor_range=True)

        assert detector.shade_contacts([inside], 50.0, 50.0, "t1") == []
        assert detector.shade_contacts([inside], 70.0, 50.0, "t1") == []
