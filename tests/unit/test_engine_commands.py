"""
Unit tests for FleetEngine commands outside the tick

Tests cover:
- Per-drone light and threshold updates
- Ambient sensor commands
- Bulk light simulation
- Assigned events and status summary
"""
import pytest
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from fleet.engine import FleetEngine  # noqa: E402
from fleet.models import LatLng, Order, TaskSpec  # noqa: E402

from tests.conftest import FixedRandom  # noqa: E402


class TestDroneLightUpdates:
    """Test update_drone_light() and update_light_threshold()"""

    def test_light_above_threshold_alerts(self, engine):
        engine.add_drone({"id": "D1"})

        update = engine.update_drone_light("D1", 75)

        assert update.success
        assert update.drone.light == 75.0
        assert update.drone.light_alert is True
        assert update.alert.drone_id == "D1"

    def test_light_clamped(self, engine):
        engine.add_drone({"id": "D1"})

        assert engine.update_drone_light("D1", 400).drone.light == 100.0

    def test_threshold_raise_clears_alert(self, engine):
        engine.add_drone({"id": "D1", "light": 60})

        update = engine.update_light_threshold("D1", 70)

        assert update.success
        assert update.alert is None
        assert engine.get_drone("D1").light_alert is False

    def test_unknown_drone(self, engine):
        update = engine.update_drone_light("ghost", 50)

        assert not update.success
        assert update.drone is None

    def test_malformed_value_ignored(self, engine):
        engine.add_drone({"id": "D1", "light": 20})

        update = engine.update_drone_light("D1", "blinding")

        assert not update.success
        assert engine.get_drone("D1").light == 20.0


class TestAmbientCommands:
    def test_update_ambient_light(self, engine):
        assert engine.update_ambient_light(64) == 64.0
        assert engine.ambient_sensor_data()["light"] == 64.0

    def test_update_ambient_threshold(self, engine):
        assert engine.update_ambient_threshold(-10) == 0.0
        assert engine.ambient_sensor_data()["threshold"] == 0.0

    def test_malformed_ambient_ignored(self, engine):
        engine.update_ambient_light(12)

        assert engine.update_ambient_light(None) is None
        assert engine.ambient_sensor_data()["light"] == 12.0


class TestSimulateLightChanges:
    """Bulk walk uses the standalone step of 10"""

    def test_step_applied_to_every_drone(self, config, clock):
        engine = FleetEngine(config, rng=FixedRandom(value=0.8), clock=clock)
        engine.add_drone({"id": "D1", "light": 10})
        engine.add_drone({"id": "D2", "light": 48})

        engine.simulate_light_changes()

        assert engine.get_drone("D1").light == pytest.approx(15.0)
        assert engine.get_drone("D2").light == pytest.approx(53.0)
        assert engine.get_drone("D2").light_alert is True

    def test_does_not_move_drones(self, config, clock, depot):
        engine = FleetEngine(config, rng=FixedRandom(value=0.8), clock=clock)
        engine.add_drone({"id": "D1"})

        engine.simulate_light_changes()

        assert engine.get_drone("D1").position == depot
        assert engine.tick_count == 0


class TestAssignmentCommands:
    def test_assign_accepts_task_spec(self, engine):
        engine.add_drone({"id": "D1"})

        result = engine.assign_task("D1", TaskSpec(destination=LatLng(39.91, 116.41)))

        assert result.success

    def test_assign_with_malformed_destination(self, engine):
        engine.add_drone({"id": "D1"})

        result = engine.assign_task("D1", {"destination": {"lat": "x", "lng": 1}})

        assert result.reason.value == "invalid_destination"

    def test_auto_assign_accepts_order(self, engine, depot):
        engine.add_drone({"id": "D1"})

        result = engine.auto_assign(Order(id="ORD-1", delivery_position=depot))

        assert result.success

    def test_auto_assign_requires_order_id(self, engine, far_destination):
        with pytest.raises(ValueError):
            engine.auto_assign({"delivery_position": far_destination})

    def test_assigned_event(self, engine, nearby_destination):
        engine.add_drone({"id": "D1"})
        result = engine.assign_task("D1", {"destination": nearby_destination})

        event = FleetEngine.assigned_event(result)

        assert event.kind == "task_assigned"
        assert event.to_dict()["task"]["id"] == result.task.id

    def test_no_event_for_rejection(self, engine):
        result = engine.assign_task("ghost", {})

        assert FleetEngine.assigned_event(result) is None


class TestStatus:
    def test_status_counts(self, engine, nearby_destination):
        engine.add_drone({"id": "D1"})
        engine.add_drone({"id": "D2", "mode": "charging"})
        engine.assign_task("D1", {"destination": nearby_destination})

        status = engine.get_status()

        assert status["fleet"]["total"] == 2
        assert status["fleet"]["by_mode"] == {"idle": 0, "delivering": 1, "charging": 1}
        assert status["tasks"]["by_status"]["assigned"] == 1
        assert status["tick"] == 0

    def test_records_are_serializable(self, engine, nearby_destination):
        engine.add_drone({"id": "D1"})
        engine.assign_task("D1", {"destination": nearby_destination})

        record = engine.drone_records()[0]

        assert record["status"] == "delivering"
        assert record["current_task"]["destination"] == nearby_destination
        assert engine.task_records()[0]["drone_id"] == "D1"
