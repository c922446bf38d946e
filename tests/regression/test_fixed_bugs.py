"""
Regression tests for previously fixed bugs

Each test documents a bug that was found and fixed, to prevent regression.
"""
import pytest
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from fleet.engine import FleetEngine  # noqa: E402
from fleet.light_sensor import AmbientLightSensor  # noqa: E402
from fleet.registry import DuplicateDroneError, InvalidDroneError  # noqa: E402

from tests.conftest import FixedRandom, ManualClock  # noqa: E402


class TestZeroValuesKept:
    """
    BUG: Falsy overrides were replaced by defaults

    A drone registered with battery 0 came back with battery 100, and a
    light threshold of 0 was reset to 50.
    """

    def test_zero_battery(self, engine):
        assert engine.add_drone({"id": "D1", "battery": 0}).battery == 0.0

    def test_zero_threshold(self, engine):
        drone = engine.add_drone({"id": "D1", "light": 1, "light_threshold": 0})

        assert drone.light_threshold == 0.0
        assert drone.light_alert is True


class TestTaskIdCollision:
    """
    BUG: Task ids derived from the wall clock collided

    Two assignments inside the same millisecond produced the same id and
    the second task overwrote the first.
    """

    def test_same_instant_assignments(self, engine, nearby_destination):
        engine.add_drone({"id": "D1"})
        engine.add_drone({"id": "D2"})

        first = engine.assign_task("D1", {"destination": nearby_destination})
        second = engine.assign_task("D2", {"destination": nearby_destination})

        assert first.task.id != second.task.id
        assert len(engine.all_tasks()) == 2


class TestSilentOverwrite:
    """
    BUG: Re-adding a drone id silently replaced a drone mid-delivery

    The delivering drone lost its task and the task stayed IN_PROGRESS
    forever.
    """

    def test_duplicate_rejected_mid_delivery(self, engine, far_destination):
        engine.add_drone({"id": "D1"})
        engine.assign_task("D1", {"destination": far_destination})

        with pytest.raises(DuplicateDroneError):
            engine.add_drone({"id": "D1"})

        assert engine.get_drone("D1").current_task is not None


class TestOrderIdFromDescription:
    """
    BUG: Order ids were parsed out of the task description

    A caller-supplied description on an order dropped the link between the
    task and its order, so no delivery updates were produced.
    """

    def test_custom_description_keeps_order_link(self, engine, far_destination):
        engine.add_drone({"id": "D1"})
        engine.auto_assign(
            {
                "id": "ORD-9",
                "delivery_position": far_destination,
                "description": "Fragile parcel",
            }
        )

        result = engine.tick()

        assert engine.all_tasks()[0].description == "Fragile parcel"
        assert [u.order_id for u in result.delivery_updates] == ["ORD-9"]


class TestFirstAmbientAlert:
    """
    BUG: First ambient alert suppressed when the clock started near zero

    The last alert time defaulted to 0, so a clock reading under the
    cooldown swallowed the very first alert.
    """

    @pytest.mark.parametrize("start", [0.0, 2.0, 1_700_000_000.0])
    def test_first_alert_fires(self, config, start):
        sensor = AmbientLightSensor(config, clock=ManualClock(start=start))
        sensor.update_light(80)

        assert sensor.check_alert() is not None


class TestStaleLatchAfterArrival:
    """
    BUG: Proximity latch survived arrival

    A drone reassigned right after arriving never announced its second
    approach.
    """

    def test_latch_cleared_on_arrival(self, config, nearby_destination):
        engine = FleetEngine(config, rng=FixedRandom(), clock=ManualClock())
        engine.add_drone({"id": "D1"})
        engine.assign_task("D1", {"destination": nearby_destination})
        engine.tick()

        drone = engine.get_drone("D1")
        assert drone.approaching_alert_sent is False
        assert drone.in_sensor_range is False

        engine.assign_task("D1", {"destination": nearby_destination})
        assert len(engine.tick().approaching) == 1


class TestNanReadings:
    """
    BUG: NaN battery or light accepted on add

    np.clip passes NaN through, and ``nan < 20`` is False, so a drone with
    an undefined battery could be assigned work and broke the range
    invariants on every tick.
    """

    def test_nan_drone_never_enters_fleet(self, engine, nearby_destination):
        with pytest.raises(InvalidDroneError):
            engine.add_drone({"id": "D1", "battery": "nan", "light": float("nan")})

        result = engine.assign_task("D1", {"destination": nearby_destination})
        engine.tick()

        assert not result.success
        assert engine.invariant_violations() == []
