"""
Fleet Store - durable records for drones, tasks and deliveries.

The engine is the source of truth in memory; stores only receive upserts
keyed by id. Store failures are logged here and never reach the simulation.

Key Classes:
    FleetStore: Abstract persistence collaborator
    InMemoryFleetStore: Dict-backed store (tests, ephemeral runs)
    SqlFleetStore: SQLAlchemy Core store (SQLite by default)
    BackgroundStore: Queue + writer thread so saves never block a tick

Usage:
    >>> store = BackgroundStore(SqlFleetStore("sqlite:///drone_fleet.db"))
    >>> store.start()
    >>> engine = FleetEngine(config, store=store)
    >>> ...
    >>> store.stop()
"""

import json
import logging
import queue
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from sqlalchemy import (
    Column,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    select,
)
from sqlalchemy.exc import SQLAlchemyError

from .models import DeliveryRecord, Drone, Task

logger = logging.getLogger(__name__)


class FleetStore(ABC):
    """Persistence collaborator; all saves are upserts keyed by id"""

    @abstractmethod
    def save_drone(self, drone: Drone):
        pass

    @abstractmethod
    def save_task(self, task: Task):
        pass

    @abstractmethod
    def save_delivery(self, delivery: DeliveryRecord):
        pass


class InMemoryFleetStore(FleetStore):
    """Keeps the latest serialized record per id"""

    def __init__(self):
        self.drones: Dict[str, dict] = {}
        self.tasks: Dict[str, dict] = {}
        self.deliveries: Dict[str, dict] = {}

    def save_drone(self, drone: Drone):
        self.drones[drone.id] = drone.to_dict()

    def save_task(self, task: Task):
        self.tasks[task.id] = task.to_dict()

    def save_delivery(self, delivery: DeliveryRecord):
        self.deliveries[delivery.id] = delivery.to_dict()


metadata = MetaData()

drones_table = Table(
    "drones",
    metadata,
    Column("id", String, primary_key=True),
    Column("name", String, nullable=False),
    Column("status", String, nullable=False),
    Column("position", Text),
    Column("battery", Float),
    Column("capacity", Integer),
    Column("created_at", String),
)

tasks_table = Table(
    "tasks",
    metadata,
    Column("id", String, primary_key=True),
    Column("drone_id", String, ForeignKey("drones.id")),
    Column("type", String),
    Column("description", Text),
    Column("destination", Text),
    Column("status", String),
    Column("related_order_id", String),
    Column("created_at", String),
    Column("updated_at", String),
)

deliveries_table = Table(
    "drone_deliveries",
    metadata,
    Column("id", String, primary_key=True),
    Column("order_id", String),
    Column("drone_id", String, ForeignKey("drones.id")),
    Column("status", String),
    Column("pickup_position", Text),
    Column("dropoff_position", Text),
    Column("route", Text),
    Column("current_position", Text),
    Column("estimated_time", Integer),
    Column("actual_time", Integer),
    Column("created_at", String),
    Column("updated_at", String),
)


class SqlFleetStore(FleetStore):
    """
    SQLAlchemy Core store.

    Coordinates are stored as JSON text. Upserts are an UPDATE followed by
    an INSERT when no row matched, which works on any backend.
    """

    def __init__(self, url: str = "sqlite:///drone_fleet.db"):
        self.engine = create_engine(url)
        metadata.create_all(self.engine)
        logger.info(f"Connected to fleet database {self.engine.url}")

    def _upsert(self, table: Table, row: dict):
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    table.update().where(table.c.id == row["id"]).values(**row)
                )
                if result.rowcount == 0:
                    conn.execute(table.insert().values(**row))
        except SQLAlchemyError as e:
            logger.error(f"Failed to save {table.name} row {row['id']}: {e}")

    def save_drone(self, drone: Drone):
        self._upsert(
            drones_table,
            {
                "id": drone.id,
                "name": drone.name,
                "status": drone.mode.value,
                "position": json.dumps(drone.position.to_dict()),
                "battery": drone.battery,
                "capacity": drone.capacity,
                "created_at": drone.created_at,
            },
        )

    def save_task(self, task: Task):
        self._upsert(
            tasks_table,
            {
                "id": task.id,
                "drone_id": task.drone_id,
                "type": task.type,
                "description": task.description,
                "destination": json.dumps(task.destination.to_dict()),
                "status": task.status.value,
                "related_order_id": task.related_order_id,
                "created_at": task.created_at,
                "updated_at": task.updated_at,
            },
        )

    def save_delivery(self, delivery: DeliveryRecord):
        self._upsert(
            deliveries_table,
            {
                "id": delivery.id,
                "order_id": delivery.order_id,
                "drone_id": delivery.drone_id,
                "status": delivery.status,
                "pickup_position": json.dumps(delivery.pickup_position.to_dict()),
                "dropoff_position": json.dumps(delivery.dropoff_position.to_dict()),
                "route": json.dumps([p.to_dict() for p in delivery.route]),
                "current_position": json.dumps(delivery.current_position.to_dict()),
                "estimated_time": delivery.estimated_time,
                "actual_time": delivery.actual_time,
                "created_at": delivery.created_at,
                "updated_at": delivery.updated_at,
            },
        )

    def _load(self, table: Table, json_columns: List[str]) -> List[dict]:
        with self.engine.connect() as conn:
            rows = conn.execute(select(table)).mappings().all()
        records = []
        for row in rows:
            record = dict(row)
            for column in json_columns:
                if record.get(column) is not None:
                    record[column] = json.loads(record[column])
            records.append(record)
        return records

    def load_drones(self) -> List[dict]:
        return self._load(drones_table, ["position"])

    def load_tasks(self) -> List[dict]:
        return self._load(tasks_table, ["destination"])

    def load_deliveries(self) -> List[dict]:
        return self._load(
            deliveries_table,
            ["pickup_position", "dropoff_position", "route", "current_position"],
        )


class BackgroundStore(FleetStore):
    """
    Fire-and-forget wrapper: snapshots records and writes them on a
    daemon thread.
    """

    _STOP = object()

    def __init__(self, store: FleetStore):
        self.store = store
        self._queue: "queue.Queue" = queue.Queue()
        self._writer: Optional[threading.Thread] = None

    def start(self):
        """Start the writer thread"""
        if self._writer and self._writer.is_alive():
            return
        self._writer = threading.Thread(target=self._write_loop, daemon=True)
        self._writer.start()
        logger.info("Background store writer started")

    def stop(self):
        """Drain pending writes and stop the writer thread"""
        if self._writer is None:
            return
        self._queue.put(self._STOP)
        self._writer.join()
        self._writer = None
        logger.info("Background store writer stopped")

    def flush(self):
        """Block until every queued write has been attempted"""
        self._queue.join()

    def _write_loop(self):
        while True:
            item = self._queue.get()
            try:
                if item is self._STOP:
                    return
                method, record = item
                getattr(self.store, method)(record)
            except Exception as e:
                logger.error(f"Background write failed: {e}")
            finally:
                self._queue.task_done()

    def save_drone(self, drone: Drone):
        self._queue.put(("save_drone", drone.snapshot()))

    def save_task(self, task: Task):
        self._queue.put(("save_task", task.snapshot()))

    def save_delivery(self, delivery: DeliveryRecord):
        self._queue.put(("save_delivery", delivery))
