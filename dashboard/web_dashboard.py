"""
Delivery Fleet - Web Dashboard

Thin transport over the fleet engine: REST routes for commands and queries,
Socket.IO handlers for interactive clients, and a DashboardBridge that
ticks the engine and broadcasts each event batch.

HTTP Routes:
    GET  /api/drones                 Fleet snapshot
    GET  /api/drones/<id>            One drone (404 when unknown)
    POST /api/drones                 Register a drone (?upsert=true to replace)
    POST /api/drones/<id>/task       Assign a task to a drone
    GET  /api/tasks                  All tasks
    POST /api/orders/assign          Auto-assign an order to the nearest drone
    GET  /api/light                  Ambient sensor data
    POST /api/light                  Set ambient light
    GET  /api/light/threshold        Ambient threshold
    POST /api/light/threshold        Set ambient threshold
    GET  /api/status                 Fleet/task/sensor summary

Socket Events (client -> server):
    assign_task, update_light, update_light_threshold
"""

import logging
from typing import Tuple

from flask import Flask, jsonify, request
from flask_socketio import SocketIO, emit

from fleet.config import load_config
from fleet.engine import FleetEngine
from fleet.persistence import BackgroundStore, SqlFleetStore
from fleet.registry import DuplicateDroneError, InvalidDroneError
from fleet.task_assigner import AssignmentResult, ErrorKind

from .dashboard_bridge import DashboardBridge

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.PRECONDITION_FAILED: 409,
    ErrorKind.VALIDATION_FAILED: 400,
}


def json_object():
    """Request JSON body when it is an object, else None"""
    body = request.get_json(silent=True)
    if body is None:
        return {}
    return body if isinstance(body, dict) else None


def bad_body():
    return jsonify({"error": "Request body must be a JSON object"}), 400


def assignment_status(result: AssignmentResult) -> int:
    if result.success:
        return 200
    return STATUS_BY_KIND[result.reason.kind]


def create_dashboard(engine: FleetEngine, config: dict) -> Tuple[Flask, SocketIO]:
    """Build the Flask app and Socket.IO server bound to one engine"""
    dashboard_config = config["dashboard"]

    app = Flask(__name__)
    app.config["SECRET_KEY"] = dashboard_config["secret_key"]
    socketio = SocketIO(
        app,
        async_mode="threading",
        cors_allowed_origins=dashboard_config["cors_origins"],
        ping_timeout=dashboard_config["ping_timeout"],
        ping_interval=dashboard_config["ping_interval"],
    )

    def broadcast_fleet():
        socketio.emit("drones", engine.drone_records())
        socketio.emit("tasks", engine.task_records())

    def broadcast_assignment(result: AssignmentResult):
        event = engine.assigned_event(result)
        if event is not None:
            socketio.emit("task_assigned", event.to_dict())
            broadcast_fleet()

    # ------------------------------------------------------------------
    # HTTP routes
    # ------------------------------------------------------------------

    @app.route("/api/drones", methods=["GET"])
    def list_drones():
        return jsonify(engine.drone_records())

    @app.route("/api/drones/<drone_id>", methods=["GET"])
    def get_drone(drone_id):
        drone = engine.get_drone(drone_id)
        if drone is None:
            return jsonify({"error": f"Drone {drone_id} does not exist"}), 404
        return jsonify(drone.to_dict())

    @app.route("/api/drones", methods=["POST"])
    def add_drone():
        spec = json_object()
        if spec is None:
            return bad_body()
        upsert = request.args.get("upsert", "false").lower() == "true"
        try:
            drone = engine.add_drone(spec, upsert=upsert)
        except DuplicateDroneError as e:
            return jsonify({"error": str(e)}), 409
        except InvalidDroneError as e:
            return jsonify({"error": str(e)}), 400
        broadcast_fleet()
        return jsonify(drone.to_dict()), 201

    @app.route("/api/drones/<drone_id>/task", methods=["POST"])
    def assign_task(drone_id):
        body = json_object()
        if body is None:
            return bad_body()
        result = engine.assign_task(drone_id, body)
        broadcast_assignment(result)
        return jsonify(result.to_dict()), assignment_status(result)

    @app.route("/api/tasks", methods=["GET"])
    def list_tasks():
        return jsonify(engine.task_records())

    @app.route("/api/orders/assign", methods=["POST"])
    def auto_assign():
        body = json_object()
        if body is None:
            return bad_body()
        try:
            result = engine.auto_assign(body)
        except ValueError as e:
            return jsonify({"success": False, "error": str(e)}), 400
        broadcast_assignment(result)
        return jsonify(result.to_dict()), assignment_status(result)

    @app.route("/api/light", methods=["GET"])
    def get_light():
        return jsonify(engine.ambient_sensor_data())

    @app.route("/api/light", methods=["POST"])
    def set_light():
        body = json_object()
        if body is None:
            return bad_body()
        if body.get("light") is None:
            return jsonify({"error": "Missing light value"}), 400
        light = engine.update_ambient_light(body["light"])
        if light is None:
            return jsonify({"error": "Light must be a number"}), 400
        socketio.emit("light_data", engine.ambient_sensor_data())
        return jsonify({"light": light})

    @app.route("/api/light/threshold", methods=["GET"])
    def get_threshold():
        return jsonify({"threshold": engine.ambient_sensor_data()["threshold"]})

    @app.route("/api/light/threshold", methods=["POST"])
    def set_threshold():
        body = json_object()
        if body is None:
            return bad_body()
        if body.get("threshold") is None:
            return jsonify({"error": "Missing threshold value"}), 400
        threshold = engine.update_ambient_threshold(body["threshold"])
        if threshold is None:
            return jsonify({"error": "Threshold must be a number"}), 400
        socketio.emit("light_data", engine.ambient_sensor_data())
        return jsonify({"threshold": threshold})

    @app.route("/api/status", methods=["GET"])
    def status():
        return jsonify(engine.get_status())

    # ------------------------------------------------------------------
    # Socket.IO handlers
    # ------------------------------------------------------------------

    @socketio.on("connect")
    def handle_connect():
        logger.info("Dashboard client connected")
        emit("drones", engine.drone_records())
        emit("tasks", engine.task_records())
        emit("light_data", engine.ambient_sensor_data())

    @socketio.on("disconnect")
    def handle_disconnect():
        logger.info("Dashboard client disconnected")

    @socketio.on("assign_task")
    def handle_assign_task(data):
        if not isinstance(data, dict):
            data = {}
        result = engine.assign_task(data.get("drone_id"), data.get("task"))
        broadcast_assignment(result)
        emit("task_assign_result", result.to_dict())

    @socketio.on("update_light")
    def handle_update_light(data):
        if not isinstance(data, dict):
            data = {}
        if data.get("drone_id"):
            update = engine.update_drone_light(data["drone_id"], data.get("light"))
            if update.success:
                socketio.emit("drones", engine.drone_records())
                if update.alert is not None:
                    socketio.emit("light_alert", update.alert.to_dict())
        elif data.get("light") is not None:
            if engine.update_ambient_light(data["light"]) is not None:
                socketio.emit("light_data", engine.ambient_sensor_data())

    @socketio.on("update_light_threshold")
    def handle_update_threshold(data):
        if not isinstance(data, dict):
            data = {}
        if data.get("drone_id"):
            update = engine.update_light_threshold(data["drone_id"], data.get("threshold"))
            if update.success:
                socketio.emit("drones", engine.drone_records())
        elif data.get("threshold") is not None:
            if engine.update_ambient_threshold(data["threshold"]) is not None:
                socketio.emit("light_data", engine.ambient_sensor_data())

    @socketio.on_error_default
    def default_error_handler(e):
        logger.error(f"Socket.IO handler error: {e}")

    return app, socketio


def start_dashboard(config_path: str = "config/fleet_config.yaml"):
    """Run the engine, ticker and dashboard until interrupted"""
    config = load_config(config_path)

    sql_store = SqlFleetStore(config["persistence"]["database_url"])
    if config["persistence"].get("background_writes", True):
        store = BackgroundStore(sql_store)
        store.start()
    else:
        store = sql_store

    engine = FleetEngine(config, store=store)
    app, socketio = create_dashboard(engine, config)
    bridge = DashboardBridge(
        engine, socketio, interval=config["simulation"]["tick_interval_sec"]
    )
    bridge.start()

    host = config["dashboard"]["host"]
    port = config["dashboard"]["port"]
    print(f"\nDashboard: http://localhost:{port}")
    try:
        socketio.run(app, host=host, port=port, debug=False, allow_unsafe_werkzeug=True)
    finally:
        bridge.stop()
        if isinstance(store, BackgroundStore):
            store.stop()


if __name__ == "__main__":
    start_dashboard()
