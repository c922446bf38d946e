"""
Dashboard Bridge - ticks the engine and streams its events to the dashboard
"""

import logging
import threading
import time

from flask_socketio import SocketIO

from fleet.engine import FleetEngine
from fleet.events import TickResult

logger = logging.getLogger(__name__)

EVENT_CHANNELS = {
    "approaching": "drone_approaching",
    "arrived": "drone_arrived",
    "delivery_update": "delivery_update",
    "reached_via_light": "drone_reached_via_light",
    "light_alert": "light_alert",
}


class DashboardBridge:
    """Bridge between the fleet engine and web dashboard clients"""

    def __init__(self, engine: FleetEngine, socketio: SocketIO, interval: float = 1.0):
        self.engine = engine
        self.socketio = socketio
        self.interval = interval
        self.running = False
        self.update_thread = None

    def start(self):
        """Start ticking the engine"""
        if self.running:
            return
        self.running = True
        self.update_thread = threading.Thread(target=self._update_loop, daemon=True)
        self.update_thread.start()
        logger.info(f"Dashboard bridge started ({self.interval:.2f}s ticks)")

    def stop(self):
        """Stop ticking"""
        self.running = False
        if self.update_thread:
            self.update_thread.join()
            self.update_thread = None
        logger.info("Dashboard bridge stopped")

    def _update_loop(self):
        """One tick per interval; a slow tick delays the next, never overlaps"""
        while self.running:
            loop_start = time.time()

            try:
                self.publish(self.engine.tick())
            except Exception as e:
                logger.error(f"Tick failed: {e}")

            elapsed = time.time() - loop_start
            if elapsed < self.interval:
                time.sleep(self.interval - elapsed)

    def publish(self, result: TickResult):
        """Fan a tick batch out to connected clients"""
        self.emit("drones", self.engine.drone_records())
        for event in result.events():
            self.emit(EVENT_CHANNELS[event.kind], event.to_dict())
        self.emit("light_data", result.ambient)

    def emit(self, channel: str, payload):
        try:
            self.socketio.emit(channel, payload)
        except Exception as e:
            logger.error(f"Failed to emit {channel}: {e}")
