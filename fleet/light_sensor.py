"""
Ambient light sensor shared by the whole fleet.

Unlike per-drone light alerts, this sensor applies a time-based cooldown
(default 5000 ms) so repeated alerts are suppressed until it elapses.
"""

import logging
import time
from typing import Callable, Optional

from .events import LightAlert
from .models import clamp_percent, coerce_percent, iso_timestamp

logger = logging.getLogger(__name__)


class AmbientLightSensor:
    """Standalone light sensor with alert cooldown"""

    def __init__(
        self,
        config: dict,
        motion=None,
        clock: Callable[[], float] = time.time,
    ):
        light_config = config["light"]
        self.current_light = 0.0
        self.light_threshold = clamp_percent(light_config["ambient_threshold"])
        self.alert_cooldown_ms = light_config["ambient_cooldown_ms"]
        self.step = light_config["standalone_step"]

        self.motion = motion
        self.clock = clock
        self.last_alert_time: Optional[float] = None

    def update_light(self, light) -> Optional[float]:
        """Set the reading (clamped); None when the value is not a number"""
        value = coerce_percent(light)
        if value is None:
            logger.warning(f"Ignoring malformed ambient light value {light!r}")
            return None
        self.current_light = value
        return self.current_light

    def update_threshold(self, threshold) -> Optional[float]:
        value = coerce_percent(threshold)
        if value is None:
            logger.warning(f"Ignoring malformed ambient threshold {threshold!r}")
            return None
        self.light_threshold = value
        return self.light_threshold

    def simulate_light_change(self) -> float:
        """One random-walk step of the ambient reading"""
        self.current_light = self.motion.light_step(self.current_light, self.step)
        return self.current_light

    def check_alert(self) -> Optional[LightAlert]:
        """Alert when above threshold and the cooldown has elapsed"""
        if not self.current_light > self.light_threshold:
            return None

        now = self.clock()
        if self.last_alert_time is not None:
            elapsed_ms = (now - self.last_alert_time) * 1000.0
            if elapsed_ms <= self.alert_cooldown_ms:
                return None

        self.last_alert_time = now
        logger.info(
            f"Ambient light alert: {self.current_light:.1f} > {self.light_threshold:.1f}"
        )
        return LightAlert(
            light=self.current_light,
            threshold=self.light_threshold,
            timestamp=iso_timestamp(now),
        )

    def sensor_data(self) -> dict:
        return {
            "light": self.current_light,
            "threshold": self.light_threshold,
            "alert": self.current_light > self.light_threshold,
        }
