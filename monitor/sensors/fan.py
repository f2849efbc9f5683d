"""Fan speed sensors via psutil: totals, stopped and slow counts."""
import psutil

from models.enums import MetricName, SensorFamily
from monitor.sensors.base import SensorSource
from utils.constants import FAN_SLOW_RPM


class FanSensor(SensorSource):
    family = SensorFamily.FAN.value

    def __init__(self, slow_rpm=FAN_SLOW_RPM):
        self.slow_rpm = slow_rpm

    def read(self):
        reader = getattr(psutil, "sensors_fans", None)
        if reader is None:
            raise self._unavailable("fan sensors not supported on this platform")
        try:
            chips = reader()
        except (psutil.Error, OSError) as e:
            raise self._read_error(str(e)) from e
        if not chips:
            raise self._unavailable("no fan sensors found")

        total = stopped = slow = 0
        for entries in chips.values():
            for fan in entries:
                total += 1
                if fan.current <= 0:
                    stopped += 1
                elif fan.current < self.slow_rpm:
                    slow += 1

        return {
            MetricName.FANS_TOTAL.value: float(total),
            MetricName.FANS_STOPPED.value: float(stopped),
            MetricName.FANS_SLOW.value: float(slow),
        }
