"""Aggregate disk usage across mounted partitions via psutil."""
import logging
import psutil

from models.enums import MetricName, SensorFamily
from monitor.sensors.base import SensorSource

logger = logging.getLogger("hwmonitor.sensors.disk")


class DiskSensor(SensorSource):
    family = SensorFamily.DISK.value

    def read(self):
        try:
            partitions = psutil.disk_partitions(all=False)
        except (psutil.Error, OSError) as e:
            raise self._read_error(str(e)) from e

        total_space = 0
        total_used = 0
        seen = set()
        for part in partitions:
            # Bind mounts and snap loops report the same device repeatedly
            if part.device in seen:
                continue
            seen.add(part.device)
            try:
                usage = psutil.disk_usage(part.mountpoint)
            except (PermissionError, OSError) as e:
                logger.debug(f"Skipping {part.mountpoint}: {e}")
                continue
            total_space += usage.total
            total_used += usage.used

        if total_space == 0:
            raise self._read_error("no readable partitions")

        return {MetricName.DISK_USAGE.value: (total_used / total_space) * 100}
