"""Physical memory and swap usage via psutil."""
import psutil

from models.enums import MetricName, SensorFamily
from monitor.sensors.base import SensorSource

GB = 1024 ** 3


class MemorySensor(SensorSource):
    family = SensorFamily.MEMORY.value

    def read(self):
        try:
            vm = psutil.virtual_memory()
            swap = psutil.swap_memory()
        except (psutil.Error, OSError) as e:
            raise self._read_error(str(e)) from e

        used = vm.total - vm.available
        usage_percent = (used / vm.total) * 100 if vm.total > 0 else 0.0
        swap_percent = (swap.used / swap.total) * 100 if swap.total > 0 else 0.0
        return {
            MetricName.MEMORY_USAGE.value: usage_percent,
            MetricName.MEMORY_USED_GB.value: used / GB,
            MetricName.SWAP_USAGE.value: swap_percent,
        }
