"""CPU usage and frequency via psutil."""
import psutil

from models.enums import MetricName, SensorFamily
from monitor.sensors.base import SensorSource


class CpuSensor(SensorSource):
    family = SensorFamily.CPU.value

    def __init__(self):
        # psutil measures usage since the previous call; prime it so the first read is meaningful
        psutil.cpu_percent(interval=None)

    def read(self):
        try:
            usage = psutil.cpu_percent(interval=None)
            freq = psutil.cpu_freq()
        except (psutil.Error, OSError) as e:
            raise self._read_error(str(e)) from e

        values = {MetricName.CPU_USAGE.value: float(usage)}
        if freq is not None:
            values[MetricName.CPU_FREQUENCY.value] = float(freq.current)
        return values
