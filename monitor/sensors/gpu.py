"""GPU sensor with a pluggable vendor backend.

No vendor backend ships with the monitor. Deployments pass a ``reader``
callable returning ``{"gpu_usage": ..., "gpu_temperature": ...}``; without one
the source reports itself unavailable and the sampler skips it.
"""
from models.enums import MetricName, SensorFamily
from monitor.sensors.base import SensorSource, SensorReadError, SensorUnavailable

GPU_METRICS = {
    MetricName.GPU_USAGE.value,
    MetricName.GPU_MEMORY_USAGE.value,
    MetricName.GPU_TEMPERATURE.value,
    MetricName.GPU_POWER.value,
}


class GpuSensor(SensorSource):
    family = SensorFamily.GPU.value

    def __init__(self, reader=None):
        self.reader = reader

    def read(self):
        if self.reader is None:
            raise self._unavailable("no GPU backend configured")
        try:
            raw = self.reader()
        except (SensorUnavailable, SensorReadError):
            raise
        except Exception as e:
            raise self._read_error(str(e)) from e

        values = {k: float(v) for k, v in (raw or {}).items() if k in GPU_METRICS and v is not None}
        if not values:
            raise self._read_error("backend returned no GPU metrics")
        return values
