"""Sensor sources and registry."""
import logging

from monitor.sensors.base import SensorSource, SensorUnavailable, SensorReadError
from monitor.sensors.cpu import CpuSensor
from monitor.sensors.memory import MemorySensor
from monitor.sensors.disk import DiskSensor
from monitor.sensors.temperature import TemperatureSensor
from monitor.sensors.fan import FanSensor
from monitor.sensors.gpu import GpuSensor

logger = logging.getLogger("hwmonitor.sensors")


def build_sources(config=None, gpu_reader=None):
    """Instantiate the enabled sensor sources, keyed by family."""
    cfg = (config or {}).get("sampler", {})
    enabled = cfg.get("enabled_sources") or ["cpu", "memory", "disk", "temperature", "gpu", "fan"]

    factories = {
        "cpu": CpuSensor,
        "memory": MemorySensor,
        "disk": DiskSensor,
        "temperature": TemperatureSensor,
        "fan": lambda: FanSensor(slow_rpm=cfg.get("fan_slow_rpm", 500)),
        "gpu": lambda: GpuSensor(reader=gpu_reader),
    }

    sources = {}
    for family in enabled:
        factory = factories.get(family)
        if factory is None:
            logger.warning(f"Unknown sensor source in config: {family}")
            continue
        sources[family] = factory()
    return sources
