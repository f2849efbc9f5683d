"""Enums for metrics, severity, comparisons, and node status."""
from enum import Enum


class MetricName(str, Enum):
    CPU_USAGE = "cpu_usage"
    CPU_FREQUENCY = "cpu_frequency_mhz"
    MEMORY_USAGE = "memory_usage_percent"
    MEMORY_USED_GB = "memory_used_gb"
    SWAP_USAGE = "swap_usage_percent"
    DISK_USAGE = "disk_usage_percent"
    CPU_TEMPERATURE = "cpu_temperature"
    CHIPSET_TEMPERATURE = "chipset_temperature"
    DISK_MAX_TEMPERATURE = "disk_max_temperature"
    MAX_TEMPERATURE = "max_temperature"
    GPU_USAGE = "gpu_usage"
    GPU_MEMORY_USAGE = "gpu_memory_percent"
    GPU_TEMPERATURE = "gpu_temperature"
    GPU_POWER = "gpu_power_watts"
    FANS_TOTAL = "fans_total_count"
    FANS_STOPPED = "fans_stopped_count"
    FANS_SLOW = "fans_slow_speed_count"


class SensorFamily(str, Enum):
    CPU = "cpu"
    MEMORY = "memory"
    DISK = "disk"
    TEMPERATURE = "temperature"
    GPU = "gpu"
    FAN = "fan"


class Severity(str, Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    @classmethod
    def parse(cls, value):
        """Accept enum members and case-insensitive names ("Warning", "critical")."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Invalid severity: {value!r}")
        try:
            return cls(value.strip().upper())
        except ValueError:
            raise ValueError(f"Invalid severity: {value!r}") from None


class Comparison(str, Enum):
    GT = ">"
    GE = ">="
    LT = "<"
    LE = "<="


class NodeStatus(str, Enum):
    ONLINE = "ONLINE"
    OFFLINE = "OFFLINE"
    ALERTING = "ALERTING"


# Severities that put the source node into ALERTING until acknowledged
ALERTING_SEVERITIES = frozenset({Severity.ERROR, Severity.CRITICAL})
