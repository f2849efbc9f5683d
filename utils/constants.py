"""Hardware metric constants and defaults."""
import math

from models.enums import MetricName, SensorFamily

SERVICE_TYPE = "_hwmonitor._tcp.local."

# Reference retention window for time series
RETENTION_SECONDS = 24 * 60 * 60

MAX_ALERT_RECORDS = 1000
LIVENESS_TIMEOUT_SECONDS = 30
DISCOVERY_INTERVAL_SECONDS = 5
PEER_CALL_TIMEOUT_SECONDS = 3.0

# Fans spinning below this are reported as slow
FAN_SLOW_RPM = 500

# Polling period per sensor family (seconds)
DEFAULT_INTERVALS = {
    SensorFamily.CPU.value: 1,
    SensorFamily.MEMORY.value: 1,
    SensorFamily.GPU.value: 2,
    SensorFamily.FAN.value: 2,
    SensorFamily.TEMPERATURE.value: 2,
    SensorFamily.DISK.value: 5,
}

PERCENT_DOMAIN = (0.0, 100.0)
TEMPERATURE_DOMAIN = (-50.0, 150.0)
NON_NEGATIVE_DOMAIN = (0.0, math.inf)

# Valid threshold range per known metric (inclusive)
METRIC_DOMAINS = {
    MetricName.CPU_USAGE.value: PERCENT_DOMAIN,
    MetricName.MEMORY_USAGE.value: PERCENT_DOMAIN,
    MetricName.SWAP_USAGE.value: PERCENT_DOMAIN,
    MetricName.DISK_USAGE.value: PERCENT_DOMAIN,
    MetricName.GPU_USAGE.value: PERCENT_DOMAIN,
    MetricName.GPU_MEMORY_USAGE.value: PERCENT_DOMAIN,
    MetricName.CPU_TEMPERATURE.value: TEMPERATURE_DOMAIN,
    MetricName.CHIPSET_TEMPERATURE.value: TEMPERATURE_DOMAIN,
    MetricName.DISK_MAX_TEMPERATURE.value: TEMPERATURE_DOMAIN,
    MetricName.MAX_TEMPERATURE.value: TEMPERATURE_DOMAIN,
    MetricName.GPU_TEMPERATURE.value: TEMPERATURE_DOMAIN,
    MetricName.CPU_FREQUENCY.value: NON_NEGATIVE_DOMAIN,
    MetricName.MEMORY_USED_GB.value: NON_NEGATIVE_DOMAIN,
    MetricName.GPU_POWER.value: NON_NEGATIVE_DOMAIN,
    MetricName.FANS_TOTAL.value: NON_NEGATIVE_DOMAIN,
    MetricName.FANS_STOPPED.value: NON_NEGATIVE_DOMAIN,
    MetricName.FANS_SLOW.value: NON_NEGATIVE_DOMAIN,
}


def threshold_domain(metric_name):
    """Inclusive (low, high) bounds for a metric's threshold. Custom metrics accept any finite value."""
    return METRIC_DOMAINS.get(metric_name, (-math.inf, math.inf))


def default_capacity(interval_seconds, retention_seconds=RETENTION_SECONDS):
    """Ring-buffer size covering the retention window at the given sampling interval."""
    if interval_seconds <= 0:
        raise ValueError("interval_seconds must be > 0")
    return max(1, int(math.ceil(retention_seconds / interval_seconds)))
