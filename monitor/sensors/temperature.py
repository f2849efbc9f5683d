"""Temperature sensors via psutil, classified into CPU / chipset / drive / GPU readings."""
import re
import psutil

from models.enums import MetricName, SensorFamily
from monitor.sensors.base import SensorSource

CHIPSET = "chipset"
CPU = "cpu"
GPU = "gpu"
DISK = "disk"
OTHER = "other"

# Checked in order; chipset first since a PCH label often also contains "core"
_PATTERNS = [
    (CHIPSET, re.compile(r"pch|southbridge|chipset|\bfch\b|\bich\b|\bsb\b")),
    (CPU, re.compile(r"cpu|core|processor|package|k10temp|zenpower|tctl|tdie")),
    (GPU, re.compile(r"gpu|video|graphics|nvidia|amdgpu|radeon|nouveau")),
    (DISK, re.compile(r"disk|drive|hdd|ssd|nvme|drivetemp")),
]


def classify_sensor(chip, label):
    text = f"{chip} {label}".lower()
    for kind, pattern in _PATTERNS:
        if pattern.search(text):
            return kind
    return OTHER


class TemperatureSensor(SensorSource):
    family = SensorFamily.TEMPERATURE.value

    def read(self):
        reader = getattr(psutil, "sensors_temperatures", None)
        if reader is None:
            raise self._unavailable("temperature sensors not supported on this platform")
        try:
            chips = reader()
        except (psutil.Error, OSError) as e:
            raise self._read_error(str(e)) from e
        if not chips:
            raise self._unavailable("no temperature sensors found")

        by_kind = {CPU: [], CHIPSET: [], DISK: [], GPU: [], OTHER: []}
        for chip, entries in chips.items():
            for entry in entries:
                if entry.current is None:
                    continue
                by_kind[classify_sensor(chip, entry.label or "")].append(float(entry.current))

        all_temps = [t for temps in by_kind.values() for t in temps]
        if not all_temps:
            raise self._read_error("sensors returned no readings")

        values = {MetricName.MAX_TEMPERATURE.value: max(all_temps)}
        if by_kind[CPU]:
            values[MetricName.CPU_TEMPERATURE.value] = sum(by_kind[CPU]) / len(by_kind[CPU])
        if by_kind[CHIPSET]:
            values[MetricName.CHIPSET_TEMPERATURE.value] = max(by_kind[CHIPSET])
        if by_kind[DISK]:
            values[MetricName.DISK_MAX_TEMPERATURE.value] = max(by_kind[DISK])
        return values
