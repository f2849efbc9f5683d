"""Formatting utilities for display."""
from datetime import datetime, timezone

_UNITS = {
    "cpu_usage": "%",
    "memory_usage_percent": "%",
    "swap_usage_percent": "%",
    "disk_usage_percent": "%",
    "gpu_usage": "%",
    "gpu_memory_percent": "%",
    "cpu_temperature": "°C",
    "chipset_temperature": "°C",
    "disk_max_temperature": "°C",
    "max_temperature": "°C",
    "gpu_temperature": "°C",
    "cpu_frequency_mhz": " MHz",
    "memory_used_gb": " GB",
    "gpu_power_watts": " W",
}


def format_pct(value, decimals=1, with_color=False):
    """Format a 0-100 usage value. Optionally colour it by load level (rich markup)."""
    if value is None:
        return "N/A"
    value = float(value)
    formatted = f"{value:.{decimals}f}%"
    if with_color:
        color = "green" if value < 70 else "yellow" if value < 90 else "red"
        return f"[{color}]{formatted}[/{color}]"
    return formatted


def format_metric(metric_name, value, with_color=False):
    """Format a sample value with the unit implied by its metric name."""
    if value is None:
        return "N/A"
    if _UNITS.get(metric_name) == "%":
        return format_pct(value, with_color=with_color)
    if metric_name.endswith("_count"):
        return str(int(value))
    return f"{float(value):.1f}{_UNITS.get(metric_name, '')}"


def format_timestamp(ts):
    """Format a datetime to human-readable string."""
    if ts is None:
        return "N/A"
    if isinstance(ts, str):
        ts = datetime.fromisoformat(ts.replace("Z", "+00:00"))
    if ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc)
    return ts.strftime("%Y-%m-%d %H:%M:%S UTC")


def time_ago(dt):
    """Return human-readable time since dt. E.g., '3h ago', '2d ago'."""
    if dt is None:
        return "N/A"
    if isinstance(dt, str):
        dt = datetime.fromisoformat(dt.replace("Z", "+00:00"))
    now = datetime.now(timezone.utc)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    delta = now - dt
    seconds = max(0, int(delta.total_seconds()))

    if seconds < 60:
        return f"{seconds}s ago"
    elif seconds < 3600:
        return f"{seconds // 60}m ago"
    elif seconds < 86400:
        return f"{seconds // 3600}h ago"
    else:
        return f"{seconds // 86400}d ago"
