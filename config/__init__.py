"""Configuration management."""
import os
import yaml
from pathlib import Path

_DEFAULT_CONFIG = Path(__file__).parent / "default_config.yaml"
DEFAULT_RULES_PATH = Path(__file__).parent / "alert_rules.yaml"


def load_config(path=None):
    """Load config from YAML, merging defaults with optional overrides."""
    with open(_DEFAULT_CONFIG) as f:
        config = yaml.safe_load(f)

    if path and Path(path).exists():
        with open(path) as f:
            overrides = yaml.safe_load(f) or {}
        config = _deep_merge(config, overrides)

    # Environment variable overrides
    env_map = {
        "HWMONITOR_DB_PATH": ("database", "path"),
        "HWMONITOR_API_PORT": ("api", "port"),
        "HWMONITOR_LOG_LEVEL": ("logging", "level"),
        "HWMONITOR_NODE_NAME": ("node", "name"),
    }
    numeric_keys = {"HWMONITOR_API_PORT"}
    for env_key, config_path in env_map.items():
        val = os.environ.get(env_key)
        if val:
            d = config
            for k in config_path[:-1]:
                d = d.setdefault(k, {})
            if env_key in numeric_keys:
                try:
                    val = int(val)
                except ValueError:
                    raise ValueError(f"{env_key} must be an integer, got {val!r}") from None
            d[config_path[-1]] = val

    # YAML reads an unquoted name like 1234 as an int
    if config.get("node", {}).get("name") is not None:
        config["node"]["name"] = str(config["node"]["name"])

    _validate_config(config)
    return config


def _deep_merge(base, override):
    """Recursively merge override into base dict."""
    result = base.copy()
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _validate_config(config):
    """Basic config validation."""
    required_sections = [
        "node", "api", "sampler", "timeseries", "alerts",
        "discovery", "broadcast", "database", "logging",
    ]
    for section in required_sections:
        if section not in config:
            raise ValueError(f"Missing required config section: {section}")

    port = config["api"]["port"]
    if not isinstance(port, int) or not 0 < port < 65536:
        raise ValueError("api.port must be an integer in 1-65535")

    for family, interval in (config["sampler"].get("intervals") or {}).items():
        if not isinstance(interval, (int, float)) or interval <= 0:
            raise ValueError(f"sampler.intervals.{family} must be > 0")

    if config["alerts"]["max_records"] < 1:
        raise ValueError("alerts.max_records must be >= 1")

    for key in ("liveness_timeout", "interval", "purge_after"):
        if config["discovery"][key] <= 0:
            raise ValueError(f"discovery.{key} must be > 0")

    if config["broadcast"]["timeout"] <= 0:
        raise ValueError("broadcast.timeout must be > 0")
    if config["broadcast"].get("max_retries", 0) < 0:
        raise ValueError("broadcast.max_retries must be >= 0")
