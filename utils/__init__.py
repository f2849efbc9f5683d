"""Utility modules for the hardware monitor."""
from utils.logger import setup_logging
from utils.formatters import format_pct, format_metric, format_timestamp, time_ago
from utils.http_client import HTTPClient, APIError, PeerUnreachable, PeerTimeout
