"""WSGI entry point for running the node under a production server (gunicorn, waitress)."""
import sys
import os
import atexit
import logging
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).parent))

from config import load_config
from context import NodeContext
from utils.logger import setup_logging
from web.app import create_app

logger = logging.getLogger("hwmonitor.wsgi")

config = load_config(os.environ.get("HWMONITOR_CONFIG"))
setup_logging(config["logging"]["level"], config["logging"].get("file"))
config["alerts"]["console"] = False

node = NodeContext(config)
app = create_app(config, node.engines())

# The WSGI server owns the HTTP loop; the node's background jobs run alongside it
node.start()
atexit.register(node.stop)
logger.info(f"WSGI app ready for {node.get_node().name}")
