"""Paths and default values used across the project."""

from pathlib import Path

# Base directory for all tasktimeline data
TIMELINE_HOME = Path.home() / ".tasktimeline"

CONFIG_FILE = TIMELINE_HOME / "config.json"
LOGS_DIR = TIMELINE_HOME / "logs"

# Server defaults
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3001
DEFAULT_CORS_ORIGIN = "*"
DEFAULT_STORAGE_URI = "memory://"

# Seconds between time:update events on each connection
TICK_INTERVAL_SECONDS = 1.0

# Client reconnection policy
RECONNECT_BASE_DELAY_SECONDS = 1.0
RECONNECT_MAX_ATTEMPTS = 5
DEFAULT_SERVER_URL = "http://localhost:3001"

# Timeline geometry
PIXELS_PER_HOUR_BASE = 120.0
ZOOM_MIN = 0.2
ZOOM_MAX = 5.0
ZOOM_STEP = 1.5
MIN_TASK_WIDTH_PX = 100.0
TIMELINE_LANES = 6

# Task defaults
MIN_DURATION_MINUTES = 15
DEFAULT_TASK_COLOR = "#3B82F6"
DEFAULT_OWNER_TAG = "default"
