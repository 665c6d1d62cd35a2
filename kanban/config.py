"""Environment-driven settings for the synchronization engine."""

import logging
import os

logger = logging.getLogger(__name__)


def env_float(name: str, default: float) -> float:
    """Read a float from the environment, falling back on missing or bad values."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring malformed %s=%r; using %s", name, raw, default)
        return default


STORE_URL = os.getenv("KANBAN_STORE_URL", "http://localhost:8000").rstrip("/")
REQUEST_TIMEOUT = env_float("KANBAN_REQUEST_TIMEOUT", 10.0)
RETRY_DELAY = env_float("KANBAN_RETRY_DELAY", 2.0)
DRAG_ACTIVATION_DISTANCE = env_float("KANBAN_DRAG_ACTIVATION_DISTANCE", 8.0)
