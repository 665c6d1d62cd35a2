# taskstore/config.py
"""Environment-driven settings for the task store service."""

import os
from pathlib import Path

DB_PATH = Path(os.getenv("TASKSTORE_DB_PATH", str(Path(__file__).parent / "data.db")))
DATABASE_URL = f"sqlite:///{DB_PATH}"

COLLECTION_NAME = "todos"

ALLOWED_ORIGINS = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://localhost:5173,http://localhost:8000",
).split(",")

LOG_LEVEL = os.getenv("TASKSTORE_LOG_LEVEL", "INFO").upper()
