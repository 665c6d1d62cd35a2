# taskstore/main.py
"""FastAPI application serving the task collection."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from taskstore.config import ALLOWED_ORIGINS, LOG_LEVEL
from taskstore.database import create_db_and_tables
from taskstore.routes.tasks import router as tasks_router

logging.basicConfig(level=LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the collection table on startup."""
    create_db_and_tables()
    yield


app = FastAPI(title="Kanban Task Store", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["Content-Type"],
)

app.include_router(tasks_router)


@app.get("/api/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "taskstore"}
