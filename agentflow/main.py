"""FastAPI entry-point exposing flow execution."""
from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from agentflow.api.routes import router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for FastAPI application."""
    level = os.getenv("AGENTFLOW_LOG_LEVEL")
    if level:
        logging.basicConfig(level=level.upper())
    yield


app = FastAPI(title="Agent Flow Orchestrator", lifespan=lifespan)
app.include_router(router)


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}
