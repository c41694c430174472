"""FastAPI application setup for the UrbanPulse backend."""

import os

from fastapi import FastAPI

from utils.logging_utils import setup_logging

setup_logging(level=os.getenv("LOG_LEVEL", "INFO"), job_name="urbanpulse-api")

from .api import router as api_router  # noqa: E402

app = FastAPI(title="UrbanPulse")

# API routes
app.include_router(api_router)
