"""
FastAPI application entrypoint.

Run locally:  uvicorn phc_screening.main:app --reload
"""

import logging

from fastapi import FastAPI

from phc_screening.api.routes import router
from phc_screening.config import settings
from phc_screening.models.database import Base, engine

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(levelname)s | %(name)s | %(message)s",
)

app = FastAPI(
    title="PHC Screening API",
    description=(
        "Screening sessions for primary health care: role-based permissions, "
        "the pending → in_progress → completed → follow_up workflow, and "
        "pathway validation and classification for hypertension, diabetes, "
        "cervical, breast and PSA screening."
    ),
    version="1.0.0",
)

app.include_router(router, prefix="/api/v1")


@app.on_event("startup")
def on_startup():
    Base.metadata.create_all(bind=engine)
