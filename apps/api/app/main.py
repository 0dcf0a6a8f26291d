from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import CONFIG
from .reminders import build_scheduler
from .routes import admin as admin_routes
from .routes import chat as chat_routes
from .routes import dashboard as dashboard_routes
from .routes import feedback as feedback_routes
from .routes import growth as growth_routes
from .routes import profile as profile_routes
from .routes import reminders as reminder_routes
from .routes import vaccines as vaccine_routes

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    scheduler = None
    if CONFIG.reminders_enabled:
        try:
            scheduler = build_scheduler(CONFIG)
        except RuntimeError as exc:
            logger.warning("vaccine reminder scheduler disabled: %s", exc)
        else:
            app.state.reminder_scheduler = scheduler
            scheduler.start()
    else:
        logger.info("vaccine reminder scheduler disabled by config")
    try:
        yield
    finally:
        if scheduler is not None:
            await scheduler.stop()


app = FastAPI(
    title="BabyTrack API",
    version="0.1.0",
    description="Vaccine schedules, reminders, growth tracking and a pediatric assistant",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5000",
        "http://127.0.0.1:5000",
    ],
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)

app.include_router(vaccine_routes.router)
app.include_router(reminder_routes.router)
app.include_router(profile_routes.router)
app.include_router(growth_routes.router)
app.include_router(chat_routes.router)
app.include_router(dashboard_routes.router)
app.include_router(feedback_routes.router)
app.include_router(admin_routes.router)


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}


@app.get("/")
async def root() -> dict:
    return {"message": "BabyTrack API ready"}
