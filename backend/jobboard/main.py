import logging
import sqlite3
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from jobboard.config import settings
from jobboard.database import SessionLocal, init_db
from jobboard.routers import (
    activation_codes,
    admin_jobs,
    admin_users,
    auth,
    categories,
    changes,
    feedback,
    jobs,
    me,
    statistics,
    tags,
)
from jobboard.services.auth_service import auth_service
from jobboard.services.data_service import data_service

logger = logging.getLogger("jobboard")

VERSION = "0.2.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: create or migrate the database, then check it
    init_db()
    conn = sqlite3.connect(str(settings.db_path))
    result = conn.execute("PRAGMA integrity_check").fetchone()
    conn.close()
    if result and result[0] == "ok":
        logger.info("Database integrity check passed.")
    else:
        logger.error("DATABASE INTEGRITY CHECK FAILED: %s", result)

    with SessionLocal() as db:
        auth_service.ensure_default_admin(db)
    data_service.initialize(SessionLocal)
    yield
    # Shutdown: drop sessions and change subscriptions
    data_service.shutdown()
    auth_service.clear()


app = FastAPI(
    title="Campus Job Board",
    description="Campus recruitment job board with user and admin portals",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router, prefix=settings.api_prefix)
app.include_router(me.router, prefix=settings.api_prefix)
app.include_router(jobs.router, prefix=settings.api_prefix)
app.include_router(admin_jobs.router, prefix=settings.api_prefix)
app.include_router(categories.router, prefix=settings.api_prefix)
app.include_router(categories.admin_router, prefix=settings.api_prefix)
app.include_router(tags.router, prefix=settings.api_prefix)
app.include_router(tags.admin_router, prefix=settings.api_prefix)
app.include_router(admin_users.router, prefix=settings.api_prefix)
app.include_router(activation_codes.router, prefix=settings.api_prefix)
app.include_router(statistics.router, prefix=settings.api_prefix)
app.include_router(feedback.router, prefix=settings.api_prefix)
app.include_router(changes.router, prefix=settings.api_prefix)


@app.get("/health")
async def health():
    return {"status": "ok", "version": VERSION}
