"""
jobhook API
FastAPI application that claims eligible job offers from offer emails.
"""

import logging
import os
from typing import List

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from jobhook.routers import logs, success, webhook
from jobhook.db import supabase_admin
from jobhook.services.audit_log import AUDIT_LOG_TABLE

# Configure logging to output to console
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)

VERSION = "0.1.0"

app = FastAPI(
    title="jobhook API",
    description="Claims eligible appliance-repair job offers straight from the offer email",
    version=VERSION,
)


def get_cors_origins() -> List[str]:
    """
    Allowed CORS origins from the CORS_ORIGINS env var (comma-separated).

    Defaults to "*": the webhook endpoints are called by mail providers
    from arbitrary origins.
    """
    cors_env = os.getenv("CORS_ORIGINS", "").strip()
    if not cors_env:
        return ["*"]
    return [o.strip() for o in cors_env.split(",") if o.strip()]


app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

# Include routers
app.include_router(webhook.router, prefix="/api/webhook", tags=["webhook"])
app.include_router(success.router, prefix="/api/success", tags=["success"])
app.include_router(logs.router, prefix="/api/logs", tags=["logs"])


@app.on_event("startup")
async def log_startup_urls() -> None:
    """Log where the API listens and what it serves. Port comes from HOST_PORT."""
    host_port = os.getenv("HOST_PORT", "8000")
    logger.info(
        "jobhook API running at http://localhost:%s\n"
        "  GET  /api         service info\n"
        "  GET  /api/webhook health check\n"
        "  POST /api/webhook webhook\n"
        "  GET  /api/logs    job logs\n"
        "  POST /api/success parse success email",
        host_port,
    )


@app.get("/")
async def root():
    return {"message": "jobhook API", "version": VERSION}


@app.get("/api")
async def service_info():
    return {
        "name": "jobhook",
        "version": VERSION,
        "endpoints": {
            "health": "GET  /api",
            "webhook": "POST /api/webhook",
            "success": "POST /api/success",
            "logs": "GET  /api/logs",
        },
    }


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/health/db")
async def health_db():
    """
    Test the Supabase database connection.

    Selects one row from the audit log table. Returns 503 on failure.
    """
    try:
        supabase_admin.table(AUDIT_LOG_TABLE).select("id").limit(1).execute()
        return {"status": "ok", "database": "reachable"}
    except Exception as exc:
        logger.error(f"Database health check failed: {exc}")
        raise HTTPException(
            status_code=503,
            detail=f"Database connection failed: {str(exc)}",
        )
