import asyncio
import logging

from fastapi import Depends, FastAPI, Query

import db
from app.services.monitor import CheckOrchestrator, get_orchestrator
from app.types.alert_contract import CheckReport, StatusReport
from app.utils import sms
from config import configure_logging

_LOGGER = logging.getLogger(__name__)

app = FastAPI(title="Get A Life Alert")

# Create tables on startup and close the pool on shutdown

@app.on_event("startup")
async def startup_event():
    configure_logging()
    await db.create_all()

@app.on_event("shutdown")
async def shutdown_event():
    await db.dispose_engine()

# --------------------------------------------
# Endpoints
# --------------------------------------------

@app.get("/health")
async def health(orchestrator: CheckOrchestrator = Depends(get_orchestrator)):
    """Reachability of the router, SMS credentials and the database."""
    router_ok = await asyncio.to_thread(orchestrator.authenticator.probe)
    try:
        await db.recent_events(limit=1)
        database_ok = True
    except Exception as exc:  # noqa: BLE001
        _LOGGER.error("Database health check failed: %s", exc)
        database_ok = False
    return {"router": router_ok, "sms": sms.is_configured(), "database": database_ok}


@app.get("/v1/status", response_model=StatusReport)
async def status(orchestrator: CheckOrchestrator = Depends(get_orchestrator)):
    return await orchestrator.current_status()


@app.post("/v1/check", response_model=CheckReport)
async def run_check(orchestrator: CheckOrchestrator = Depends(get_orchestrator)):
    return await orchestrator.check_and_alert()


@app.get("/v1/alerts")
async def alerts(limit: int = Query(10, ge=1, le=500)):
    return await db.recent_alerts(limit=limit)


@app.get("/v1/events")
async def events(limit: int = Query(20, ge=1, le=500)):
    return await db.recent_events(limit=limit)
