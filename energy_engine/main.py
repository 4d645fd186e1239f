from fastapi import FastAPI
import logging
import os
from pathlib import Path

from energy_engine.database import engine as db_engine, Base
from energy_engine import models  # noqa: F401  registers tables with Base
from energy_engine.constants import DEFAULT_LOG_DIRECTORY_PROD, DEFAULT_LOG_DIRECTORY_DEV
from energy_engine.routes import get_engine, router
from energy_engine.services.date_service import DateService
from energy_engine.services.scheduler_service import start_scheduler, stop_scheduler

LOG_DIR = os.getenv("ENERGY_ENGINE_LOG_DIR", DEFAULT_LOG_DIRECTORY_PROD)
LOG_FILE = os.getenv("ENERGY_ENGINE_LOG_FILE", "engine.log")

# Create log directory if it doesn't exist (for development)
try:
    Path(LOG_DIR).mkdir(parents=True, exist_ok=True)
    log_path = Path(LOG_DIR) / LOG_FILE
except PermissionError:
    # Fallback to local directory if no permissions for /var/log
    LOG_DIR = DEFAULT_LOG_DIRECTORY_DEV
    Path(LOG_DIR).mkdir(parents=True, exist_ok=True)
    log_path = Path(LOG_DIR) / LOG_FILE

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(log_path),
        logging.StreamHandler()
    ]
)

logger = logging.getLogger("energy_engine")

# Create database tables
Base.metadata.create_all(bind=db_engine)

app = FastAPI(
    title="Energy Resonance Engine",
    description="Daily energy ledger with resonance multipliers, decay and adaptive difficulty",
    version="1.0.0"
)

app.include_router(router)


@app.on_event("startup")
async def startup_event():
    engine = get_engine()
    state = engine.load(DateService.utcnow())
    logger.info(f"Energy engine started with {state.total_energy} energy. Logging to: {log_path}")
    start_scheduler(engine)


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Shutting down energy engine")
    stop_scheduler()


# Health check (no auth required)
@app.get("/")
async def root():
    return {"message": "Energy Resonance Engine", "status": "active"}
