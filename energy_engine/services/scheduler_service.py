"""
Background scheduler for the energy engine
Handles:
- Daily rollover check every minute
- Decay warnings every minute
- Decay application at the top of each hour
- Difficulty evaluation once an hour

Jobs are plain functions: they take the engine lock and do blocking database
work, so the scheduler runs them in its thread pool, not on the event loop.
"""

import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from energy_engine.schemas import EngineResult
from energy_engine.services.date_service import DateService
from energy_engine.services.engine_service import EnergyEngine

logger = logging.getLogger("energy_engine.scheduler")

# Create scheduler instance
scheduler = AsyncIOScheduler()


def _log_signals(result: EngineResult) -> None:
    for signal in result.signals:
        logger.info(f"[{signal.kind.upper()}] {signal.message}")


def run_reset_check(engine: EnergyEngine):
    """Job: roll the ledger over when the local day changes"""
    try:
        _log_signals(engine.run_reset_check(DateService.utcnow()))
    except Exception as e:
        logger.error(f"Scheduler Error (Daily Reset): {e}")


def run_decay_warning_check(engine: EnergyEngine):
    """Job: warn before decay starts (never applies decay)"""
    try:
        _log_signals(engine.run_decay_tick(DateService.utcnow(), apply=False))
    except Exception as e:
        logger.error(f"Scheduler Error (Decay Warning): {e}")


def run_decay(engine: EnergyEngine):
    """Job: apply inactivity decay"""
    try:
        _log_signals(engine.run_decay_tick(DateService.utcnow(), apply=True))
    except Exception as e:
        logger.error(f"Scheduler Error (Decay): {e}")


def run_difficulty_check(engine: EnergyEngine):
    """Job: adaptive difficulty evaluation"""
    try:
        _log_signals(engine.run_difficulty_check(DateService.utcnow()))
    except Exception as e:
        logger.error(f"Scheduler Error (Difficulty): {e}")


def start_scheduler(engine: EnergyEngine):
    """Start the scheduler with all engine jobs"""
    if not scheduler.running:
        every_minute = CronTrigger(minute='*')

        scheduler.add_job(
            run_reset_check,
            every_minute,
            args=[engine],
            id='daily_reset',
            replace_existing=True
        )

        scheduler.add_job(
            run_decay_warning_check,
            every_minute,
            args=[engine],
            id='decay_warning',
            replace_existing=True
        )

        scheduler.add_job(
            run_decay,
            CronTrigger(minute=0),
            args=[engine],
            id='decay',
            replace_existing=True
        )

        scheduler.add_job(
            run_difficulty_check,
            CronTrigger(minute=5),
            args=[engine],
            id='difficulty',
            replace_existing=True
        )

        scheduler.start()
        logger.info(">>> APScheduler STARTED <<<")
        logger.info(f"Scheduled jobs: {[job.id for job in scheduler.get_jobs()]}")


def stop_scheduler():
    """Stop the scheduler"""
    if scheduler.running:
        scheduler.shutdown()
        logger.info("APScheduler stopped")
