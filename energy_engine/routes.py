"""
Energy HTTP routes.
"""
from fastapi import APIRouter, Depends, HTTPException
from typing import Dict, List, Optional

from energy_engine.auth import verify_api_key
from energy_engine.exceptions import InvalidDifficultyTierException
from energy_engine.schemas import (
    CalibrationProfile,
    CalibrationSample,
    CompletionEvent,
    DifficultyResponse,
    DifficultyUpdate,
    EnergyState,
    EngineResult,
    EngineSignal,
    Prediction,
    PredictionRequest,
    ResonanceSummary,
    TimingFeedback,
)
from energy_engine.services.date_service import DateService
from energy_engine.services.engine_service import EnergyEngine
from energy_engine.services.prediction_service import PredictionService

router = APIRouter(prefix="/api/energy", tags=["energy"], dependencies=[Depends(verify_api_key)])

_engine: Optional[EnergyEngine] = None


def get_engine() -> EnergyEngine:
    """Process-wide engine instance (the single writer)"""
    global _engine
    if _engine is None:
        _engine = EnergyEngine()
    return _engine


@router.get("", response_model=EnergyState)
@router.get("/state", response_model=EnergyState)
def get_state(engine: EnergyEngine = Depends(get_engine)):
    """Get the current energy state."""
    return engine.snapshot(DateService.utcnow())


@router.post("/completions", response_model=EngineResult)
def record_completion(event: CompletionEvent, engine: EnergyEngine = Depends(get_engine)):
    """Record a completed action."""
    return engine.record_completion(event, DateService.utcnow())


@router.post("/display-mode", response_model=EnergyState)
def toggle_display_mode(engine: EnergyEngine = Depends(get_engine)):
    """Switch between points and aura display."""
    return engine.toggle_display_mode(DateService.utcnow())


@router.get("/breakdown")
def get_breakdown(engine: EnergyEngine = Depends(get_engine)):
    """Get today's entries grouped by source, as a timeline and as segments."""
    return engine.breakdown(DateService.utcnow())


@router.get("/resonance", response_model=ResonanceSummary)
def get_resonance(engine: EnergyEngine = Depends(get_engine)):
    """Get today's resonance summary."""
    return engine.resonance(DateService.utcnow())


@router.post("/prediction", response_model=Prediction)
def get_prediction(request: PredictionRequest, engine: EnergyEngine = Depends(get_engine)):
    """Predict end-of-day energy from the remaining schedule."""
    return engine.predict(request, DateService.utcnow())


@router.post("/prediction/status")
def get_prediction_status(request: PredictionRequest, engine: EnergyEngine = Depends(get_engine)):
    """Ahead / on-track / behind descriptor for the prediction."""
    prediction = engine.predict(request, DateService.utcnow())
    return PredictionService.prediction_status(prediction)


@router.get("/difficulty", response_model=DifficultyResponse)
def get_difficulty(engine: EnergyEngine = Depends(get_engine)):
    """Get the current difficulty tier and recent performance."""
    return engine.describe_difficulty(DateService.utcnow())


@router.put("/difficulty", response_model=DifficultyResponse)
def set_difficulty(update: DifficultyUpdate, engine: EnergyEngine = Depends(get_engine)):
    """Manually set the difficulty tier."""
    try:
        return engine.set_tier(update.tier, DateService.utcnow())
    except InvalidDifficultyTierException as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/difficulty/reset", response_model=DifficultyResponse)
def reset_difficulty(engine: EnergyEngine = Depends(get_engine)):
    """Reset the difficulty tier to normal."""
    return engine.reset_difficulty(DateService.utcnow())


@router.get("/calibration", response_model=CalibrationProfile)
def get_calibration(engine: EnergyEngine = Depends(get_engine)):
    """Get the personal circadian calibration profile."""
    return engine.calibration_profile(DateService.utcnow())


@router.post("/calibration/samples", response_model=CalibrationProfile)
def add_calibration_sample(sample: CalibrationSample, engine: EnergyEngine = Depends(get_engine)):
    """Record a performance sample for calibration."""
    return engine.add_calibration_sample(sample, DateService.utcnow())


@router.post("/calibration/feedback", response_model=CalibrationProfile)
def record_timing_feedback(feedback: TimingFeedback, engine: EnergyEngine = Depends(get_engine)):
    """Rate the timing of the most recent calibrated completion."""
    return engine.record_timing_feedback(feedback.rating, DateService.utcnow())


@router.get("/calibration/curve", response_model=Dict[int, float])
def get_circadian_curve(engine: EnergyEngine = Depends(get_engine)):
    """Get hourly alertness values with the personal shift applied."""
    return engine.circadian_curve(DateService.utcnow())


@router.get("/signals", response_model=List[EngineSignal])
def drain_signals(engine: EnergyEngine = Depends(get_engine)):
    """Get and clear signals produced since the last call."""
    return engine.drain_signals()
