"""
Snapshot repository - Data access layer for the persisted engine state.
The engine keeps exactly one row; blobs are stored as JSON text.
"""
from typing import Optional

from sqlalchemy.orm import Session

from energy_engine.models import EngineSnapshot


class SnapshotRepository:
    """Repository for EngineSnapshot data access"""

    @staticmethod
    def get(db: Session) -> Optional[EngineSnapshot]:
        return db.query(EngineSnapshot).first()

    @staticmethod
    def save(
        db: Session,
        state_json: str,
        difficulty_json: str,
        decay_monitor_json: str,
        calibration_json: str
    ) -> EngineSnapshot:
        """
        Create or overwrite the snapshot row.

        Returns:
            Saved snapshot
        """
        snapshot = db.query(EngineSnapshot).first()
        if not snapshot:
            snapshot = EngineSnapshot()
            db.add(snapshot)

        snapshot.state_json = state_json
        snapshot.difficulty_json = difficulty_json
        snapshot.decay_monitor_json = decay_monitor_json
        snapshot.calibration_json = calibration_json
        db.commit()
        db.refresh(snapshot)
        return snapshot
