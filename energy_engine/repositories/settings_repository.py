"""
Settings repository - Data access layer for Settings model.
Handles all database queries related to engine tunables.
"""
from pydantic import ValidationError
from sqlalchemy.orm import Session

from energy_engine.exceptions import ValidationException
from energy_engine.models import Settings
from energy_engine.schemas import EngineConfig


def _to_config(settings: Settings) -> EngineConfig:
    try:
        return EngineConfig.model_validate(settings)
    except ValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error["loc"]) or "settings"
        raise ValidationException(field, error["msg"])


class SettingsRepository:
    """Repository for Settings data access"""

    @staticmethod
    def get(db: Session) -> Settings:
        """
        Get settings (creates with defaults if not exists).

        Returns:
            Settings object
        """
        settings = db.query(Settings).first()
        if not settings:
            settings = Settings()
            db.add(settings)
            db.commit()
            db.refresh(settings)
        return settings

    @staticmethod
    def update(db: Session, values: dict) -> Settings:
        """
        Update settings.

        Args:
            db: Database session
            values: Column name -> new value; unknown keys are ignored

        Returns:
            Updated settings

        Raises:
            ValidationException: If the updated values do not form a valid
                configuration; nothing is written
        """
        settings = SettingsRepository.get(db)
        for key, value in values.items():
            if hasattr(Settings, key) and key != "id":
                setattr(settings, key, value)

        try:
            _to_config(settings)
        except ValidationException:
            db.rollback()
            raise

        db.commit()
        db.refresh(settings)
        return settings

    @staticmethod
    def get_config(db: Session) -> EngineConfig:
        """
        Immutable engine configuration built from the settings row.

        Raises:
            ValidationException: If the stored row is not a valid configuration
        """
        return _to_config(SettingsRepository.get(db))
