"""
Custom exceptions for the energy engine.
Core transitions clamp instead of raising; these cover parsing and manual overrides.
"""


class EnergyEngineException(Exception):
    """Base exception for the energy engine"""
    pass


class StateRehydrationException(EnergyEngineException):
    """Raised when a persisted state blob cannot be turned back into a state"""
    def __init__(self, details: str):
        self.details = details
        super().__init__(f"Cannot rehydrate energy state: {details}")


class InvalidDifficultyTierException(EnergyEngineException):
    """Raised when an unknown difficulty tier is requested"""
    def __init__(self, tier: str):
        self.tier = tier
        super().__init__(f"Unknown difficulty tier: {tier}")


class InvalidTimeFormatException(EnergyEngineException):
    """Raised when time format is invalid"""
    def __init__(self, time_str: str):
        self.time_str = time_str
        super().__init__(f"Invalid time format: {time_str}. Expected HH:MM")


class ValidationException(EnergyEngineException):
    """Raised when data validation fails"""
    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"Validation error for {field}: {message}")
