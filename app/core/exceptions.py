"""
Error taxonomy for the recalculation engine.

  ValidationError       unrecognised rating / level / provider value, rejected
                        before any computation
  NotFoundError         auditable area absent
  PersistenceError      store write failed; nothing was committed
  ConfigurationWarning  weights not summing to 1.0 or a missing weight that
                        fell back to its default; logged, never raised
"""
from __future__ import annotations

from typing import Optional


class RiskEngineError(Exception):
    """Base class for every error surfaced to callers of the engine."""

    code = "RISK_ENGINE_ERROR"

    def __init__(self, message: str, *, area_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.area_id = area_id

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "area_id": self.area_id}


class ValidationError(RiskEngineError):
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, *, field: Optional[str] = None, value=None, area_id: Optional[str] = None):
        super().__init__(message, area_id=area_id)
        self.field = field
        self.value = value

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["field"] = self.field
        return data


class NotFoundError(RiskEngineError):
    code = "NOT_FOUND"


class PersistenceError(RiskEngineError):
    code = "PERSISTENCE_ERROR"


class ConfigurationWarning(UserWarning):
    """Non-fatal weight configuration problem."""
