"""Pydantic schemas for API request models."""
from .rule import (
    AlertAction,
    AlertActionRequest,
    CheckRequest,
    NotificationUpdate,
    RuleCreate,
    RuleUpdate,
    ThresholdsUpdate,
)
from .dashboard import CleanupRequest, SaveRequest

__all__ = [
    "AlertAction",
    "AlertActionRequest",
    "CheckRequest",
    "NotificationUpdate",
    "RuleCreate",
    "RuleUpdate",
    "ThresholdsUpdate",
    "CleanupRequest",
    "SaveRequest",
]
