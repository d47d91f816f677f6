"""Monitoring rule models."""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import Field, field_validator

from .base import CamelModel, utcnow

DEFAULT_CHECK_INTERVAL_HOURS = 24
DEFAULT_EXPIRY_THRESHOLDS = [1, 7, 14, 30]

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
WEBHOOK_PATTERN = r"^https?://\S+$"


class CheckType(str, Enum):
    CERTIFICATE = "certificate"
    SECURITY = "security"
    PERFORMANCE = "performance"


def normalize_thresholds(values: List[int]) -> List[int]:
    """Return thresholds as a sorted set, bounded to 0-365 days."""
    for value in values:
        if value < 0 or value > 365:
            raise ValueError(f"Threshold {value} must be between 0 and 365 days")
    return sorted(set(values))


class AlertThresholds(CamelModel):
    days_before_expiry: List[int] = Field(
        default_factory=lambda: list(DEFAULT_EXPIRY_THRESHOLDS), validate_default=True
    )
    enable_change_detection: bool = True
    enable_invalid_cert_alerts: bool = True
    
    @field_validator("days_before_expiry")
    @classmethod
    def _sorted_unique(cls, v: List[int]) -> List[int]:
        return normalize_thresholds(v)


class NotificationSettings(CamelModel):
    email: Optional[str] = Field(None, pattern=EMAIL_PATTERN, max_length=254)
    webhook_url: Optional[str] = Field(None, pattern=WEBHOOK_PATTERN, max_length=2048)
    enable_browser_notifications: bool = True
    
    @property
    def methods(self) -> List[str]:
        """Notification channels configured for this rule."""
        methods = []
        if self.enable_browser_notifications:
            methods.append("browser")
        if self.webhook_url:
            methods.append("webhook")
        if self.email:
            methods.append("email")
        return methods


class MonitoringRule(CamelModel):
    """Per-domain monitoring configuration."""
    id: str
    domain: str
    enabled: bool = True
    check_interval: int = Field(default=DEFAULT_CHECK_INTERVAL_HOURS, ge=1, le=168)  # hours
    alert_thresholds: AlertThresholds = Field(default_factory=AlertThresholds)
    notification_settings: NotificationSettings = Field(default_factory=NotificationSettings)
    checks: List[CheckType] = Field(default_factory=lambda: list(CheckType))
    created_at: datetime = Field(default_factory=utcnow)
    last_checked: Optional[datetime] = None
