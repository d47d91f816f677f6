"""Certificate alert models."""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import Field

from .base import CamelModel, utcnow


class AlertType(str, Enum):
    EXPIRATION = "expiration"
    RENEWAL = "renewal"
    CHANGE = "change"
    INVALID = "invalid"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AlertState(str, Enum):
    TRIGGERED = "triggered"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"


class CertificateAlert(CamelModel):
    id: str
    domain: str
    alert_type: AlertType
    severity: Severity
    message: str
    triggered_at: datetime = Field(default_factory=utcnow)
    days_until_expiry: Optional[int] = None
    # Smallest expiry threshold crossed (expiration alerts only)
    threshold: Optional[int] = None
    notification_methods: List[str] = Field(default_factory=list)
    acknowledged: bool = False
    acknowledged_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    
    @property
    def resolved(self) -> bool:
        return self.resolved_at is not None
    
    @property
    def state(self) -> AlertState:
        if self.resolved:
            return AlertState.RESOLVED
        if self.acknowledged:
            return AlertState.ACKNOWLEDGED
        return AlertState.TRIGGERED
