"""Rule and alert request schemas."""
from enum import Enum
from typing import List, Optional

from pydantic import Field, field_validator, model_validator

from ..models.base import CamelModel
from ..models.rule import (
    DEFAULT_CHECK_INTERVAL_HOURS,
    EMAIL_PATTERN,
    WEBHOOK_PATTERN,
    AlertThresholds,
    CheckType,
    NotificationSettings,
    normalize_thresholds,
)
from ..utils.validators import check_domain


class RuleCreate(CamelModel):
    """Schema for creating a monitoring rule (rule minus id/createdAt)."""
    domain: str = Field(..., min_length=1, max_length=253)
    enabled: bool = True
    check_interval: int = Field(default=DEFAULT_CHECK_INTERVAL_HOURS, ge=1, le=168)
    alert_thresholds: AlertThresholds = Field(default_factory=AlertThresholds)
    notification_settings: NotificationSettings = Field(default_factory=NotificationSettings)
    checks: List[CheckType] = Field(default_factory=lambda: list(CheckType), min_length=1)

    @field_validator("domain")
    @classmethod
    def _valid_domain(cls, v: str) -> str:
        return check_domain(v)

    @field_validator("checks")
    @classmethod
    def _unique_checks(cls, v: List[CheckType]) -> List[CheckType]:
        return list(dict.fromkeys(v))


class ThresholdsUpdate(CamelModel):
    days_before_expiry: Optional[List[int]] = None
    enable_change_detection: Optional[bool] = None
    enable_invalid_cert_alerts: Optional[bool] = None

    @field_validator("days_before_expiry")
    @classmethod
    def _sorted_unique(cls, v: Optional[List[int]]) -> Optional[List[int]]:
        return normalize_thresholds(v) if v is not None else v


class NotificationUpdate(CamelModel):
    email: Optional[str] = Field(None, pattern=EMAIL_PATTERN, max_length=254)
    webhook_url: Optional[str] = Field(None, pattern=WEBHOOK_PATTERN, max_length=2048)
    enable_browser_notifications: Optional[bool] = None


class RuleUpdate(CamelModel):
    """Partial update; only fields present in the request are applied."""
    domain: Optional[str] = Field(None, min_length=1, max_length=253)
    enabled: Optional[bool] = None
    check_interval: Optional[int] = Field(None, ge=1, le=168)
    alert_thresholds: Optional[ThresholdsUpdate] = None
    notification_settings: Optional[NotificationUpdate] = None
    checks: Optional[List[CheckType]] = Field(None, min_length=1)

    @field_validator("domain")
    @classmethod
    def _valid_domain(cls, v: Optional[str]) -> Optional[str]:
        return check_domain(v) if v is not None else v


class AlertAction(str, Enum):
    ACKNOWLEDGE = "acknowledge"
    RESOLVE = "resolve"
    DELETE = "delete"


class AlertActionRequest(CamelModel):
    action: AlertAction
    alert_id: str = Field(..., min_length=1)


class CheckRequest(CamelModel):
    rule_id: Optional[str] = None
    check_all: bool = False

    @model_validator(mode="after")
    def _target_required(self):
        if not self.check_all and not self.rule_id:
            raise ValueError("Either ruleId or checkAll is required")
        return self
