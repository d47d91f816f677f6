"""Dashboard request schemas."""
from typing import Any, Dict

from pydantic import Field, field_validator

from ..models.base import CamelModel
from ..models.history import HealthStatus
from ..models.rule import CheckType
from ..utils.validators import check_domain


class SaveRequest(CamelModel):
    """Manually record one history entry."""
    domain: str = Field(..., min_length=1, max_length=253)
    type: CheckType
    data: Dict[str, Any]
    status: HealthStatus = HealthStatus.UNKNOWN

    @field_validator("domain")
    @classmethod
    def _valid_domain(cls, v: str) -> str:
        return check_domain(v)


class CleanupRequest(CamelModel):
    max_age_in_days: int = Field(default=90, ge=1, le=3650)
