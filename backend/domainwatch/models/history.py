"""History entries and dashboard aggregates."""
from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import Field

from .base import CamelModel
from .certificate import CertificateSnapshot
from .performance import PerformanceMetrics
from .security import SecurityHeadersAnalysis


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"
    UNKNOWN = "unknown"


# Ranking used to pick the worst status of a domain
STATUS_RANK = {
    HealthStatus.HEALTHY: 0,
    HealthStatus.UNKNOWN: 1,
    HealthStatus.WARNING: 2,
    HealthStatus.CRITICAL: 3,
}


class CertificateHistory(CamelModel):
    domain: str
    type: Literal["certificate"] = "certificate"
    timestamp: datetime
    data: CertificateSnapshot
    status: HealthStatus


class SecurityHistory(CamelModel):
    domain: str
    type: Literal["security"] = "security"
    timestamp: datetime
    data: SecurityHeadersAnalysis
    status: HealthStatus


class PerformanceHistory(CamelModel):
    domain: str
    type: Literal["performance"] = "performance"
    timestamp: datetime
    data: PerformanceMetrics
    status: HealthStatus


MonitoringHistory = Annotated[
    Union[CertificateHistory, SecurityHistory, PerformanceHistory],
    Field(discriminator="type"),
]


class DashboardMetrics(CamelModel):
    total_domains: int = 0
    healthy_domains: int = 0
    warning_domains: int = 0
    critical_domains: int = 0
    unknown_domains: int = 0
    certificates_expiring_soon: int = 0
    average_response_time: float = 0
    average_security_score: float = 0
    total_alerts: int = 0
    unresolved_alerts: int = 0
