"""Domain models."""
from .base import CamelModel, utcnow
from .rule import (
    AlertThresholds,
    CheckType,
    MonitoringRule,
    NotificationSettings,
    DEFAULT_EXPIRY_THRESHOLDS,
)
from .alert import AlertState, AlertType, CertificateAlert, Severity
from .certificate import CertificateName, CertificateSnapshot
from .security import HeaderSeverity, SecurityHeader, SecurityHeadersAnalysis
from .performance import PerformanceMetrics, TimingMetrics
from .history import (
    CertificateHistory,
    DashboardMetrics,
    HealthStatus,
    MonitoringHistory,
    PerformanceHistory,
    SecurityHistory,
    STATUS_RANK,
)

__all__ = [
    "CamelModel",
    "utcnow",
    "AlertThresholds",
    "CheckType",
    "MonitoringRule",
    "NotificationSettings",
    "DEFAULT_EXPIRY_THRESHOLDS",
    "AlertState",
    "AlertType",
    "CertificateAlert",
    "Severity",
    "CertificateName",
    "CertificateSnapshot",
    "HeaderSeverity",
    "SecurityHeader",
    "SecurityHeadersAnalysis",
    "PerformanceMetrics",
    "TimingMetrics",
    "CertificateHistory",
    "DashboardMetrics",
    "HealthStatus",
    "MonitoringHistory",
    "PerformanceHistory",
    "SecurityHistory",
    "STATUS_RANK",
]
