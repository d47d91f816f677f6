"""Services for probing, alerting, history and scheduling."""
from .rate_limiter import RateLimiter
from .certificate_probe import CertificateProbe
from .security_headers import SecurityHeaderProbe
from .performance_probe import PerformanceProbe
from .rule_store import MonitoringRuleStore
from .alert_engine import AlertEngine
from .time_series import TimeSeriesStore
from .monitor import CheckRunner
from .scheduler import SchedulerService
from .snapshot import StateSnapshot
from .container import MonitoringContainer, build_container

__all__ = [
    "RateLimiter",
    "CertificateProbe",
    "SecurityHeaderProbe",
    "PerformanceProbe",
    "MonitoringRuleStore",
    "AlertEngine",
    "TimeSeriesStore",
    "CheckRunner",
    "SchedulerService",
    "StateSnapshot",
    "MonitoringContainer",
    "build_container",
]
