"""Process-wide service instances, built once at startup."""
from dataclasses import dataclass
from typing import Optional

from ..config import Settings
from .alert_engine import AlertEngine
from .certificate_probe import CertificateProbe
from .monitor import CheckRunner
from .notifier import NotificationDispatcher
from .performance_probe import PerformanceProbe
from .rate_limiter import RateLimiter
from .rule_store import MonitoringRuleStore
from .scheduler import SchedulerService
from .security_headers import SecurityHeaderProbe
from .snapshot import StateSnapshot
from .time_series import TimeSeriesStore


@dataclass
class MonitoringContainer:
    settings: Settings
    rate_limiter: RateLimiter
    rules: MonitoringRuleStore
    alerts: AlertEngine
    history: TimeSeriesStore
    certificate_probe: CertificateProbe
    security_probe: SecurityHeaderProbe
    performance_probe: PerformanceProbe
    notifier: NotificationDispatcher
    runner: CheckRunner
    scheduler: SchedulerService
    snapshot: StateSnapshot


def build_container(
    settings: Settings,
    certificate_probe: Optional[CertificateProbe] = None,
    security_probe: Optional[SecurityHeaderProbe] = None,
    performance_probe: Optional[PerformanceProbe] = None,
) -> MonitoringContainer:
    """Wire every service from ``settings``. Probes can be swapped for tests."""
    timeout = settings.probe_timeout_seconds
    rate_limiter = RateLimiter(
        window_seconds=settings.rate_limit_window_seconds,
        default_limit=settings.rate_limit_default,
        strict_limit=settings.rate_limit_strict,
    )
    rules = MonitoringRuleStore()
    alerts = AlertEngine()
    history = TimeSeriesStore()
    certificate_probe = certificate_probe or CertificateProbe(timeout=timeout)
    security_probe = security_probe or SecurityHeaderProbe(timeout=timeout)
    performance_probe = performance_probe or PerformanceProbe(timeout=timeout)
    notifier = NotificationDispatcher()

    runner = CheckRunner(
        rules=rules,
        alerts=alerts,
        history=history,
        certificate_probe=certificate_probe,
        security_probe=security_probe,
        performance_probe=performance_probe,
        notifier=notifier,
        locations=settings.location_list,
        max_concurrent=settings.max_concurrent_checks,
    )
    scheduler = SchedulerService(
        runner=runner,
        rate_limiter=rate_limiter,
        history=history,
        alerts=alerts,
        tick_seconds=settings.scheduler_tick_seconds,
        sweep_seconds=settings.rate_limit_sweep_seconds,
        retention_days=settings.history_retention_days,
    )

    return MonitoringContainer(
        settings=settings,
        rate_limiter=rate_limiter,
        rules=rules,
        alerts=alerts,
        history=history,
        certificate_probe=certificate_probe,
        security_probe=security_probe,
        performance_probe=performance_probe,
        notifier=notifier,
        runner=runner,
        scheduler=scheduler,
        snapshot=StateSnapshot(rules, alerts, history),
    )
