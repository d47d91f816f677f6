"""Check runner - runs the probes of a rule and folds the results into state.

A check cycle for one domain holds that domain's lock while alert state and
history are written. Different domains check fully in parallel, bounded by
``max_concurrent`` when fanning out over many rules.
"""
import asyncio
import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Union

from pydantic import Field

from ..errors import NotFoundError, ProbeError
from ..models.alert import CertificateAlert
from ..models.base import CamelModel, utcnow
from ..models.certificate import CertificateSnapshot
from ..models.history import (
    CertificateHistory,
    HealthStatus,
    PerformanceHistory,
    SecurityHistory,
)
from ..models.performance import PerformanceMetrics
from ..models.rule import CheckType, MonitoringRule
from ..models.security import SecurityHeadersAnalysis
from ..utils.locks import KeyedLock
from .alert_engine import AlertEngine
from .certificate_probe import CertificateProbe
from .notifier import NotificationDispatcher
from .performance_probe import PerformanceProbe, analyze_performance, average_metrics
from .rule_store import MonitoringRuleStore
from .security_headers import SecurityHeaderProbe
from .time_series import TimeSeriesStore

logger = logging.getLogger(__name__)

MAX_CONCURRENT_CHECKS = 10
DEFAULT_LOCATION = "server"

CERTIFICATE_WARNING_DAYS = 30
HEALTHY_GRADES = ("A+", "A")
WARNING_GRADES = ("B", "C")


class CheckOutcome(CamelModel):
    """Result of one check cycle for one rule."""
    rule_id: str
    domain: str
    checked_at: datetime = Field(default_factory=utcnow)
    skipped: bool = False
    certificate: Optional[CertificateSnapshot] = None
    security: Optional[SecurityHeadersAnalysis] = None
    performance: Optional[PerformanceMetrics] = None
    alerts: List[CertificateAlert] = Field(default_factory=list)
    updated_alerts: List[CertificateAlert] = Field(default_factory=list)
    errors: Dict[str, str] = Field(default_factory=dict)


def certificate_status(snapshot: CertificateSnapshot) -> HealthStatus:
    if snapshot.error or not snapshot.valid:
        return HealthStatus.CRITICAL
    if snapshot.days_until_expiry is not None and snapshot.days_until_expiry <= CERTIFICATE_WARNING_DAYS:
        return HealthStatus.WARNING
    return HealthStatus.HEALTHY


def security_status(analysis: SecurityHeadersAnalysis) -> HealthStatus:
    if analysis.error:
        return HealthStatus.UNKNOWN
    if analysis.grade in HEALTHY_GRADES:
        return HealthStatus.HEALTHY
    if analysis.grade in WARNING_GRADES:
        return HealthStatus.WARNING
    return HealthStatus.CRITICAL


class CheckRunner:
    """Runs check cycles against the shared stores."""

    def __init__(
        self,
        rules: MonitoringRuleStore,
        alerts: AlertEngine,
        history: TimeSeriesStore,
        certificate_probe: CertificateProbe,
        security_probe: SecurityHeaderProbe,
        performance_probe: PerformanceProbe,
        notifier: Optional[NotificationDispatcher] = None,
        locations: Sequence[str] = (DEFAULT_LOCATION,),
        max_concurrent: int = MAX_CONCURRENT_CHECKS,
    ):
        self.rules = rules
        self.alerts = alerts
        self.history = history
        self.certificate_probe = certificate_probe
        self.security_probe = security_probe
        self.performance_probe = performance_probe
        self.notifier = notifier or NotificationDispatcher()
        # An empty location list measures from the default location
        self.locations = list(locations) or [DEFAULT_LOCATION]
        self.max_concurrent = max_concurrent
        self._locks = KeyedLock()

    async def _probe_certificate(self, domain: str) -> Union[CertificateSnapshot, ProbeError]:
        try:
            return await self.certificate_probe.fetch(domain)
        except ProbeError as e:
            return e

    async def _probe_security(self, domain: str) -> SecurityHeadersAnalysis:
        try:
            return await self.security_probe.analyze(domain)
        except ProbeError as e:
            return SecurityHeadersAnalysis.unreachable(domain, e.message)

    async def _probe_performance(self, domain: str) -> PerformanceMetrics:
        results = await self.performance_probe.measure_many(domain, self.locations)
        if len(results) == 1:
            return results[0]
        return average_metrics(results) or results[0]

    async def check_rule(self, rule_id: str) -> CheckOutcome:
        """Run one rule now.

        Raises:
            NotFoundError: If the rule does not exist
        """
        rule = self.rules.get(rule_id)
        if rule is None:
            raise NotFoundError(f"Rule {rule_id} not found")
        if not rule.enabled:
            logger.debug(f"Skipping disabled rule {rule_id}")
            return CheckOutcome(rule_id=rule.id, domain=rule.domain, skipped=True)
        return await self.run(rule)

    async def run(self, rule: MonitoringRule) -> CheckOutcome:
        """Probe ``rule.domain`` and record the results."""
        domain = rule.domain
        probes = {
            CheckType.CERTIFICATE: self._probe_certificate,
            CheckType.SECURITY: self._probe_security,
            CheckType.PERFORMANCE: self._probe_performance,
        }
        checks = [check for check in probes if check in rule.checks]

        async with self._locks.hold(domain):
            results = await asyncio.gather(*[probes[check](domain) for check in checks])
            now = utcnow()
            outcome = CheckOutcome(rule_id=rule.id, domain=domain, checked_at=now)

            for check, result in zip(checks, results):
                if check == CheckType.CERTIFICATE:
                    self._record_certificate(rule, result, now, outcome)
                elif check == CheckType.SECURITY:
                    outcome.security = result
                    if result.error:
                        outcome.errors[check.value] = result.error
                    self.history.append(SecurityHistory(
                        domain=domain, timestamp=now, data=result, status=security_status(result),
                    ))
                else:
                    outcome.performance = result
                    if result.error:
                        outcome.errors[check.value] = result.error
                    self.history.append(PerformanceHistory(
                        domain=domain, timestamp=now, data=result,
                        status=analyze_performance(result).status,
                    ))

            self.rules.mark_checked(rule.id, now)

        if outcome.alerts:
            await self.notifier.notify(rule, outcome.alerts)
        logger.info(
            f"Checked {domain}: {len(outcome.alerts)} new alert(s), "
            f"{len(outcome.errors)} probe error(s)"
        )
        return outcome

    def _record_certificate(
        self,
        rule: MonitoringRule,
        result: Union[CertificateSnapshot, ProbeError],
        now: datetime,
        outcome: CheckOutcome,
    ) -> None:
        evaluation = self.alerts.evaluate(rule, result, now)
        outcome.alerts.extend(evaluation.created)
        outcome.updated_alerts.extend(evaluation.updated)

        if isinstance(result, ProbeError):
            outcome.errors[CheckType.CERTIFICATE.value] = result.message
            snapshot = CertificateSnapshot.failed(rule.domain, result.message)
        else:
            snapshot = result
        outcome.certificate = snapshot
        self.history.append(CertificateHistory(
            domain=rule.domain, timestamp=now, data=snapshot, status=certificate_status(snapshot),
        ))

    async def run_many(self, rules: Sequence[MonitoringRule]) -> List[CheckOutcome]:
        """Check every rule with bounded concurrency.

        A failing rule yields an outcome carrying the error instead of
        aborting the others. Results keep the order of ``rules``.
        """
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def check_with_limit(rule: MonitoringRule) -> CheckOutcome:
            async with semaphore:
                try:
                    return await self.run(rule)
                except Exception as e:
                    logger.error(f"Check of {rule.domain} failed: {e}")
                    return CheckOutcome(rule_id=rule.id, domain=rule.domain, errors={"check": str(e)})

        return list(await asyncio.gather(*[check_with_limit(rule) for rule in rules]))

    async def check_all(self) -> List[CheckOutcome]:
        """Check every enabled rule now."""
        rules = [rule for rule in self.rules.list() if rule.enabled]
        logger.info(f"Checking all {len(rules)} enabled rules")
        return await self.run_many(rules)

    async def check_due(self, now: Optional[datetime] = None) -> List[CheckOutcome]:
        """Check the enabled rules whose interval has elapsed."""
        rules = self.rules.due_rules(now)
        if not rules:
            return []
        logger.debug(f"Checking {len(rules)} due rules")
        return await self.run_many(rules)
