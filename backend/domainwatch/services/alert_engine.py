"""Alert engine - threshold evaluation and alert lifecycle.

Alert states::

    triggered -> acknowledged -> resolved
    triggered -> resolved
    triggered | acknowledged -> deleted

Nothing leaves ``resolved``; deleted alerts are gone. At most one unresolved
alert exists per (domain, alert type); a new qualifying event updates that
alert in place.
"""
import logging
import secrets
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from pydantic import TypeAdapter

from ..errors import AlertStateError, NotFoundError, ProbeError
from ..models.alert import AlertType, CertificateAlert, Severity
from ..models.base import utcnow
from ..models.certificate import CertificateSnapshot
from ..models.rule import MonitoringRule

logger = logging.getLogger(__name__)

# Expiration severity by the smallest threshold crossed: the first bucket
# whose bound the threshold exceeds wins, anything at or below 1 day is critical.
EXPIRY_SEVERITY_BUCKETS = (
    (14, Severity.LOW),
    (7, Severity.MEDIUM),
    (1, Severity.HIGH),
)
EXPIRY_SEVERITY_FLOOR = Severity.CRITICAL

INVALID_SEVERITY = Severity.CRITICAL
CHANGE_SEVERITY = Severity.MEDIUM
RENEWAL_SEVERITY = Severity.LOW

ALERT_LIST_ADAPTER = TypeAdapter(List[CertificateAlert])


def expiry_severity(threshold: int) -> Severity:
    for bound, severity in EXPIRY_SEVERITY_BUCKETS:
        if threshold > bound:
            return severity
    return EXPIRY_SEVERITY_FLOOR


def crossed_threshold(days_until_expiry: int, thresholds: Sequence[int]) -> Optional[int]:
    """Smallest threshold the expiry has reached, or None if above all of them."""
    for threshold in sorted(thresholds):
        if days_until_expiry <= threshold:
            return threshold
    return None


def generate_alert_id() -> str:
    return f"alert_{int(utcnow().timestamp() * 1000)}_{secrets.token_hex(5)}"


@dataclass
class Evaluation:
    """Alerts touched by one evaluation."""
    created: List[CertificateAlert] = field(default_factory=list)
    updated: List[CertificateAlert] = field(default_factory=list)
    resolved: List[CertificateAlert] = field(default_factory=list)


class AlertEngine:
    """Owns every alert record. Readers get copies."""

    def __init__(self):
        self._alerts: Dict[str, CertificateAlert] = {}
        self._fingerprints: Dict[str, str] = {}
        self._lock = threading.RLock()

    # -- evaluation --

    def evaluate(
        self,
        rule: MonitoringRule,
        result: Union[CertificateSnapshot, ProbeError],
        now: Optional[datetime] = None,
    ) -> Evaluation:
        """Fold one certificate probe outcome for ``rule`` into alert state."""
        now = now or utcnow()
        evaluation = Evaluation()
        domain = rule.domain
        thresholds = rule.alert_thresholds
        methods = rule.notification_settings.methods

        with self._lock:
            if isinstance(result, ProbeError):
                if thresholds.enable_invalid_cert_alerts:
                    self._raise(
                        evaluation, domain, AlertType.INVALID, INVALID_SEVERITY,
                        f"Certificate check failed for {domain}: {result.message}",
                        now, methods,
                    )
                return evaluation

            snapshot = result
            if (
                thresholds.enable_invalid_cert_alerts
                and snapshot.valid_from is not None
                and now < snapshot.valid_from
            ):
                self._raise(
                    evaluation, domain, AlertType.INVALID, INVALID_SEVERITY,
                    f"Certificate for {domain} is not valid until {snapshot.valid_from.isoformat()}",
                    now, methods,
                )

            if snapshot.days_until_expiry is not None:
                self._evaluate_expiry(evaluation, domain, snapshot.days_until_expiry,
                                      thresholds.days_before_expiry, now, methods)

            if snapshot.fingerprint:
                previous = self._fingerprints.get(domain)
                self._fingerprints[domain] = snapshot.fingerprint
                if thresholds.enable_change_detection and previous and previous != snapshot.fingerprint:
                    self._raise(
                        evaluation, domain, AlertType.CHANGE, CHANGE_SEVERITY,
                        f"Certificate for {domain} changed (fingerprint {previous[:23]} -> "
                        f"{snapshot.fingerprint[:23]})",
                        now, methods,
                    )

        if evaluation.created:
            logger.info(f"{domain}: {len(evaluation.created)} new alert(s)")
        return evaluation

    def _evaluate_expiry(
        self,
        evaluation: Evaluation,
        domain: str,
        days: int,
        thresholds: Sequence[int],
        now: datetime,
        methods: List[str],
    ) -> None:
        existing = self._find_unresolved(domain, AlertType.EXPIRATION)
        crossed = crossed_threshold(days, thresholds)

        if crossed is None:
            # Back above every threshold: the certificate was renewed
            if existing is not None and thresholds:
                existing.resolved_at = now
                existing.days_until_expiry = days
                evaluation.resolved.append(existing.model_copy())
                self._raise(
                    evaluation, domain, AlertType.RENEWAL, RENEWAL_SEVERITY,
                    f"Certificate for {domain} was renewed and now expires in {days} days",
                    now, methods, days_until_expiry=days,
                )
            return

        if existing is not None and existing.threshold is not None and existing.threshold <= crossed:
            existing.days_until_expiry = days
            return

        if days <= 0:
            message = f"Certificate for {domain} has expired"
        else:
            message = f"Certificate for {domain} expires in {days} day{'s' if days != 1 else ''}"
        self._raise(
            evaluation, domain, AlertType.EXPIRATION, expiry_severity(crossed),
            message, now, methods, days_until_expiry=days, threshold=crossed,
        )

    def _raise(
        self,
        evaluation: Evaluation,
        domain: str,
        alert_type: AlertType,
        severity: Severity,
        message: str,
        now: datetime,
        methods: List[str],
        **fields,
    ) -> None:
        """Create an alert, or update the unresolved one of the same type in place."""
        existing = self._find_unresolved(domain, alert_type)
        if existing is not None:
            existing.message = message
            existing.severity = severity
            existing.triggered_at = now
            existing.notification_methods = methods
            for name, value in fields.items():
                setattr(existing, name, value)
            evaluation.updated.append(existing.model_copy())
            return

        alert = CertificateAlert(
            id=generate_alert_id(),
            domain=domain,
            alert_type=alert_type,
            severity=severity,
            message=message,
            triggered_at=now,
            notification_methods=methods,
            **fields,
        )
        self._alerts[alert.id] = alert
        evaluation.created.append(alert.model_copy())

    def _find_unresolved(self, domain: str, alert_type: AlertType) -> Optional[CertificateAlert]:
        for alert in self._alerts.values():
            if alert.domain == domain and alert.alert_type == alert_type and not alert.resolved:
                return alert
        return None

    # -- lifecycle --

    def _require(self, alert_id: str) -> CertificateAlert:
        alert = self._alerts.get(alert_id)
        if alert is None:
            raise NotFoundError(f"Alert {alert_id} not found")
        return alert

    def acknowledge(self, alert_id: str, now: Optional[datetime] = None) -> CertificateAlert:
        """Acknowledge an alert. Acknowledging twice is a no-op."""
        with self._lock:
            alert = self._require(alert_id)
            if alert.resolved:
                raise AlertStateError(f"Alert {alert_id} is resolved and cannot be acknowledged")
            if not alert.acknowledged:
                alert.acknowledged = True
                alert.acknowledged_at = now or utcnow()
                logger.info(f"Alert {alert_id} acknowledged")
            return alert.model_copy()

    def resolve(self, alert_id: str, now: Optional[datetime] = None) -> CertificateAlert:
        with self._lock:
            alert = self._require(alert_id)
            if alert.resolved:
                raise AlertStateError(f"Alert {alert_id} is already resolved")
            alert.resolved_at = now or utcnow()
            logger.info(f"Alert {alert_id} resolved")
            return alert.model_copy()

    def delete(self, alert_id: str) -> None:
        with self._lock:
            alert = self._require(alert_id)
            if alert.resolved:
                raise AlertStateError(f"Alert {alert_id} is resolved and cannot be deleted")
            del self._alerts[alert_id]
            logger.info(f"Alert {alert_id} deleted")

    # -- queries --

    def get(self, alert_id: str) -> Optional[CertificateAlert]:
        with self._lock:
            alert = self._alerts.get(alert_id)
            return alert.model_copy() if alert else None

    def list(self, domain: Optional[str] = None) -> List[CertificateAlert]:
        """Alerts newest first, optionally for one domain."""
        with self._lock:
            alerts = [
                alert.model_copy()
                for alert in self._alerts.values()
                if domain is None or alert.domain == domain
            ]
        return sorted(alerts, key=lambda a: a.triggered_at, reverse=True)

    def counts(self) -> Dict[str, int]:
        with self._lock:
            total = len(self._alerts)
            unresolved = sum(1 for alert in self._alerts.values() if not alert.resolved)
        return {"total": total, "unresolved": unresolved}

    def last_fingerprint(self, domain: str) -> Optional[str]:
        return self._fingerprints.get(domain)

    def prune_resolved(self, max_age_days: int, now: Optional[datetime] = None) -> int:
        """Drop resolved alerts older than the retention window."""
        cutoff = (now or utcnow()) - timedelta(days=max_age_days)
        with self._lock:
            stale = [
                alert_id for alert_id, alert in self._alerts.items()
                if alert.resolved_at is not None and alert.resolved_at < cutoff
            ]
            for alert_id in stale:
                del self._alerts[alert_id]
        return len(stale)

    # -- persistence --

    def dump(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "alerts": [alert.to_dict() for alert in self._alerts.values()],
                "fingerprints": dict(self._fingerprints),
            }

    def restore(self, raw: Mapping[str, Any]) -> int:
        """Replace alerts and last-seen fingerprints with dumped ones.

        Raises:
            pydantic.ValidationError: If any alert is malformed; nothing is replaced
        """
        alerts = ALERT_LIST_ADAPTER.validate_python(raw.get("alerts", []))
        fingerprints = {
            str(domain): str(fingerprint)
            for domain, fingerprint in (raw.get("fingerprints") or {}).items()
        }
        with self._lock:
            self._alerts = {alert.id: alert for alert in alerts}
            self._fingerprints = fingerprints
        return len(alerts)
