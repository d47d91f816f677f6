"""Tests for alert evaluation and lifecycle."""
from datetime import timedelta

import pytest

from domainwatch.errors import (
    AlertStateError,
    NotFoundError,
    ProbeConnectionError,
    ProbeNoCertificateError,
    ProbeTimeoutError,
)
from domainwatch.models.alert import AlertState, AlertType, Severity
from domainwatch.models.base import utcnow
from domainwatch.models.rule import AlertThresholds, MonitoringRule
from domainwatch.services.alert_engine import AlertEngine, crossed_threshold, expiry_severity

from conftest import make_snapshot


def make_rule(**thresholds) -> MonitoringRule:
    return MonitoringRule(
        id="rule_1",
        domain="example.com",
        alert_thresholds=AlertThresholds(**thresholds),
    )


class TestThresholdPolicy:
    """Severity buckets and threshold crossing."""

    @pytest.mark.parametrize("threshold,severity", [
        (30, Severity.LOW), (15, Severity.LOW), (14, Severity.MEDIUM), (8, Severity.MEDIUM),
        (7, Severity.HIGH), (2, Severity.HIGH), (1, Severity.CRITICAL), (0, Severity.CRITICAL),
    ])
    def test_expiry_severity(self, threshold, severity):
        assert expiry_severity(threshold) == severity

    def test_crossed_threshold_is_smallest_reached(self):
        assert crossed_threshold(31, [30, 14, 7, 1]) is None
        assert crossed_threshold(29, [30, 14, 7, 1]) == 30
        assert crossed_threshold(10, [1, 7, 14, 30]) == 14
        assert crossed_threshold(0, [30, 14, 7, 1]) == 1
        assert crossed_threshold(-5, [30, 14, 7, 1]) == 1


class TestEvaluation:
    """Test cases for AlertEngine.evaluate."""

    def setup_method(self):
        self.engine = AlertEngine()
        self.rule = make_rule()

    def test_probe_failure_raises_single_invalid_alert(self):
        first = self.engine.evaluate(self.rule, ProbeConnectionError("example.com", "refused"))
        second = self.engine.evaluate(self.rule, ProbeTimeoutError("example.com", "timed out"))

        assert len(first.created) == 1
        assert first.created[0].alert_type == AlertType.INVALID
        assert first.created[0].severity == Severity.CRITICAL
        assert second.created == []
        assert len(second.updated) == 1
        unresolved = [a for a in self.engine.list() if not a.resolved]
        assert len(unresolved) == 1
        assert "timed out" in unresolved[0].message

    def test_probe_failure_ignored_when_invalid_alerts_disabled(self):
        rule = make_rule(enable_invalid_cert_alerts=False)
        evaluation = self.engine.evaluate(rule, ProbeNoCertificateError("example.com", "none"))
        assert evaluation.created == []
        assert self.engine.list() == []

    def test_threshold_crossing_escalates_in_place(self):
        assert self.engine.evaluate(self.rule, make_snapshot(days=31)).created == []

        crossed = self.engine.evaluate(self.rule, make_snapshot(days=29))
        assert len(crossed.created) == 1
        alert = crossed.created[0]
        assert alert.alert_type == AlertType.EXPIRATION
        assert alert.severity == Severity.LOW
        assert alert.threshold == 30

        expired = self.engine.evaluate(self.rule, make_snapshot(days=0))
        assert expired.created == []
        assert len(expired.updated) == 1

        alerts = self.engine.list()
        assert len(alerts) == 1
        assert alerts[0].id == alert.id
        assert alerts[0].severity == Severity.CRITICAL
        assert alerts[0].days_until_expiry == 0

    def test_same_threshold_does_not_re_alert(self):
        self.engine.evaluate(self.rule, make_snapshot(days=20))
        again = self.engine.evaluate(self.rule, make_snapshot(days=19))

        assert again.created == []
        assert again.updated == []
        assert self.engine.list()[0].days_until_expiry == 19

    def test_renewal_resolves_expiration(self):
        self.engine.evaluate(self.rule, make_snapshot(days=5, fingerprint="OLD"))
        renewed = self.engine.evaluate(self.rule, make_snapshot(days=90, fingerprint="OLD"))

        assert len(renewed.resolved) == 1
        assert renewed.resolved[0].alert_type == AlertType.EXPIRATION
        assert [a.alert_type for a in renewed.created] == [AlertType.RENEWAL]
        assert renewed.created[0].severity == Severity.LOW

    def test_fingerprint_change(self):
        first = self.engine.evaluate(self.rule, make_snapshot(fingerprint="AA"))
        assert first.created == []
        assert self.engine.last_fingerprint("example.com") == "AA"

        changed = self.engine.evaluate(self.rule, make_snapshot(fingerprint="BB"))
        assert [a.alert_type for a in changed.created] == [AlertType.CHANGE]
        assert changed.created[0].severity == Severity.MEDIUM

    def test_change_detection_disabled(self):
        rule = make_rule(enable_change_detection=False)
        self.engine.evaluate(rule, make_snapshot(fingerprint="AA"))
        assert self.engine.evaluate(rule, make_snapshot(fingerprint="BB")).created == []

    def test_not_yet_valid_certificate(self):
        now = utcnow()
        snapshot = make_snapshot(days=90, now=now)
        snapshot.valid_from = now + timedelta(days=1)

        evaluation = self.engine.evaluate(self.rule, snapshot, now=now)

        assert [a.alert_type for a in evaluation.created] == [AlertType.INVALID]

    def test_notification_methods_copied_from_rule(self):
        rule = make_rule()
        rule.notification_settings.email = "ops@example.com"
        created = self.engine.evaluate(rule, make_snapshot(days=3)).created
        assert created[0].notification_methods == ["browser", "email"]


class TestLifecycle:
    """Test cases for acknowledge / resolve / delete."""

    def setup_method(self):
        self.engine = AlertEngine()
        evaluation = self.engine.evaluate(make_rule(), ProbeConnectionError("example.com", "refused"))
        self.alert_id = evaluation.created[0].id

    def test_acknowledge_then_resolve(self):
        acknowledged = self.engine.acknowledge(self.alert_id)
        assert acknowledged.state == AlertState.ACKNOWLEDGED
        assert acknowledged.acknowledged_at is not None

        resolved = self.engine.resolve(self.alert_id)
        assert resolved.state == AlertState.RESOLVED

    def test_acknowledge_is_idempotent(self):
        first = self.engine.acknowledge(self.alert_id)
        second = self.engine.acknowledge(self.alert_id)
        assert first.acknowledged_at == second.acknowledged_at

    def test_resolve_without_acknowledge(self):
        resolved = self.engine.resolve(self.alert_id)
        assert resolved.acknowledged is False
        assert resolved.resolved_at is not None

    def test_resolved_is_terminal(self):
        self.engine.resolve(self.alert_id)
        with pytest.raises(AlertStateError):
            self.engine.acknowledge(self.alert_id)
        with pytest.raises(AlertStateError):
            self.engine.resolve(self.alert_id)
        with pytest.raises(AlertStateError):
            self.engine.delete(self.alert_id)

    def test_delete_removes_alert(self):
        self.engine.acknowledge(self.alert_id)
        self.engine.delete(self.alert_id)

        assert self.engine.get(self.alert_id) is None
        assert all(a.id != self.alert_id for a in self.engine.list())
        with pytest.raises(NotFoundError):
            self.engine.delete(self.alert_id)

    def test_unknown_alert(self):
        with pytest.raises(NotFoundError):
            self.engine.acknowledge("alert_missing")

    def test_new_failure_after_resolve_creates_new_alert(self):
        self.engine.resolve(self.alert_id)
        evaluation = self.engine.evaluate(make_rule(), ProbeConnectionError("example.com", "refused"))
        assert len(evaluation.created) == 1
        assert evaluation.created[0].id != self.alert_id

    def test_counts_and_pruning(self):
        self.engine.resolve(self.alert_id)
        assert self.engine.counts() == {"total": 1, "unresolved": 0}

        assert self.engine.prune_resolved(90, now=utcnow() + timedelta(days=91)) == 1
        assert self.engine.counts() == {"total": 0, "unresolved": 0}
