"""Tests for the monitoring rule store."""
from datetime import timedelta

import pytest
from pydantic import ValidationError

from domainwatch.models.base import utcnow
from domainwatch.models.rule import AlertThresholds, CheckType
from domainwatch.schemas.rule import RuleCreate, RuleUpdate
from domainwatch.services.rule_store import MonitoringRuleStore


class TestMonitoringRuleStore:
    """Test cases for MonitoringRuleStore CRUD."""

    def setup_method(self):
        self.store = MonitoringRuleStore()

    def test_create_applies_defaults(self):
        rule = self.store.create(RuleCreate(domain="Example.com"))

        assert rule.id.startswith("rule_")
        assert rule.domain == "example.com"
        assert rule.check_interval == 24
        assert rule.alert_thresholds.days_before_expiry == [1, 7, 14, 30]
        assert rule.alert_thresholds.enable_change_detection is True
        assert rule.alert_thresholds.enable_invalid_cert_alerts is True
        assert rule.notification_settings.enable_browser_notifications is True
        assert set(rule.checks) == set(CheckType)
        assert rule.last_checked is None

    def test_default_thresholds_are_sorted(self):
        thresholds = AlertThresholds()

        assert thresholds.days_before_expiry == [1, 7, 14, 30]
        assert thresholds.to_dict()["daysBeforeExpiry"] == [1, 7, 14, 30]

    def test_create_from_camel_case_payload(self):
        data = RuleCreate.model_validate({
            "domain": "https://example.com/path",
            "checkInterval": 6,
            "alertThresholds": {"daysBeforeExpiry": [7, 30, 7]},
            "notificationSettings": {"email": "ops@example.com"},
        })
        rule = self.store.create(data)

        assert rule.domain == "example.com"
        assert rule.check_interval == 6
        assert rule.alert_thresholds.days_before_expiry == [7, 30]
        assert rule.notification_settings.methods == ["browser", "email"]

    def test_create_rejects_bad_input(self):
        with pytest.raises(ValidationError):
            RuleCreate(domain="localhost")
        with pytest.raises(ValidationError):
            RuleCreate(domain="example.com", check_interval=500)
        with pytest.raises(ValidationError):
            RuleCreate.model_validate({"domain": "example.com", "alertThresholds": {"daysBeforeExpiry": [400]}})

    def test_update_merges_only_given_fields(self):
        rule = self.store.create(RuleCreate(domain="example.com"))

        updated = self.store.update(rule.id, RuleUpdate.model_validate({
            "checkInterval": 12,
            "alertThresholds": {"enableChangeDetection": False},
        }))

        assert updated is True
        stored = self.store.get(rule.id)
        assert stored.check_interval == 12
        assert stored.alert_thresholds.enable_change_detection is False
        # Untouched nested fields survive
        assert stored.alert_thresholds.days_before_expiry == [1, 7, 14, 30]
        assert stored.alert_thresholds.enable_invalid_cert_alerts is True
        assert stored.enabled is True

    def test_update_can_clear_webhook(self):
        rule = self.store.create(RuleCreate.model_validate({
            "domain": "example.com",
            "notificationSettings": {"webhookUrl": "https://hooks.example.com/abc"},
        }))

        self.store.update(rule.id, RuleUpdate.model_validate({"notificationSettings": {"webhookUrl": None}}))

        assert self.store.get(rule.id).notification_settings.webhook_url is None

    def test_update_unknown_id(self):
        assert self.store.update("rule_missing", RuleUpdate(enabled=False)) is False

    def test_remove(self):
        rule = self.store.create(RuleCreate(domain="example.com"))

        assert self.store.remove(rule.id) is True
        assert self.store.remove(rule.id) is False
        assert self.store.get(rule.id) is None

    def test_list_filters_by_domain(self):
        self.store.create(RuleCreate(domain="example.com"))
        self.store.create(RuleCreate(domain="example.org"))

        assert len(self.store.list()) == 2
        assert [r.domain for r in self.store.list("example.org")] == ["example.org"]

    def test_returned_rules_are_copies(self):
        rule = self.store.create(RuleCreate(domain="example.com"))
        rule.enabled = False
        assert self.store.get(rule.id).enabled is True

    def test_due_rules(self):
        now = utcnow()
        fresh = self.store.create(RuleCreate(domain="fresh.example.com", check_interval=24))
        stale = self.store.create(RuleCreate(domain="stale.example.com", check_interval=1))
        never = self.store.create(RuleCreate(domain="never.example.com"))
        disabled = self.store.create(RuleCreate(domain="off.example.com", enabled=False))
        self.store.mark_checked(fresh.id, now - timedelta(hours=2))
        self.store.mark_checked(stale.id, now - timedelta(hours=2))

        due = {r.id for r in self.store.due_rules(now)}

        assert due == {stale.id, never.id}
        assert disabled.id not in due
