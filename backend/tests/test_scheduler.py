"""Tests for the scheduler service."""
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from domainwatch.errors import ProbeConnectionError
from domainwatch.models.base import utcnow
from domainwatch.models.history import CertificateHistory, HealthStatus
from domainwatch.schemas.rule import RuleCreate
from domainwatch.services.scheduler import SchedulerService

from conftest import make_snapshot


class TestSchedulerService:
    """Test cases for SchedulerService."""

    @pytest.mark.asyncio
    async def test_start_registers_jobs(self, container):
        scheduler = container.scheduler

        scheduler.start()
        try:
            job_ids = {job.id for job in scheduler.scheduler.get_jobs()}
            assert job_ids == {"run_checks", "sweep_rate_limiter", "cleanup_history"}
            assert scheduler.running is True
        finally:
            scheduler.stop()

        assert scheduler.running is False

    @pytest.mark.asyncio
    async def test_run_checks_only_checks_due_rules(self, container, certificate_probe):
        due = container.rules.create(RuleCreate(domain="due.example.com", checks=["certificate"]))
        fresh = container.rules.create(RuleCreate(domain="fresh.example.com", checks=["certificate"]))
        container.rules.mark_checked(fresh.id, utcnow())

        await container.scheduler._run_checks()

        assert certificate_probe.calls == ["due.example.com"]
        assert container.rules.get(due.id).last_checked is not None

    @pytest.mark.asyncio
    async def test_run_checks_logs_and_survives_errors(self, container):
        runner = MagicMock()
        runner.check_due = AsyncMock(side_effect=RuntimeError("store unavailable"))
        scheduler = SchedulerService(runner, container.rate_limiter, container.history, container.alerts)

        await scheduler._run_checks()

        runner.check_due.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_cleanup_history_applies_retention(self, container):
        old = utcnow() - timedelta(days=120)
        container.history.append(CertificateHistory(
            domain="example.com", timestamp=old, data=make_snapshot(now=old), status=HealthStatus.HEALTHY,
        ))
        container.history.append(CertificateHistory(
            domain="example.com", timestamp=utcnow(), data=make_snapshot(), status=HealthStatus.HEALTHY,
        ))
        rule = container.rules.create(RuleCreate(domain="example.com"))
        evaluation = container.alerts.evaluate(rule, ProbeConnectionError("example.com", "refused"))
        container.alerts.resolve(evaluation.created[0].id, now=old)

        await container.scheduler._cleanup_history()

        assert len(container.history.history("example.com", since_days=365)) == 1
        assert container.alerts.counts() == {"total": 0, "unresolved": 0}
