"""Shared fixtures and fakes."""
from datetime import timedelta
from typing import Dict, List, Optional, Union

import httpx
import pytest
from fastapi.testclient import TestClient

from domainwatch.config import Settings
from domainwatch.errors import ProbeError
from domainwatch.main import create_app
from domainwatch.models.base import utcnow
from domainwatch.models.certificate import CertificateName, CertificateSnapshot
from domainwatch.services.container import build_container
from domainwatch.services.performance_probe import PerformanceProbe
from domainwatch.services.security_headers import SecurityHeaderProbe

ADMIN_SECRET = "test-admin-secret"

SECURE_HEADERS = {
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "Content-Security-Policy": "default-src 'self'; script-src 'self'",
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "geolocation=(), camera=()",
}


def make_snapshot(
    domain: str = "example.com",
    days: int = 90,
    fingerprint: str = "AA:BB:CC:DD",
    now=None,
) -> CertificateSnapshot:
    now = now or utcnow()
    return CertificateSnapshot(
        domain=domain,
        timestamp=now,
        subject=CertificateName(common_name=domain),
        issuer=CertificateName(common_name="Test CA", organization="Test Org"),
        valid_from=now - timedelta(days=30),
        valid_to=now + timedelta(days=days),
        fingerprint=fingerprint,
        serial_number="0A1B",
        subject_alternative_names=[domain],
        days_until_expiry=days,
        valid=days > 0,
    )


class FakeCertificateProbe:
    """Returns queued snapshots or raises queued probe errors per domain."""

    def __init__(self):
        self.results: Dict[str, Union[CertificateSnapshot, ProbeError]] = {}
        self.calls: List[str] = []

    async def fetch(self, domain: str, timeout: Optional[float] = None) -> CertificateSnapshot:
        self.calls.append(domain)
        result = self.results.get(domain)
        if isinstance(result, Exception):
            raise result
        return result or make_snapshot(domain)


def secure_transport(status_code: int = 200) -> httpx.MockTransport:
    return httpx.MockTransport(
        lambda request: httpx.Response(status_code, headers=SECURE_HEADERS, text="<html>ok</html>")
    )


async def fake_resolver(domain: str):
    return [("AF_INET", None, None, "", ("93.184.216.34", 443))]


@pytest.fixture
def settings():
    return Settings(admin_secret=ADMIN_SECRET, scheduler_enabled=False, snapshot_path=None)


@pytest.fixture
def certificate_probe():
    return FakeCertificateProbe()


@pytest.fixture
def container(settings, certificate_probe):
    transport = secure_transport()
    return build_container(
        settings,
        certificate_probe=certificate_probe,
        security_probe=SecurityHeaderProbe(transport=transport),
        performance_probe=PerformanceProbe(transport=transport, resolver=fake_resolver),
    )


@pytest.fixture
def client(settings, container):
    app = create_app(settings, container)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def admin_headers():
    return {"X-Admin-Secret": ADMIN_SECRET}
