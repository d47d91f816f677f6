"""Tests for the certificate probe."""
import asyncio
import socket
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from domainwatch.errors import ProbeConnectionError, ProbeNoCertificateError, ProbeTimeoutError
from domainwatch.services.certificate_probe import CertificateProbe, build_snapshot, days_until

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_der(not_before: datetime, not_after: datetime, common_name: str = "example.com") -> bytes:
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([
        x509.NameAttribute(NameOID.COMMON_NAME, common_name),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Example Org"),
    ])
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(0x1234ABCD)
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .add_extension(
            x509.SubjectAlternativeName([
                x509.DNSName(common_name),
                x509.DNSName(f"www.{common_name}"),
            ]),
            critical=False,
        )
        .sign(key, hashes.SHA256())
    )
    return cert.public_bytes(serialization.Encoding.DER)


def mock_connection(der):
    ssl_object = MagicMock()
    ssl_object.getpeercert.return_value = der
    writer = MagicMock()
    writer.get_extra_info.return_value = ssl_object
    writer.wait_closed = AsyncMock()
    return AsyncMock(return_value=(MagicMock(), writer))


class TestBuildSnapshot:
    """Test cases for certificate parsing."""

    def test_extracts_attributes(self):
        der = make_der(NOW - timedelta(days=10), NOW + timedelta(days=80))

        snapshot = build_snapshot("example.com", der, now=NOW)

        assert snapshot.subject.common_name == "example.com"
        assert snapshot.issuer.organization == "Example Org"
        assert snapshot.serial_number == "1234ABCD"
        assert snapshot.subject_alternative_names == ["example.com", "www.example.com"]
        assert snapshot.signature_algorithm == "sha256"
        assert snapshot.valid is True
        assert snapshot.days_until_expiry == 80
        # SHA-256: 32 colon separated hex bytes
        assert len(snapshot.fingerprint.split(":")) == 32

    def test_days_round_up(self):
        der = make_der(NOW - timedelta(days=1), NOW + timedelta(days=29, hours=1))
        assert build_snapshot("example.com", der, now=NOW).days_until_expiry == 30

    def test_expired_certificate(self):
        der = make_der(NOW - timedelta(days=100), NOW - timedelta(days=1))

        snapshot = build_snapshot("example.com", der, now=NOW)

        assert snapshot.valid is False
        assert snapshot.days_until_expiry == -1

    def test_not_yet_valid_certificate(self):
        der = make_der(NOW + timedelta(days=1), NOW + timedelta(days=90))
        assert build_snapshot("example.com", der, now=NOW).valid is False

    def test_unparseable_certificate(self):
        with pytest.raises(ProbeNoCertificateError):
            build_snapshot("example.com", b"not a certificate", now=NOW)

    def test_days_until(self):
        assert days_until(NOW + timedelta(seconds=1), NOW) == 1
        assert days_until(NOW, NOW) == 0


class TestCertificateProbe:
    """Test cases for CertificateProbe.fetch error mapping."""

    def setup_method(self):
        self.probe = CertificateProbe(timeout=0.5)

    @pytest.mark.asyncio
    async def test_fetch_success(self):
        der = make_der(datetime.now(timezone.utc) - timedelta(days=1),
                       datetime.now(timezone.utc) + timedelta(days=60))
        with patch("domainwatch.services.certificate_probe.asyncio.open_connection", mock_connection(der)) as opened:
            snapshot = await self.probe.fetch("example.com")

        assert snapshot.domain == "example.com"
        assert snapshot.valid is True
        assert opened.call_args.kwargs["server_hostname"] == "example.com"

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        refused = AsyncMock(side_effect=ConnectionRefusedError("refused"))
        with patch("domainwatch.services.certificate_probe.asyncio.open_connection", refused):
            with pytest.raises(ProbeConnectionError):
                await self.probe.fetch("example.com")

    @pytest.mark.asyncio
    async def test_dns_failure(self):
        unresolved = AsyncMock(side_effect=socket.gaierror("Name or service not known"))
        with patch("domainwatch.services.certificate_probe.asyncio.open_connection", unresolved):
            with pytest.raises(ProbeConnectionError):
                await self.probe.fetch("example.com")

    @pytest.mark.asyncio
    async def test_timeout(self):
        async def hang(*args, **kwargs):
            await asyncio.sleep(10)

        with patch("domainwatch.services.certificate_probe.asyncio.open_connection", hang):
            with pytest.raises(ProbeTimeoutError):
                await self.probe.fetch("example.com", timeout=0.05)

    @pytest.mark.asyncio
    async def test_no_certificate(self):
        with patch("domainwatch.services.certificate_probe.asyncio.open_connection", mock_connection(None)):
            with pytest.raises(ProbeNoCertificateError):
                await self.probe.fetch("example.com")
