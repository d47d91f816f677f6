"""Certificate probe - fetches and inspects the TLS certificate a domain presents."""
import asyncio
import logging
import math
import ssl
from datetime import datetime
from typing import List, Optional

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.x509.oid import NameOID

from ..errors import ProbeConnectionError, ProbeNoCertificateError, ProbeTimeoutError
from ..models.base import utcnow
from ..models.certificate import CertificateName, CertificateSnapshot

logger = logging.getLogger(__name__)

TLS_PORT = 443
SECONDS_PER_DAY = 86400


def _inspection_context() -> ssl.SSLContext:
    """TLS context that accepts any certificate.

    Validity is decided from the parsed certificate, not by the handshake,
    so expired, self-signed and mismatched certificates can still be reported.
    """
    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


def _name_attribute(name: x509.Name, oid) -> Optional[str]:
    attributes = name.get_attributes_for_oid(oid)
    return str(attributes[0].value) if attributes else None


def _certificate_name(name: x509.Name) -> CertificateName:
    return CertificateName(
        common_name=_name_attribute(name, NameOID.COMMON_NAME),
        organization=_name_attribute(name, NameOID.ORGANIZATION_NAME),
    )


def _subject_alternative_names(cert: x509.Certificate) -> List[str]:
    try:
        extension = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
    except x509.ExtensionNotFound:
        return []
    return extension.value.get_values_for_type(x509.DNSName)


def _signature_algorithm(cert: x509.Certificate) -> Optional[str]:
    try:
        algorithm = cert.signature_hash_algorithm
    except UnsupportedAlgorithm:
        return None
    return algorithm.name if algorithm else None


def days_until(valid_to: datetime, now: datetime) -> int:
    """Whole days left before ``valid_to``, rounded up."""
    return math.ceil((valid_to - now).total_seconds() / SECONDS_PER_DAY)


def build_snapshot(domain: str, der: bytes, now: Optional[datetime] = None) -> CertificateSnapshot:
    """Parse a DER certificate into a snapshot evaluated at ``now``.

    Raises:
        ProbeNoCertificateError: If the bytes are not a parseable certificate
    """
    now = now or utcnow()
    try:
        cert = x509.load_der_x509_certificate(der)
    except ValueError as e:
        raise ProbeNoCertificateError(domain, f"Unable to parse certificate: {e}")

    valid_from = cert.not_valid_before_utc
    valid_to = cert.not_valid_after_utc
    fingerprint = cert.fingerprint(hashes.SHA256())

    return CertificateSnapshot(
        domain=domain,
        timestamp=now,
        subject=_certificate_name(cert.subject),
        issuer=_certificate_name(cert.issuer),
        valid_from=valid_from,
        valid_to=valid_to,
        fingerprint=":".join(f"{b:02X}" for b in fingerprint),
        serial_number=format(cert.serial_number, "X"),
        signature_algorithm=_signature_algorithm(cert),
        subject_alternative_names=_subject_alternative_names(cert),
        days_until_expiry=days_until(valid_to, now),
        valid=valid_from <= now <= valid_to,
    )


class CertificateProbe:
    """Opens a TLS session to a domain and reports its leaf certificate."""

    def __init__(self, timeout: float = 10, port: int = TLS_PORT):
        self.timeout = timeout
        self.port = port

    async def _read_peer_certificate(self, domain: str) -> Optional[bytes]:
        reader, writer = await asyncio.open_connection(
            domain,
            self.port,
            ssl=_inspection_context(),
            server_hostname=domain,
        )
        try:
            ssl_object = writer.get_extra_info("ssl_object")
            if ssl_object is None:
                return None
            return ssl_object.getpeercert(binary_form=True)
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                pass

    async def fetch(self, domain: str, timeout: Optional[float] = None) -> CertificateSnapshot:
        """Fetch the certificate for ``domain``.

        Raises:
            ProbeConnectionError: DNS failure, refused connection or failed handshake
            ProbeTimeoutError: No handshake within the timeout
            ProbeNoCertificateError: Handshake succeeded without a peer certificate
        """
        timeout = timeout or self.timeout
        try:
            der = await asyncio.wait_for(self._read_peer_certificate(domain), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"TLS handshake with {domain} timed out after {timeout}s")
            raise ProbeTimeoutError(domain, f"TLS handshake timed out after {timeout}s")
        except OSError as e:
            logger.warning(f"TLS connection to {domain} failed: {e}")
            raise ProbeConnectionError(domain, f"Connection failed: {e}")

        if not der:
            raise ProbeNoCertificateError(domain, "No certificate retrieved")

        return build_snapshot(domain, der)
