"""Certificate snapshot model."""
from datetime import datetime
from typing import Any, List, Optional

from pydantic import Field, model_validator

from .base import CamelModel, utcnow


class CertificateName(CamelModel):
    common_name: Optional[str] = None
    organization: Optional[str] = None


class CertificateSnapshot(CamelModel):
    """Attributes of the certificate a domain presented at one point in time."""
    domain: str
    timestamp: datetime = Field(default_factory=utcnow)
    subject: CertificateName = Field(default_factory=CertificateName)
    issuer: CertificateName = Field(default_factory=CertificateName)
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None
    fingerprint: Optional[str] = None
    serial_number: Optional[str] = None
    signature_algorithm: Optional[str] = None
    subject_alternative_names: List[str] = Field(default_factory=list)
    days_until_expiry: Optional[int] = None
    valid: bool = False
    # Set on the placeholder recorded when the probe failed
    error: Optional[str] = None
    
    @model_validator(mode="before")
    @classmethod
    def _flat_names(cls, data: Any) -> Any:
        """Accept the flat shape of older snapshots.
        
        Those carry the issuer as a plain string and the subject's
        commonName / organization at the top level.
        """
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if isinstance(data.get("issuer"), str):
            data["issuer"] = {"commonName": data["issuer"]}
        if data.get("subject") is None:
            common_name = data.pop("commonName", data.pop("common_name", None))
            organization = data.pop("organization", None)
            if common_name is not None or organization is not None:
                data["subject"] = {"commonName": common_name, "organization": organization}
        return data
    
    @classmethod
    def failed(cls, domain: str, error: str) -> "CertificateSnapshot":
        return cls(domain=domain, valid=False, error=error)
