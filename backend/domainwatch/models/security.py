"""Security header analysis models."""
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import Field

from .base import CamelModel, utcnow


class HeaderSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class SecurityHeader(CamelModel):
    name: str
    value: Optional[str] = None
    present: bool = False
    secure: bool = False
    severity: HeaderSeverity = HeaderSeverity.INFO
    recommendation: Optional[str] = None


class SecurityHeadersAnalysis(CamelModel):
    domain: str
    timestamp: datetime = Field(default_factory=utcnow)
    overall_score: int = Field(ge=0, le=100)
    grade: str
    # Keyed by lowercase header name, e.g. "strict-transport-security"
    headers: Dict[str, SecurityHeader] = Field(default_factory=dict)
    recommendations: List[str] = Field(default_factory=list)
    vulnerabilities: List[str] = Field(default_factory=list)
    error: Optional[str] = None
    
    @classmethod
    def unreachable(cls, domain: str, error: str) -> "SecurityHeadersAnalysis":
        """Analysis recorded when the domain could not be fetched."""
        return cls(
            domain=domain,
            overall_score=0,
            grade="F",
            recommendations=["Ensure the domain is accessible over HTTPS"],
            vulnerabilities=["Unable to analyze security headers"],
            error=error,
        )
