"""Performance measurement models."""
from datetime import datetime
from typing import Optional

from pydantic import Field

from .base import CamelModel, utcnow

FAILED_METRIC = -1


class TimingMetrics(CamelModel):
    """Wall-clock splits of one request, in milliseconds."""
    response_time: float = FAILED_METRIC
    first_byte_time: float = FAILED_METRIC
    dns_lookup_time: float = FAILED_METRIC
    connection_time: float = FAILED_METRIC
    download_time: float = FAILED_METRIC
    total_time: float = FAILED_METRIC


class PerformanceMetrics(CamelModel):
    domain: str
    timestamp: datetime = Field(default_factory=utcnow)
    metrics: TimingMetrics = Field(default_factory=TimingMetrics)
    http_status: int = 0
    content_size: int = 0
    redirect_count: int = 0
    from_cache: bool = False
    location: str = "server"
    error: Optional[str] = None
    
    @property
    def succeeded(self) -> bool:
        return self.metrics.response_time > 0
    
    @classmethod
    def failed(cls, domain: str, location: str, error: str) -> "PerformanceMetrics":
        return cls(domain=domain, location=location, error=error)
