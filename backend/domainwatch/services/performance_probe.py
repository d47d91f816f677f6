"""Performance probe - times HTTP round trips and derives latency splits."""
import asyncio
import logging
import socket
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import httpx

from ..models.base import utcnow
from ..models.history import HealthStatus
from ..models.performance import PerformanceMetrics, TimingMetrics

logger = logging.getLogger(__name__)

USER_AGENT = "domainwatch-performance-monitor/1.0"

TIMING_FIELDS = (
    "response_time",
    "first_byte_time",
    "dns_lookup_time",
    "connection_time",
    "download_time",
    "total_time",
)

LARGE_CONTENT_BYTES = 2 * 1024 * 1024
MAX_REDIRECTS_BEFORE_WARNING = 3

Resolver = Callable[[str], Awaitable[Any]]


@dataclass
class Threshold:
    warning: float
    critical: float


@dataclass
class PerformanceThresholds:
    response_time: Threshold = field(default_factory=lambda: Threshold(2000, 5000))
    first_byte_time: Threshold = field(default_factory=lambda: Threshold(1000, 3000))


@dataclass
class PerformanceAnalysis:
    status: HealthStatus
    issues: List[str]
    recommendations: List[str]


def _elapsed_ms(start: float, end: float) -> float:
    return round((end - start) * 1000, 2)


async def _system_resolver(domain: str):
    loop = asyncio.get_running_loop()
    return await loop.getaddrinfo(domain, 443, type=socket.SOCK_STREAM)


def _is_cached(headers: httpx.Headers) -> bool:
    if headers.get("cf-cache-status", "").upper() == "HIT":
        return True
    if "hit" in headers.get("x-cache", "").lower():
        return True
    age = headers.get("age", "")
    return age.isdigit() and int(age) > 0


class PerformanceProbe:
    """Measures one HTTPS GET per logical location."""

    def __init__(
        self,
        timeout: float = 10,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        resolver: Optional[Resolver] = None,
    ):
        self.timeout = timeout
        self._transport = transport
        self._resolver = resolver or _system_resolver

    async def measure(self, domain: str, location: str = "server") -> PerformanceMetrics:
        """Time a single request. Failures come back as -1 metrics, never raised."""
        timestamp = utcnow()
        connect_marks: Dict[str, float] = {}

        async def trace(event_name: str, info: Dict[str, Any]) -> None:
            if event_name == "connection.connect_tcp.started":
                connect_marks.setdefault("start", time.perf_counter())
            elif event_name in ("connection.connect_tcp.complete", "connection.start_tls.complete"):
                connect_marks["end"] = time.perf_counter()

        try:
            dns_start = time.perf_counter()
            await asyncio.wait_for(self._resolver(domain), timeout=self.timeout)
            dns_lookup_time = _elapsed_ms(dns_start, time.perf_counter())

            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                verify=False,
                transport=self._transport,
                headers={"User-Agent": USER_AGENT, "Cache-Control": "no-cache"},
            ) as client:
                request_start = time.perf_counter()
                async with client.stream("GET", f"https://{domain}", extensions={"trace": trace}) as response:
                    headers_received = time.perf_counter()
                    body = await response.aread()
                    body_done = time.perf_counter()
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning(f"Performance measurement of {domain} from {location} timed out")
            return PerformanceMetrics.failed(domain, location, f"Timed out after {self.timeout}s")
        except (OSError, httpx.HTTPError) as e:
            logger.warning(f"Performance measurement of {domain} from {location} failed: {e}")
            return PerformanceMetrics.failed(domain, location, str(e) or type(e).__name__)

        first_byte_time = _elapsed_ms(request_start, headers_received)
        download_time = _elapsed_ms(headers_received, body_done)
        connection_time = 0.0
        if "start" in connect_marks and "end" in connect_marks:
            connection_time = _elapsed_ms(connect_marks["start"], connect_marks["end"])

        return PerformanceMetrics(
            domain=domain,
            timestamp=timestamp,
            metrics=TimingMetrics(
                response_time=first_byte_time,
                first_byte_time=first_byte_time,
                dns_lookup_time=dns_lookup_time,
                connection_time=connection_time,
                download_time=download_time,
                total_time=round(dns_lookup_time + first_byte_time + download_time, 2),
            ),
            http_status=response.status_code,
            content_size=len(body),
            redirect_count=len(response.history),
            from_cache=_is_cached(response.headers),
            location=location,
        )

    async def measure_many(self, domain: str, locations: Sequence[str]) -> List[PerformanceMetrics]:
        """Measure from every location concurrently; results keep input order."""
        return list(await asyncio.gather(*[self.measure(domain, loc) for loc in locations]))


def average_metrics(results: Sequence[PerformanceMetrics]) -> Optional[PerformanceMetrics]:
    """Mean of every numeric field over the successful samples.

    Failed samples (responseTime <= 0) are left out of the mean. Returns None
    when no sample succeeded.
    """
    valid = [r for r in results if r.succeeded]
    if not valid:
        return None

    def mean(values):
        return round(sum(values) / len(values), 2)

    timings = {name: mean([getattr(r.metrics, name) for r in valid]) for name in TIMING_FIELDS}
    return PerformanceMetrics(
        domain=valid[0].domain,
        timestamp=utcnow(),
        metrics=TimingMetrics(**timings),
        http_status=Counter(r.http_status for r in valid).most_common(1)[0][0],
        content_size=round(mean([r.content_size for r in valid])),
        redirect_count=round(mean([r.redirect_count for r in valid])),
        from_cache=False,
        location="average",
    )


def fastest_location(results: Sequence[PerformanceMetrics]) -> Optional[PerformanceMetrics]:
    """Sample with the lowest positive responseTime; ties go to the earliest."""
    fastest = None
    for result in results:
        if not result.succeeded:
            continue
        if fastest is None or result.metrics.response_time < fastest.metrics.response_time:
            fastest = result
    return fastest


def summarize(results: Sequence[PerformanceMetrics]) -> Dict[str, Any]:
    successful = sum(1 for r in results if r.succeeded)
    fastest = fastest_location(results)
    return {
        "total": len(results),
        "successful": successful,
        "failed": len(results) - successful,
        "successRate": round(successful / len(results) * 100, 2) if results else 0,
        "fastestLocation": fastest.location if fastest else None,
        "average": average_metrics(results),
    }


def analyze_performance(
    metrics: PerformanceMetrics,
    thresholds: Optional[PerformanceThresholds] = None,
) -> PerformanceAnalysis:
    """Classify a measurement as healthy, warning or critical."""
    thresholds = thresholds or PerformanceThresholds()
    issues: List[str] = []
    recommendations: List[str] = []
    status = HealthStatus.HEALTHY

    def raise_to(level: HealthStatus):
        nonlocal status
        if level == HealthStatus.CRITICAL or status == HealthStatus.HEALTHY:
            status = level

    if not metrics.succeeded:
        issues.append(f"Measurement failed: {metrics.error or 'no response'}")
        recommendations.append("Check that the domain is reachable over HTTPS")
        return PerformanceAnalysis(HealthStatus.CRITICAL, issues, recommendations)

    response_time = metrics.metrics.response_time
    if response_time > thresholds.response_time.critical:
        raise_to(HealthStatus.CRITICAL)
        issues.append(f"Response time ({response_time}ms) exceeds critical threshold")
        recommendations.append("Investigate server performance and consider a CDN")
    elif response_time > thresholds.response_time.warning:
        raise_to(HealthStatus.WARNING)
        issues.append(f"Response time ({response_time}ms) exceeds warning threshold")
        recommendations.append("Optimize server response times")

    first_byte = metrics.metrics.first_byte_time
    if first_byte > thresholds.first_byte_time.critical:
        raise_to(HealthStatus.CRITICAL)
        issues.append(f"Time to first byte ({first_byte}ms) is too high")
        recommendations.append("Optimize backend processing and database queries")
    elif first_byte > thresholds.first_byte_time.warning:
        raise_to(HealthStatus.WARNING)
        issues.append(f"Time to first byte ({first_byte}ms) could be improved")
        recommendations.append("Review server-side performance optimizations")

    if metrics.http_status >= 400:
        raise_to(HealthStatus.CRITICAL)
        issues.append(f"HTTP error status: {metrics.http_status}")
        recommendations.append("Fix server errors and ensure proper error handling")
    elif 300 <= metrics.http_status < 400:
        raise_to(HealthStatus.WARNING)
        issues.append(f"HTTP redirect status: {metrics.http_status}")
        recommendations.append("Consider reducing redirect chains")

    if metrics.content_size > LARGE_CONTENT_BYTES:
        raise_to(HealthStatus.WARNING)
        issues.append(f"Large content size: {metrics.content_size / 1024 / 1024:.2f}MB")
        recommendations.append("Consider enabling compression and optimizing content size")

    if metrics.redirect_count > MAX_REDIRECTS_BEFORE_WARNING:
        raise_to(HealthStatus.WARNING)
        issues.append(f"Too many redirects: {metrics.redirect_count}")
        recommendations.append("Minimize redirect chains to improve performance")

    return PerformanceAnalysis(status, issues, recommendations)
