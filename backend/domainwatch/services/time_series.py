"""History store - check results, time series, dashboard rollups and snapshots."""
import bisect
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ..errors import ValidationError
from ..models.base import utcnow
from ..models.history import (
    STATUS_RANK,
    CertificateHistory,
    DashboardMetrics,
    HealthStatus,
    MonitoringHistory,
    PerformanceHistory,
    SecurityHistory,
)

logger = logging.getLogger(__name__)

MAX_ENTRIES_PER_DOMAIN = 1000
EXPIRING_SOON_DAYS = 30

HistoryEntry = Union[CertificateHistory, SecurityHistory, PerformanceHistory]

HISTORY_ADAPTER = TypeAdapter(MonitoringHistory)
HISTORY_LIST_ADAPTER = TypeAdapter(List[MonitoringHistory])

# Performance metric names that live under data.metrics
PERFORMANCE_TIMINGS = {
    "responseTime",
    "firstByteTime",
    "dnsLookupTime",
    "connectionTime",
    "downloadTime",
    "totalTime",
}


@dataclass
class ImportResult:
    imported: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return bool(self.imported) and not self.failed


def _timestamp_key(entry: HistoryEntry) -> datetime:
    return entry.timestamp


def _extract(data: Any, path: List[str]) -> Any:
    for part in path:
        if not isinstance(data, Mapping) or part not in data:
            return None
        data = data[part]
    return data


def parse_entry(raw: Mapping[str, Any]) -> HistoryEntry:
    """Validate one raw history entry.

    Raises:
        ValidationError: If required fields are missing or malformed
    """
    try:
        return HISTORY_ADAPTER.validate_python(raw)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid history entry: {e.errors()[0]['msg']}")


class TimeSeriesStore:
    """Per-domain history lists kept ordered by timestamp."""

    def __init__(self, max_entries: int = MAX_ENTRIES_PER_DOMAIN):
        self.max_entries = max_entries
        self._history: Dict[str, List[HistoryEntry]] = {}
        self._lock = threading.RLock()

    def append(self, entry: HistoryEntry) -> None:
        with self._lock:
            entries = self._history.setdefault(entry.domain, [])
            bisect.insort(entries, entry, key=_timestamp_key)
            if len(entries) > self.max_entries:
                del entries[: len(entries) - self.max_entries]

    def history(
        self,
        domain: str,
        type: Optional[str] = None,
        since_days: int = 30,
        now: Optional[datetime] = None,
    ) -> List[HistoryEntry]:
        """Entries for ``domain`` newer than ``since_days``, oldest first."""
        cutoff = (now or utcnow()) - timedelta(days=since_days)
        with self._lock:
            entries = list(self._history.get(domain, []))
        return [
            entry for entry in entries
            if entry.timestamp >= cutoff and (type is None or entry.type == type)
        ]

    def time_series(
        self,
        domain: str,
        type: str,
        metric: str,
        since_days: int = 7,
        now: Optional[datetime] = None,
    ) -> List[Dict[str, Any]]:
        """``{timestamp, value}`` points for one numeric field of ``data``.

        ``metric`` is a dotted camelCase path into the entry data, e.g.
        ``overallScore`` or ``metrics.responseTime``. Performance timings may
        be named without the ``metrics.`` prefix.
        """
        if type == "performance" and metric in PERFORMANCE_TIMINGS:
            metric = f"metrics.{metric}"
        path = metric.split(".")

        points = []
        for entry in self.history(domain, type, since_days, now):
            value = _extract(entry.data.to_dict(), path)
            if isinstance(value, bool):
                value = int(value)
            if isinstance(value, (int, float)):
                points.append({"timestamp": entry.timestamp, "value": value})
        return points

    def latest(self, domain: str) -> Dict[str, HistoryEntry]:
        """Most recent entry per type for ``domain``."""
        with self._lock:
            entries = list(self._history.get(domain, []))
        latest: Dict[str, HistoryEntry] = {}
        for entry in reversed(entries):
            latest.setdefault(entry.type, entry)
        return latest

    def domain_status(self, domain: str) -> HealthStatus:
        """Worst status across the latest entry of each type."""
        statuses = [entry.status for entry in self.latest(domain).values()]
        if not statuses:
            return HealthStatus.UNKNOWN
        return max(statuses, key=lambda s: STATUS_RANK[s])

    def dashboard_metrics(self, alert_counts: Optional[Mapping[str, int]] = None) -> DashboardMetrics:
        """Rollup computed from the latest entries of every domain."""
        alert_counts = alert_counts or {}
        metrics = DashboardMetrics(
            total_alerts=alert_counts.get("total", 0),
            unresolved_alerts=alert_counts.get("unresolved", 0),
        )
        response_times = []
        security_scores = []

        for domain in self.domains():
            latest = self.latest(domain)
            if not latest:
                continue
            metrics.total_domains += 1

            status = self.domain_status(domain)
            if status == HealthStatus.CRITICAL:
                metrics.critical_domains += 1
            elif status == HealthStatus.WARNING:
                metrics.warning_domains += 1
            elif status == HealthStatus.HEALTHY:
                metrics.healthy_domains += 1
            else:
                metrics.unknown_domains += 1

            certificate = latest.get("certificate")
            if certificate is not None:
                days = certificate.data.days_until_expiry
                if days is not None and days <= EXPIRING_SOON_DAYS:
                    metrics.certificates_expiring_soon += 1

            performance = latest.get("performance")
            if performance is not None and performance.data.succeeded:
                response_times.append(performance.data.metrics.response_time)

            security = latest.get("security")
            if security is not None and security.data.error is None:
                security_scores.append(security.data.overall_score)

        if response_times:
            metrics.average_response_time = round(sum(response_times) / len(response_times))
        if security_scores:
            metrics.average_security_score = round(sum(security_scores) / len(security_scores))
        return metrics

    def cleanup(self, max_age_days: int = 90, now: Optional[datetime] = None) -> int:
        """Delete entries older than ``max_age_days``. Returns the number removed."""
        cutoff = (now or utcnow()) - timedelta(days=max_age_days)
        removed = 0
        with self._lock:
            for domain in list(self._history):
                entries = self._history[domain]
                kept = [entry for entry in entries if entry.timestamp >= cutoff]
                removed += len(entries) - len(kept)
                if kept:
                    self._history[domain] = kept
                else:
                    del self._history[domain]
        if removed:
            logger.info(f"Cleaned up {removed} history entries older than {max_age_days} days")
        return removed

    def delete_domain(self, domain: str) -> bool:
        with self._lock:
            return self._history.pop(domain, None) is not None

    def domains(self) -> List[str]:
        with self._lock:
            return sorted(self._history)

    # -- export / import --

    def _dump(self, domain: str) -> List[Dict[str, Any]]:
        with self._lock:
            entries = list(self._history.get(domain, []))
        return [entry.to_dict() for entry in entries]

    def export(self, domain: Optional[str] = None) -> Dict[str, Any]:
        """Serializable snapshot of one domain, or of every domain."""
        exported_at = utcnow().isoformat()
        if domain is not None:
            return {"domain": domain, "history": self._dump(domain), "exportedAt": exported_at}
        return {
            "domains": [{"domain": d, "history": self._dump(d)} for d in self.domains()],
            "exportedAt": exported_at,
        }

    def import_snapshot(self, data: Any) -> ImportResult:
        """Replace the history of every domain in an export snapshot.

        Accepts both the single-domain and the all-domains shape. Each domain
        is validated in full before its history is replaced, so a bad entry
        leaves that domain untouched.
        """
        result = ImportResult()
        if not isinstance(data, Mapping):
            result.failed["*"] = "Snapshot must be an object"
            return result

        if "domains" in data:
            sections = data["domains"]
        elif "domain" in data:
            sections = [data]
        else:
            result.failed["*"] = "Snapshot has neither 'domain' nor 'domains'"
            return result

        if not isinstance(sections, list):
            result.failed["*"] = "'domains' must be a list"
            return result

        for section in sections:
            domain = section.get("domain") if isinstance(section, Mapping) else None
            if not isinstance(domain, str) or not domain:
                result.failed[f"#{len(result.failed)}"] = "Section without a domain"
                continue
            try:
                entries = HISTORY_LIST_ADAPTER.validate_python(section.get("history", []))
            except PydanticValidationError as e:
                result.failed[domain] = f"{e.error_count()} invalid entries"
                logger.warning(f"Import of {domain} rejected: {e.error_count()} invalid entries")
                continue
            if any(entry.domain != domain for entry in entries):
                result.failed[domain] = "Entries belong to a different domain"
                continue

            entries.sort(key=_timestamp_key)
            with self._lock:
                if entries:
                    self._history[domain] = entries[-self.max_entries:]
                else:
                    self._history.pop(domain, None)
            result.imported.append(domain)

        logger.info(f"Imported history for {len(result.imported)} domain(s), {len(result.failed)} rejected")
        return result
