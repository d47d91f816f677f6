"""Dashboard API - rollups, history queries and data administration."""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from ..dependencies import domain_param, get_container, parse_payload, read_json, require_admin
from ..errors import NotFoundError, ValidationError
from ..models.base import utcnow
from ..models.rule import CheckType
from ..schemas.dashboard import CleanupRequest, SaveRequest
from ..services.container import MonitoringContainer
from ..services.time_series import parse_entry
from ..utils.responses import success
from ..utils.validators import validate_domain

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])

DEFAULT_HISTORY_DAYS = 30
DEFAULT_TIMESERIES_DAYS = 7


class ReadAction(str, Enum):
    METRICS = "metrics"
    DOMAINS = "domains"
    HISTORY = "history"
    TIMESERIES = "timeseries"
    EXPORT = "export"


class WriteAction(str, Enum):
    IMPORT = "import"
    CLEANUP = "cleanup"
    SAVE = "save"


@dataclass
class DashboardQuery:
    domain: Optional[str]
    type: Optional[CheckType]
    metric: Optional[str]
    days: Optional[int]


def _require_domain(query: DashboardQuery, action: ReadAction) -> str:
    if not query.domain:
        raise ValidationError(f"Domain parameter is required for {action.value} action")
    return query.domain


def _metrics(container: MonitoringContainer, query: DashboardQuery) -> JSONResponse:
    return success(container.history.dashboard_metrics(container.alerts.counts()))


def _domains(container: MonitoringContainer, query: DashboardQuery) -> JSONResponse:
    summaries = []
    for domain in container.history.domains():
        latest = container.history.latest(domain)
        summaries.append({
            "domain": domain,
            "status": container.history.domain_status(domain),
            "lastChecked": max((entry.timestamp for entry in latest.values()), default=None),
            "rules": len(container.rules.list(domain)),
        })
    return success(summaries, total=len(summaries))


def _history(container: MonitoringContainer, query: DashboardQuery) -> JSONResponse:
    domain = _require_domain(query, ReadAction.HISTORY)
    days = query.days or DEFAULT_HISTORY_DAYS
    entry_type = query.type.value if query.type else None
    entries = container.history.history(domain, entry_type, days)
    return success({
        "domain": domain,
        "type": entry_type,
        "days": days,
        "history": entries,
        "total": len(entries),
    })


def _timeseries(container: MonitoringContainer, query: DashboardQuery) -> JSONResponse:
    domain = _require_domain(query, ReadAction.TIMESERIES)
    if query.type is None or not query.metric:
        raise ValidationError("Domain, type, and metric parameters are required for timeseries action")
    days = query.days or DEFAULT_TIMESERIES_DAYS
    points = container.history.time_series(domain, query.type.value, query.metric, days)
    return success({
        "domain": domain,
        "type": query.type.value,
        "metric": query.metric,
        "days": days,
        "timeSeries": points,
        "total": len(points),
    })


def _export(container: MonitoringContainer, query: DashboardQuery) -> JSONResponse:
    if query.domain and query.domain not in container.history.domains():
        raise NotFoundError(f"No history for {query.domain}")
    return success(container.history.export(query.domain))


READ_HANDLERS: Dict[ReadAction, Callable[[MonitoringContainer, DashboardQuery], JSONResponse]] = {
    ReadAction.METRICS: _metrics,
    ReadAction.DOMAINS: _domains,
    ReadAction.HISTORY: _history,
    ReadAction.TIMESERIES: _timeseries,
    ReadAction.EXPORT: _export,
}


@router.get("")
async def read_dashboard(
    action: ReadAction = Query(default=ReadAction.METRICS),
    domain: Optional[str] = Query(default=None, max_length=253),
    type: Optional[CheckType] = Query(default=None),
    metric: Optional[str] = Query(default=None, max_length=100, pattern=r"^[A-Za-z][A-Za-z0-9_.]*$"),
    days: Optional[int] = Query(default=None, ge=1, le=90),
    container: MonitoringContainer = Depends(get_container),
):
    """Dashboard queries. These read stored results only and never probe."""
    query = DashboardQuery(
        domain=validate_domain(domain) if domain else None,
        type=type,
        metric=metric,
        days=days,
    )
    return READ_HANDLERS[action](container, query)


def _import(container: MonitoringContainer, body: Dict[str, Any]) -> JSONResponse:
    result = container.history.import_snapshot(body)
    if not result.imported:
        reasons = "; ".join(f"{domain}: {reason}" for domain, reason in result.failed.items())
        raise ValidationError(f"Import failed: {reasons or 'no domains in snapshot'}")
    return success(
        {"imported": result.imported, "failed": result.failed},
        message=f"Imported history for {len(result.imported)} domain(s)",
    )


def _cleanup(container: MonitoringContainer, body: Dict[str, Any]) -> JSONResponse:
    data = parse_payload(CleanupRequest, body)
    removed = container.history.cleanup(data.max_age_in_days)
    return success(
        {"removed": removed, "maxAgeInDays": data.max_age_in_days},
        message=f"Removed {removed} entries older than {data.max_age_in_days} days",
    )


def _save(container: MonitoringContainer, body: Dict[str, Any]) -> JSONResponse:
    data = parse_payload(SaveRequest, body)
    entry = parse_entry({
        "domain": data.domain,
        "type": data.type.value,
        "timestamp": utcnow(),
        "data": {"domain": data.domain, **data.data},
        "status": data.status.value,
    })
    container.history.append(entry)
    return success(entry, status_code=201, message="History entry saved")


WRITE_HANDLERS: Dict[WriteAction, Callable[[MonitoringContainer, Dict[str, Any]], JSONResponse]] = {
    WriteAction.IMPORT: _import,
    WriteAction.CLEANUP: _cleanup,
    WriteAction.SAVE: _save,
}


@router.post("", dependencies=[Depends(require_admin)])
async def write_dashboard(
    request: Request,
    action: WriteAction = Query(...),
    container: MonitoringContainer = Depends(get_container),
):
    """Data administration: import a snapshot, run cleanup or save one entry."""
    body = await read_json(request)
    return WRITE_HANDLERS[action](container, body)


@router.delete("", dependencies=[Depends(require_admin)])
async def delete_domain_history(
    domain: str = Depends(domain_param),
    container: MonitoringContainer = Depends(get_container),
):
    """Delete all stored history for one domain."""
    if not container.history.delete_domain(domain):
        raise NotFoundError(f"No history for {domain}")
    logger.info(f"Deleted history for {domain}")
    return success(message=f"History deleted for {domain}")
