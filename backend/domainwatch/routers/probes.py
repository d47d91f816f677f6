"""Single-shot probe endpoints.

These run one probe for a domain without touching rules, alerts or history.
Unreachable targets answer 502, timeouts 504.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..dependencies import domain_param, get_container, rate_limited
from ..errors import ValidationError
from ..services.container import MonitoringContainer
from ..services.performance_probe import summarize
from ..utils.responses import success

router = APIRouter(prefix="/api", tags=["probes"])

MAX_LOCATIONS = 10


@router.get("/ssl/info", dependencies=[Depends(rate_limited("ssl"))])
async def ssl_info(
    domain: str = Depends(domain_param),
    container: MonitoringContainer = Depends(get_container),
):
    """Fetch and describe the certificate a domain presents."""
    snapshot = await container.certificate_probe.fetch(domain)
    return success(snapshot)


@router.get("/security/headers", dependencies=[Depends(rate_limited("security"))])
async def security_headers(
    domain: str = Depends(domain_param),
    container: MonitoringContainer = Depends(get_container),
):
    """Score the security headers a domain serves."""
    analysis = await container.security_probe.analyze(domain)
    return success(analysis)


@router.get("/performance/monitor", dependencies=[Depends(rate_limited("performance"))])
async def performance_monitor(
    domain: str = Depends(domain_param),
    locations: Optional[str] = Query(default=None, max_length=500),
    container: MonitoringContainer = Depends(get_container),
):
    """Time requests to a domain from one or more logical locations."""
    names = [name.strip() for name in locations.split(",") if name.strip()] if locations else []
    names = names or container.settings.location_list
    if len(names) > MAX_LOCATIONS:
        raise ValidationError(f"At most {MAX_LOCATIONS} locations per request")

    results = await container.performance_probe.measure_many(domain, names)
    return success({"results": results, "summary": summarize(results)})
