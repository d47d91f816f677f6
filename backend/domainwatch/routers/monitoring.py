"""Certificate monitoring API - rules, alerts and on-demand checks."""
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from ..dependencies import enforce_rate_limit, get_container, parse_payload, read_json
from ..errors import NotFoundError
from ..schemas.rule import AlertAction, AlertActionRequest, CheckRequest, RuleCreate, RuleUpdate
from ..services.container import MonitoringContainer
from ..utils.responses import success
from ..utils.validators import validate_domain

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/monitoring/certificates", tags=["monitoring"])

# Rate-limit category for every route here that opens TLS connections
PROBE_CATEGORY = "certificate"


class ListType(str, Enum):
    RULES = "rules"
    ALERTS = "alerts"


class PostAction(str, Enum):
    CREATE = "create"
    ALERT = "alert"
    CHECK = "check"


@router.get("")
async def list_monitoring(
    type: ListType = Query(default=ListType.RULES),
    domain: Optional[str] = Query(default=None, max_length=253),
    container: MonitoringContainer = Depends(get_container),
):
    """List monitoring rules or alerts, optionally for one domain."""
    domain = validate_domain(domain) if domain else None
    if type == ListType.RULES:
        rules = container.rules.list(domain)
        return success(rules, total=len(rules))

    alerts = container.alerts.list(domain)
    counts = container.alerts.counts()
    return success(alerts, total=len(alerts), unresolved=sum(1 for a in alerts if not a.resolved),
                   overall=counts)


async def _create_rule(body: Dict[str, Any], request: Request, container: MonitoringContainer) -> JSONResponse:
    data = parse_payload(RuleCreate, body)
    enforce_rate_limit(container, request, PROBE_CATEGORY)

    rule = container.rules.create(data)
    outcome = await container.runner.check_rule(rule.id)
    return success(
        {
            "ruleId": rule.id,
            "rule": container.rules.get(rule.id),
            "initialAlerts": outcome.alerts,
            "initialCheck": outcome,
        },
        status_code=201,
        message=f"Monitoring rule created for {rule.domain}",
    )


# Lifecycle operations of the alert engine, by requested action
ALERT_TRANSITIONS = {
    AlertAction.ACKNOWLEDGE: lambda alerts, alert_id: alerts.acknowledge(alert_id),
    AlertAction.RESOLVE: lambda alerts, alert_id: alerts.resolve(alert_id),
    AlertAction.DELETE: lambda alerts, alert_id: alerts.delete(alert_id),
}


async def _alert_action(body: Dict[str, Any], request: Request, container: MonitoringContainer) -> JSONResponse:
    data = parse_payload(AlertActionRequest, body)
    alert = ALERT_TRANSITIONS[data.action](container.alerts, data.alert_id)
    return success(alert, message=f"Alert {data.alert_id} {data.action.value}d")


async def _run_check(body: Dict[str, Any], request: Request, container: MonitoringContainer) -> JSONResponse:
    data = parse_payload(CheckRequest, body)
    enforce_rate_limit(container, request, PROBE_CATEGORY)

    if data.check_all:
        outcomes = await container.runner.check_all()
    else:
        outcomes = [await container.runner.check_rule(data.rule_id)]

    new_alerts = [alert for outcome in outcomes for alert in outcome.alerts]
    return success(
        {"alerts": new_alerts, "results": outcomes},
        checked=sum(1 for o in outcomes if not o.skipped),
        total=len(new_alerts),
    )


Handler = Callable[[Dict[str, Any], Request, MonitoringContainer], Awaitable[JSONResponse]]

POST_HANDLERS: Dict[PostAction, Handler] = {
    PostAction.CREATE: _create_rule,
    PostAction.ALERT: _alert_action,
    PostAction.CHECK: _run_check,
}


@router.post("")
async def post_monitoring(
    request: Request,
    action: PostAction = Query(default=PostAction.CREATE),
    container: MonitoringContainer = Depends(get_container),
):
    """Create a rule (no action), change an alert (action=alert) or run checks (action=check)."""
    body = await read_json(request)
    return await POST_HANDLERS[action](body, request, container)


@router.put("")
async def update_rule(
    request: Request,
    rule_id: str = Query(..., alias="ruleId", min_length=1),
    container: MonitoringContainer = Depends(get_container),
):
    """Partially update a rule."""
    data = parse_payload(RuleUpdate, await read_json(request))
    if not container.rules.update(rule_id, data):
        raise NotFoundError(f"Rule {rule_id} not found")
    return success(container.rules.get(rule_id), message="Monitoring rule updated")


@router.delete("")
async def delete_rule(
    rule_id: str = Query(..., alias="ruleId", min_length=1),
    container: MonitoringContainer = Depends(get_container),
):
    """Delete a rule. Its alerts are kept."""
    if not container.rules.remove(rule_id):
        raise NotFoundError(f"Rule {rule_id} not found")
    return success(message="Monitoring rule deleted")
