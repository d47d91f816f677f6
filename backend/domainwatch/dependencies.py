"""FastAPI dependency providers."""
import hashlib
import hmac
import json
import logging
from typing import Any, Dict, Optional, Type, TypeVar

from fastapi import Depends, Header, Query, Request
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .errors import RateLimitExceeded, UnauthorizedError, ValidationError
from .services.container import MonitoringContainer
from .services.rate_limiter import RETRY_AFTER_SECONDS
from .utils.validators import validate_domain

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def get_container(request: Request) -> MonitoringContainer:
    return request.app.state.container


def client_ip(request: Request) -> str:
    """First X-Forwarded-For hop, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client:
        return request.client.host
    return "unknown"


def enforce_rate_limit(container: MonitoringContainer, request: Request, category: str) -> None:
    """Admit one request in ``category`` for the caller, or raise 429."""
    key = f"{category}:{client_ip(request)}"
    if not container.rate_limiter.admit(key):
        logger.warning(f"Rate limit exceeded for {key}")
        raise RateLimitExceeded(retry_after=RETRY_AFTER_SECONDS)


def rate_limited(category: str):
    """Dependency that applies the rate limiter to a whole route."""

    def dependency(request: Request, container: MonitoringContainer = Depends(get_container)) -> None:
        enforce_rate_limit(container, request, category)

    return dependency


def domain_param(domain: str = Query(..., min_length=1, max_length=253)) -> str:
    """Required, validated ``?domain=`` parameter."""
    return validate_domain(domain)


async def read_json(request: Request) -> Dict[str, Any]:
    """Request body as a JSON object. An empty body reads as ``{}``."""
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        body = json.loads(raw)
    except ValueError:
        raise ValidationError("Request body must be valid JSON")
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def parse_payload(model: Type[ModelT], data: Dict[str, Any]) -> ModelT:
    """Validate ``data`` against ``model``, raising a 400 on failure."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(format_validation_errors(e.errors()))


def format_validation_errors(errors) -> str:
    parts = []
    for error in errors:
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = error.get("msg", "Invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "Invalid request"


def require_admin(
    container: MonitoringContainer = Depends(get_container),
    x_admin_secret: Optional[str] = Header(default=None),
) -> None:
    """Shared-secret check for data admin routes."""
    expected = container.settings.admin_secret
    if not expected or not x_admin_secret:
        raise UnauthorizedError("Admin secret required")

    expected_hash = hashlib.sha256(expected.encode()).digest()
    provided_hash = hashlib.sha256(x_admin_secret.encode()).digest()
    if not hmac.compare_digest(expected_hash, provided_hash):
        logger.warning("Admin request rejected - invalid secret")
        raise UnauthorizedError("Invalid admin secret")
