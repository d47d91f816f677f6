"""JSON response envelopes."""
from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def success(data: Any = None, status_code: int = 200, **extra: Any) -> JSONResponse:
    """Build a ``{"success": true, "data": ...}`` response."""
    body = {"success": True}
    if data is not None:
        body["data"] = data
    body.update(extra)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body, by_alias=True))


def failure(error: str, status_code: int, headers: Optional[dict] = None) -> JSONResponse:
    """Build a ``{"success": false, "error": ...}`` response."""
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error},
        headers=headers,
    )
