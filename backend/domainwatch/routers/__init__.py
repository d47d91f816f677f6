"""API routers."""
from .monitoring import router as monitoring_router
from .dashboard import router as dashboard_router
from .probes import router as probes_router

__all__ = ["monitoring_router", "dashboard_router", "probes_router"]
