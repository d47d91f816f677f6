"""Application configuration from environment variables."""
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    
    log_level: str = "INFO"
    
    # Web server port
    web_port: int = 8000
    
    # Shared secret for the admin routes (import, cleanup, save, delete).
    # When unset every admin request is rejected.
    admin_secret: Optional[str] = None
    
    # Timeout applied to each probe (TLS handshake, header fetch, timing request)
    probe_timeout_seconds: float = Field(default=10.0, ge=1, le=30)
    
    # Maximum concurrent rule checks during "check all" and scheduled runs
    max_concurrent_checks: int = Field(default=10, ge=1)
    
    # Sliding-window rate limiting
    rate_limit_window_seconds: int = 60
    rate_limit_default: int = 20
    rate_limit_strict: int = 5
    rate_limit_sweep_seconds: int = 300
    
    # Background scheduling
    scheduler_enabled: bool = True
    scheduler_tick_seconds: int = 60
    
    # History retention used by the hourly cleanup job
    history_retention_days: int = Field(default=90, ge=1)
    
    # Optional JSON snapshot of history, loaded at startup and written at shutdown
    snapshot_path: Optional[str] = None
    
    # Comma separated logical locations used by the performance probe
    performance_locations: str = "server"
    
    class Config:
        env_prefix = ""
        case_sensitive = False
    
    @property
    def location_list(self) -> List[str]:
        return [loc.strip() for loc in self.performance_locations.split(",") if loc.strip()] or ["server"]


settings = Settings()
