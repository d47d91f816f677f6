"""Shared pydantic base for domain models."""
from datetime import datetime, timezone
from typing import Any, Dict

from pydantic import BaseModel, field_validator
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Model whose fields are snake_case in Python and camelCase in JSON."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    @field_validator("*")
    @classmethod
    def _assume_utc(cls, v: Any) -> Any:
        # Naive timestamps (older snapshots) are taken as UTC
        if isinstance(v, datetime) and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
