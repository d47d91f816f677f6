"""State snapshot file - rules, alerts and history across restarts.

File layout::

    {
        "version": 1,
        "rules": [MonitoringRule, ...],
        "alerts": {"alerts": [CertificateAlert, ...], "fingerprints": {domain: fingerprint}},
        "history": TimeSeriesStore.export(),
        "savedAt": "..."
    }

A file holding only a history export (``{"domains": [...]}``) is also read.
"""
import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

from pydantic import ValidationError as PydanticValidationError

from ..models.base import utcnow
from .alert_engine import AlertEngine
from .rule_store import MonitoringRuleStore
from .time_series import ImportResult, TimeSeriesStore

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


@dataclass
class RestoreResult:
    rules: int = 0
    alerts: int = 0
    history: ImportResult = field(default_factory=ImportResult)
    errors: List[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return not self.errors


class StateSnapshot:
    """Writes and reads the state of every store as one JSON document."""

    def __init__(self, rules: MonitoringRuleStore, alerts: AlertEngine, history: TimeSeriesStore):
        self.rules = rules
        self.alerts = alerts
        self.history = history

    def dump(self) -> Dict[str, Any]:
        return {
            "version": SNAPSHOT_VERSION,
            "rules": self.rules.dump(),
            "alerts": self.alerts.dump(),
            "history": self.history.export(),
            "savedAt": utcnow().isoformat(),
        }

    def restore(self, data: Any) -> RestoreResult:
        """Load every section of ``data``. A bad section is skipped, the others still load."""
        result = RestoreResult()
        if not isinstance(data, Mapping):
            result.errors.append("Snapshot must be an object")
            return result

        if "rules" not in data and "alerts" not in data and "history" not in data:
            # Bare history export
            data = {"history": data}

        if "rules" in data:
            try:
                result.rules = self.rules.restore(data["rules"])
            except PydanticValidationError as e:
                result.errors.append(f"rules: {e.error_count()} invalid entries")

        if "alerts" in data:
            alerts = data["alerts"]
            if isinstance(alerts, list):
                alerts = {"alerts": alerts}
            if not isinstance(alerts, Mapping):
                result.errors.append("alerts: section must be an object")
            else:
                try:
                    result.alerts = self.alerts.restore(alerts)
                except PydanticValidationError as e:
                    result.errors.append(f"alerts: {e.error_count()} invalid entries")

        if "history" in data:
            result.history = self.history.import_snapshot(data["history"])
            result.errors.extend(f"history {domain}: {reason}" for domain, reason in result.history.failed.items())

        for error in result.errors:
            logger.error(f"Snapshot section rejected - {error}")
        return result

    def save(self, path: str) -> None:
        """Write the snapshot to ``path`` atomically."""
        tmp_path = f"{path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(self.dump(), f)
        os.replace(tmp_path, path)
        logger.info(f"State snapshot written to {path}")

    def load(self, path: str) -> RestoreResult:
        """Restore from ``path``. A missing or unreadable file leaves the stores empty."""
        if not os.path.exists(path):
            logger.info(f"No state snapshot at {path}")
            return RestoreResult()
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Could not read state snapshot {path}: {e}")
            return RestoreResult(errors=[f"unreadable: {e}"])

        result = self.restore(data)
        logger.info(
            f"Restored {result.rules} rule(s), {result.alerts} alert(s) and history "
            f"for {len(result.history.imported)} domain(s) from {path}"
        )
        return result
