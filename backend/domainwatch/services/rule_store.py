"""In-memory store of monitoring rules."""
import logging
import secrets
import threading
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from pydantic import TypeAdapter

from ..models.base import utcnow
from ..models.rule import MonitoringRule
from ..schemas.rule import RuleCreate, RuleUpdate

logger = logging.getLogger(__name__)

# Nested models merged field-by-field on update instead of replaced
NESTED_FIELDS = ("alert_thresholds", "notification_settings")

# Optional nested fields an explicit null clears
CLEARABLE_FIELDS = ("email", "webhook_url")


RULE_LIST_ADAPTER = TypeAdapter(List[MonitoringRule])


def generate_rule_id() -> str:
    return f"rule_{int(utcnow().timestamp() * 1000)}_{secrets.token_hex(5)}"


class MonitoringRuleStore:
    """CRUD over monitoring rules keyed by generated id.

    All mutations go through one lock, so a record never sees two writers
    at once. Returned rules are copies; callers cannot mutate stored state.
    """

    def __init__(self):
        self._rules: Dict[str, MonitoringRule] = {}
        self._lock = threading.RLock()

    def create(self, data: RuleCreate) -> MonitoringRule:
        rule = MonitoringRule(id=generate_rule_id(), created_at=utcnow(), **dict(data))
        with self._lock:
            self._rules[rule.id] = rule
        logger.info(f"Created monitoring rule {rule.id} for {rule.domain}")
        return rule.model_copy(deep=True)

    def get(self, rule_id: str) -> Optional[MonitoringRule]:
        with self._lock:
            rule = self._rules.get(rule_id)
            return rule.model_copy(deep=True) if rule else None

    def update(self, rule_id: str, data: RuleUpdate) -> bool:
        """Apply only the fields present in ``data``. False if the id is unknown."""
        changes = data.model_dump(exclude_unset=True)
        with self._lock:
            rule = self._rules.get(rule_id)
            if rule is None:
                return False

            merged = rule.model_dump()
            for key, value in changes.items():
                if key in NESTED_FIELDS and value is not None:
                    merged[key].update({
                        k: v for k, v in value.items()
                        if v is not None or k in CLEARABLE_FIELDS
                    })
                elif value is not None:
                    merged[key] = value
            self._rules[rule_id] = MonitoringRule.model_validate(merged)
        logger.info(f"Updated monitoring rule {rule_id}")
        return True

    def remove(self, rule_id: str) -> bool:
        with self._lock:
            removed = self._rules.pop(rule_id, None)
        if removed:
            logger.info(f"Removed monitoring rule {rule_id} for {removed.domain}")
        return removed is not None

    def list(self, domain: Optional[str] = None) -> List[MonitoringRule]:
        with self._lock:
            rules = [
                rule.model_copy(deep=True)
                for rule in self._rules.values()
                if domain is None or rule.domain == domain
            ]
        return sorted(rules, key=lambda r: r.created_at)

    def mark_checked(self, rule_id: str, when: Optional[datetime] = None) -> bool:
        with self._lock:
            rule = self._rules.get(rule_id)
            if rule is None:
                return False
            rule.last_checked = when or utcnow()
            return True

    def due_rules(self, now: Optional[datetime] = None) -> List[MonitoringRule]:
        """Enabled rules never checked, or whose checkInterval has elapsed."""
        now = now or utcnow()
        return [
            rule for rule in self.list()
            if rule.enabled and (
                rule.last_checked is None
                or now - rule.last_checked >= timedelta(hours=rule.check_interval)
            )
        ]

    def dump(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [rule.to_dict() for rule in self._rules.values()]

    def restore(self, raw: Any) -> int:
        """Replace every rule with the dumped ones. Returns the number loaded.

        Raises:
            pydantic.ValidationError: If any rule is malformed; nothing is replaced
        """
        rules = RULE_LIST_ADAPTER.validate_python(raw)
        with self._lock:
            self._rules = {rule.id: rule for rule in rules}
        return len(rules)

    def __len__(self) -> int:
        return len(self._rules)
