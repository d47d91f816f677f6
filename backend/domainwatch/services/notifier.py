"""Notification dispatch boundary.

Delivery is not performed here: each alert is resolved to the channels its
rule asks for and logged. A real sender can replace ``deliver``.
"""
import logging
from typing import Iterable, List

import httpx

from ..models.alert import CertificateAlert
from ..models.rule import MonitoringRule

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Routes new alerts to the rule's notification channels."""

    def __init__(self):
        self.sent_count = 0

    async def deliver(self, channel: str, target: str, alert: CertificateAlert) -> None:
        logger.info(
            f"[{channel}] {alert.severity.value} {alert.alert_type.value} alert for "
            f"{alert.domain} -> {target}: {alert.message}"
        )

    async def notify(self, rule: MonitoringRule, alerts: Iterable[CertificateAlert]) -> List[str]:
        """Dispatch ``alerts`` to every configured channel. Returns the channels used."""
        settings = rule.notification_settings
        targets = []
        if settings.enable_browser_notifications:
            targets.append(("browser", "subscribers"))
        if settings.webhook_url:
            # Logged by host only
            targets.append(("webhook", httpx.URL(settings.webhook_url).host))
        if settings.email:
            targets.append(("email", settings.email))

        for alert in alerts:
            for channel, target in targets:
                await self.deliver(channel, target, alert)
                self.sent_count += 1
        return [channel for channel, _ in targets]
