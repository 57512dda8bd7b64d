"""
approval_services.notifications -- Best-effort workflow notifications.

Responsibility:
    Hand workflow events to a Notifier according to the per-event policy
    in engine settings.  Delivery is fire-and-forget: a failing notifier
    is logged and never fails or rolls back the transition that raised
    the event.

Architecture position:
    Services layer.  Transport (email, chat, in-app inbox) lives behind
    the Notifier protocol and is outside this package.
"""

from __future__ import annotations

from typing import Protocol

from approval_config.schema import NotifyPolicy
from approval_kernel.domain.purchase import NotificationEvent, RequestSummary
from approval_kernel.logging_config import get_logger

logger = get_logger("services.notifications")


class Notifier(Protocol):
    """Delivery capability for workflow events."""

    def notify(
        self,
        event: NotificationEvent,
        summary: RequestSummary,
        channels: tuple[str, ...],
    ) -> None:
        ...


class LoggingNotifier:
    """Notifier that only writes a structured log line per event."""

    def notify(
        self,
        event: NotificationEvent,
        summary: RequestSummary,
        channels: tuple[str, ...],
    ) -> None:
        logger.info(
            "notification_sent",
            extra={
                "event": event.value,
                "channels": list(channels),
                "request_id": str(summary.request_id),
                "purchase_number": summary.purchase_number,
                "status": summary.status.value,
                "recipient_id": (
                    str(summary.pending_approver_id)
                    if summary.pending_approver_id
                    else str(summary.created_by)
                ),
            },
        )


class NotificationDispatcher:
    """Applies the notify policy and isolates notifier failures."""

    def __init__(self, notifier: Notifier, policy: NotifyPolicy | None = None) -> None:
        self._notifier = notifier
        self._policy = policy or NotifyPolicy()

    def dispatch(self, event: NotificationEvent, summary: RequestSummary) -> bool:
        """Deliver ``event``.  Returns True if the notifier was called and succeeded."""
        rule = self._policy.rule_for(event)
        if not rule.enabled or not rule.channels:
            logger.debug(
                "notification_suppressed",
                extra={"event": event.value, "request_id": str(summary.request_id)},
            )
            return False
        try:
            self._notifier.notify(event, summary, rule.channels)
        except Exception:  # noqa: BLE001
            logger.warning(
                "notification_failed",
                extra={"event": event.value, "request_id": str(summary.request_id)},
                exc_info=True,
            )
            return False
        return True
