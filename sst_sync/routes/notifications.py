"""
Notification collaborator invoked on route transitions.

Delivery (email templating, SMTP) lives outside this package; the state
machine only needs ``send(contact, template_data) -> bool``.
"""

from typing import Any, Protocol

from sst_sync.core.models import Route
from sst_sync.observability.logger import get_logger

logger = get_logger(__name__)

TEMPLATE_ROUTE_SCHEDULED = "route_scheduled"
TEMPLATE_ROUTE_CONFIRMED = "route_confirmed"


class NotificationDispatcher(Protocol):
    async def send(self, contact: str, template_data: dict[str, Any]) -> bool:
        ...


class LoggingNotificationDispatcher:
    """Records notifications in the log instead of delivering them."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, dict[str, Any]]] = []

    async def send(self, contact: str, template_data: dict[str, Any]) -> bool:
        self.sent.append((contact, template_data))
        logger.info(
            f"Notification '{template_data.get('template')}' for {contact}",
            extra={"contact": contact, "route_number": template_data.get("route_number")},
        )
        return True


def route_template_data(template: str, route: Route) -> dict[str, Any]:
    """Fields every route email template renders."""
    return {
        "template": template,
        "route_number": route.route_number,
        "sector": route.sector,
        "route_date": route.route_date.isoformat(),
        "route_time": route.route_time.strftime("%H:%M"),
        "safety_technician": route.safety_technician,
    }
