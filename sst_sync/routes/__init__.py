"""
Local route lifecycle: storage, state machine, notifications and the
failed-publish worklist.
"""

from .notifications import LoggingNotificationDispatcher, NotificationDispatcher
from .repository import InMemoryRouteRepository, RouteRepository
from .state_machine import TRANSITIONS, ConfirmationOutcome, RouteStateMachine, can_transition
from .worklist import FailedPublish, FailedPublishWorklist

__all__ = [
    "LoggingNotificationDispatcher",
    "NotificationDispatcher",
    "InMemoryRouteRepository",
    "RouteRepository",
    "TRANSITIONS",
    "ConfirmationOutcome",
    "RouteStateMachine",
    "can_transition",
    "FailedPublish",
    "FailedPublishWorklist",
]
