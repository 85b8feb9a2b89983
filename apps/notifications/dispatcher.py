"""
Notification dispatcher.

Domain services call ``emit(event)`` inside their transaction. The event is
handed to the dispatcher only after the transaction commits, routed to its
audiences (group members, faculty, administrators) and published once per
topic on the configured transport.
"""
import logging
from functools import partial
from typing import Callable, Dict, Iterable, List, Optional

from django.db import transaction

from apps.notifications.events import (
    ADMIN_TOPIC,
    Event,
    EventType,
    faculty_topic,
    group_topic,
    user_topic,
)
from apps.notifications.transports import get_transport

logger = logging.getLogger(__name__)

Router = Callable[[Event], List[str]]


def _group(event: Event) -> List[str]:
    return [group_topic(event.payload["group_id"])]


def _users(ids: Iterable[int]) -> List[str]:
    return [user_topic(user_id) for user_id in ids]


def _faculty(ids: Iterable[int]) -> List[str]:
    return [faculty_topic(faculty_id) for faculty_id in ids]


def _route_invitation_created(event: Event) -> List[str]:
    return _group(event) + _users([event.payload["invitee_id"]])


def _route_invitation_update(event: Event) -> List[str]:
    invitee = _users([event.payload["invitee_id"]])
    if event.payload.get("type") == "auto_rejected":
        return invitee
    return _group(event) + invitee


def _route_membership_change(event: Event) -> List[str]:
    return _group(event) + _users([event.payload["student_id"]])


def _route_group_disbanded(event: Event) -> List[str]:
    return _group(event) + _users(event.payload.get("member_ids", []))


def _route_allocation_request(event: Event) -> List[str]:
    return _faculty([event.payload["faculty_id"]])


def _route_group_allocation(event: Event) -> List[str]:
    topics = _group(event) + _faculty(event.payload.get("faculty_ids", []))
    if event.payload.get("allocated_by") == "admin_allocation":
        topics.append(ADMIN_TOPIC)
    return topics


def _route_allocation_exhausted(event: Event) -> List[str]:
    return _group(event) + [ADMIN_TOPIC]


ROUTES: Dict[EventType, Router] = {
    EventType.INVITATION_CREATED: _route_invitation_created,
    EventType.INVITATION_UPDATE: _route_invitation_update,
    EventType.MEMBERSHIP_CHANGE: _route_membership_change,
    EventType.LEADERSHIP_TRANSFER: _group,
    EventType.GROUP_FINALIZED: _group,
    EventType.GROUP_DISBANDED: _route_group_disbanded,
    EventType.PROJECT_REGISTERED: _group,
    EventType.ALLOCATION_REQUEST: _route_allocation_request,
    EventType.FACULTY_RESPONSE: _group,
    EventType.GROUP_ALLOCATION: _route_group_allocation,
    EventType.ALLOCATION_EXHAUSTED: _route_allocation_exhausted,
}


class NotificationDispatcher:
    def __init__(self, transport=None):
        self._transport = transport

    @property
    def transport(self):
        return self._transport if self._transport is not None else get_transport()

    def topics_for(self, event: Event) -> List[str]:
        router = ROUTES.get(event.type)
        if router is None:
            return []
        topics: List[str] = []
        for topic in router(event):
            if topic not in topics:
                topics.append(topic)
        return topics

    def dispatch(self, event: Event) -> int:
        """Publish ``event`` to each audience topic; return the number delivered."""
        message = event.to_dict()
        delivered = 0
        for topic in self.topics_for(event):
            try:
                self.transport.publish(topic, message)
            except Exception:
                logger.exception("Failed to publish %s to %s", event.type.value, topic)
                continue
            delivered += 1
        logger.debug("Dispatched %s to %s topic(s)", event.type.value, delivered)
        return delivered


dispatcher = NotificationDispatcher()


def emit(event: Event, using: Optional[str] = None) -> None:
    """Queue ``event`` for dispatch once the current transaction commits."""
    transaction.on_commit(partial(dispatcher.dispatch, event), using=using)
