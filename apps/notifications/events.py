from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict

from django.utils import timezone

ADMIN_TOPIC = "admin"


def group_topic(group_id: int) -> str:
    return f"group:{group_id}"


def user_topic(user_id: int) -> str:
    return f"user:{user_id}"


def faculty_topic(faculty_id: int) -> str:
    return f"faculty:{faculty_id}"


class EventType(str, Enum):
    """Every state change the engine publishes."""

    # Invitation ledger
    INVITATION_CREATED = "invitation_created"
    INVITATION_UPDATE = "invitation_update"

    # Group aggregate
    MEMBERSHIP_CHANGE = "membership_change"
    LEADERSHIP_TRANSFER = "leadership_transfer"
    GROUP_FINALIZED = "group_finalized"
    GROUP_DISBANDED = "group_disbanded"

    # Registration and allocation cascade
    PROJECT_REGISTERED = "project_registered"
    ALLOCATION_REQUEST = "allocation_request"
    FACULTY_RESPONSE = "faculty_response"
    GROUP_ALLOCATION = "group_allocation"
    ALLOCATION_EXHAUSTED = "allocation_exhausted"


@dataclass
class Event:
    type: EventType
    payload: Dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=timezone.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "data": self.payload,
            "timestamp": self.occurred_at.isoformat(),
        }
