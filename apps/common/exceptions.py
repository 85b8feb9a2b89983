import logging

from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class EngineError(APIException):
    """Base for every command rejection raised by the engine."""

    kind = "EngineError"
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Command rejected"
    default_code = "engine_error"


# --- NotAuthorized -----------------------------------------------------------


class NotAuthorized(EngineError):
    kind = "NotAuthorized"
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "You are not allowed to perform this action"
    default_code = "not_authorized"


class NotLeader(NotAuthorized):
    default_detail = "Only the group leader can perform this action"
    default_code = "not_leader"


class NotForYou(NotAuthorized):
    default_detail = "This invitation does not belong to you"
    default_code = "not_for_you"


# --- NotFound ----------------------------------------------------------------


class NotFound(EngineError):
    kind = "NotFound"
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"
    default_code = "not_found"


# --- InvalidState ------------------------------------------------------------


class InvalidState(EngineError):
    kind = "InvalidState"
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Operation is not permitted in the current state"
    default_code = "invalid_state"


class NotFinalized(InvalidState):
    default_detail = "Group must be finalized before registering a project"
    default_code = "not_finalized"


class AlreadyResolved(InvalidState):
    default_detail = "This item has already been resolved"
    default_code = "already_resolved"


class NotCurrentPreference(InvalidState):
    default_detail = "It is not your turn to decide on this project"
    default_code = "not_current_preference"


class ProjectAlreadyRegistered(InvalidState):
    default_detail = "A project is already registered for this group"
    default_code = "project_already_registered"


class AlreadyMember(InvalidState):
    default_detail = "Student is already an active member of a group this semester"
    default_code = "already_member"


class DuplicatePending(InvalidState):
    default_detail = "Student already has a pending invitation from this group"
    default_code = "duplicate_pending"


class GroupNotOpen(InvalidState):
    default_detail = "Group is not accepting membership changes"
    default_code = "group_not_open"


# --- CapacityExceeded --------------------------------------------------------


class CapacityExceeded(EngineError):
    kind = "CapacityExceeded"
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Group capacity constraint violated"
    default_code = "capacity_exceeded"


class GroupFull(CapacityExceeded):
    default_detail = "Group is full"
    default_code = "group_full"


class BelowMinimum(CapacityExceeded):
    default_detail = "Group does not have enough members"
    default_code = "below_minimum"


# --- ValidationError ---------------------------------------------------------


class InvalidInput(EngineError):
    kind = "ValidationError"
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid input"
    default_code = "invalid_input"


class InvalidPreferenceCount(InvalidInput):
    default_detail = "Faculty preference list has an invalid length or duplicates"
    default_code = "invalid_preference_count"


def engine_exception_handler(exc, context):
    """Render engine errors as ``{"kind", "code", "detail"}``."""
    response = exception_handler(exc, context)
    if response is None or not isinstance(exc, EngineError):
        return response

    view = context.get("view")
    logger.info(
        "Rejected %s in %s: %s (%s)",
        exc.kind,
        view.__class__.__name__ if view is not None else "-",
        exc.detail,
        exc.default_code,
    )
    response.data = {
        "kind": exc.kind,
        "code": exc.default_code,
        "detail": str(exc.detail),
    }
    return response
