"""
Invitation ledger.

Acceptance is the one command that spans the group and the invitation: it locks
the group row, the invitee row and the invitation row (always in that order)
and re-checks capacity inside the same transaction that flips the invitation
to accepted. Follow-up auto-rejections run afterwards, one transaction per
invitation, and are safe to repeat.
"""
import logging
from typing import Optional

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.common.exceptions import (
    AlreadyMember,
    AlreadyResolved,
    DuplicatePending,
    GroupFull,
    GroupNotOpen,
    InvalidInput,
    NotAuthorized,
    NotForYou,
    NotFound,
)
from apps.common.principals import Principal, is_admin, require_student
from apps.groups.models import Group, GroupMember
from apps.invitations.models import Invitation
from apps.notifications.dispatcher import emit
from apps.notifications.events import Event, EventType
from apps.semesters.services import get_formation_rules

logger = logging.getLogger(__name__)
User = get_user_model()

ACCEPT = "accept"
REJECT = "reject"
DECISIONS = (ACCEPT, REJECT)


def _lock_group(group_id: int) -> Group:
    group = Group.objects.select_for_update().filter(pk=group_id).first()
    if group is None:
        raise NotFound("Group not found")
    return group


def _update_event(invitation: Invitation, update_type: str, **extra) -> Event:
    payload = {
        "type": update_type,
        "invitation_id": invitation.pk,
        "group_id": invitation.group_id,
        "invitee_id": invitation.invitee_id,
    }
    payload.update(extra)
    return Event(EventType.INVITATION_UPDATE, payload)


def _ensure_can_invite(group: Group, inviter_id: int) -> None:
    member = group.get_active_member(inviter_id)
    if member is None:
        raise NotAuthorized("Only active group members can send invitations")
    if member.role == GroupMember.Role.LEADER:
        return
    if not get_formation_rules(group.semester).allow_member_invites:
        raise NotAuthorized("Only the group leader can send invitations")


def create_invitation(
    group_id: int,
    invitee_id: int,
    invited_by: Principal,
    role: str = GroupMember.Role.MEMBER,
) -> Invitation:
    inviter = require_student(invited_by)
    if role != GroupMember.Role.MEMBER:
        raise InvalidInput("Invitations can only propose the member role")

    with transaction.atomic():
        group = _lock_group(group_id)
        _ensure_can_invite(group, inviter.user_id)
        if not group.is_accepting_members:
            raise GroupNotOpen(f"Group is {group.status} and no longer accepts invitations")

        invitee = User.objects.filter(pk=invitee_id).first()
        if invitee is None:
            raise NotFound("Invitee not found")
        if invitee.role != User.Role.STUDENT:
            raise InvalidInput("Only students can be invited to a group")
        if invitee.semester is not None and invitee.semester != group.semester:
            raise InvalidInput(
                f"Invitee is in semester {invitee.semester}, group is in semester {group.semester}"
            )
        if group.get_active_member(invitee.pk) is not None:
            raise AlreadyMember("Student is already a member of this group")
        if invitee.get_active_membership(group.semester) is not None:
            raise AlreadyMember()
        if Invitation.objects.filter(
            group=group, invitee=invitee, status=Invitation.Status.PENDING
        ).exists():
            raise DuplicatePending()
        if group.is_full():
            raise GroupFull(f"Group already has {group.max_members} members")

        try:
            with transaction.atomic():
                invitation = Invitation.objects.create(
                    group=group,
                    invitee=invitee,
                    invited_by_id=inviter.user_id,
                    proposed_role=role,
                )
        except IntegrityError as exc:
            raise DuplicatePending() from exc

        emit(
            Event(
                EventType.INVITATION_CREATED,
                {
                    "invitation_id": invitation.pk,
                    "group_id": group.pk,
                    "group_name": group.name,
                    "invitee_id": invitee.pk,
                    "invited_by_id": inviter.user_id,
                    "role": role,
                },
            )
        )

    logger.info(
        "Invitation %s created group=%s invitee=%s by=%s",
        invitation.pk,
        group.pk,
        invitee.pk,
        inviter.user_id,
    )
    return invitation


def respond(invitation_id: int, invitee: Principal, decision: str) -> Invitation:
    student = require_student(invitee)
    if decision not in DECISIONS:
        raise InvalidInput("decision must be 'accept' or 'reject'")

    invitation = Invitation.objects.filter(pk=invitation_id).first()
    if invitation is None:
        raise NotFound("Invitation not found")
    if invitation.invitee_id != student.user_id:
        raise NotForYou()

    if decision == REJECT:
        return _reject(invitation.pk)
    return _accept(invitation.pk, invitation.group_id, student.user_id)


def _reject(invitation_id: int) -> Invitation:
    with transaction.atomic():
        invitation = Invitation.objects.select_for_update().get(pk=invitation_id)
        if not invitation.is_pending:
            raise AlreadyResolved("This invitation has already been processed")
        invitation.status = Invitation.Status.REJECTED
        invitation.resolved_at = timezone.now()
        invitation.save(update_fields=["status", "resolved_at", "updated_at"])
        emit(_update_event(invitation, "rejected"))

    logger.info("Invitation %s rejected by %s", invitation.pk, invitation.invitee_id)
    return invitation


def _accept(invitation_id: int, group_id: int, student_id: int) -> Invitation:
    stale_reason = None
    with transaction.atomic():
        group = _lock_group(group_id)
        invitee = User.objects.select_for_update().get(pk=student_id)
        invitation = Invitation.objects.select_for_update().get(pk=invitation_id)
        invitation.group = group

        if not invitation.is_pending:
            if invitation.resolution_code == Invitation.Reason.GROUP_FULL:
                raise GroupFull("Group is now full")
            raise AlreadyResolved("This invitation has already been processed")

        if group.is_accepting_members:
            if invitee.get_active_membership(group.semester) is not None:
                raise AlreadyMember()
            if group.is_full():
                logger.warning(
                    "Accept rejected: group %s is full (invitation %s)", group.pk, invitation.pk
                )
                raise GroupFull("Group is now full")

            invitation.status = Invitation.Status.ACCEPTED
            invitation.resolved_at = timezone.now()
            invitation.save(update_fields=["status", "resolved_at", "updated_at"])
            group.add_member(invitee, role=invitation.proposed_role)
            emit(
                _update_event(
                    invitation,
                    "accepted",
                    member_count=group.active_member_count(),
                    max_members=group.max_members,
                )
            )
        else:
            stale_reason = invitation.stale_reason()

    if stale_reason is not None:
        _auto_reject(invitation.pk, stale_reason)
        raise GroupNotOpen(f"Group is {group.status} and no longer accepts members")

    logger.info("Invitation %s accepted; %s joined group %s", invitation.pk, invitee.pk, group.pk)
    if group.is_full():
        auto_reject_all_pending_for(group, Invitation.Reason.GROUP_FULL)
    auto_reject_other_pending_for(invitee, group)
    return invitation


def _auto_reject(invitation_id: int, reason: str) -> bool:
    reason = Invitation.Reason(reason)
    with transaction.atomic():
        invitation = Invitation.objects.select_for_update().filter(pk=invitation_id).first()
        if invitation is None or not invitation.is_pending:
            return False
        invitation.status = Invitation.Status.AUTO_REJECTED
        invitation.resolved_at = timezone.now()
        invitation.resolution_code = reason.value
        invitation.resolution_reason = reason.label
        invitation.save(
            update_fields=[
                "status",
                "resolved_at",
                "resolution_code",
                "resolution_reason",
                "updated_at",
            ]
        )
        emit(
            _update_event(
                invitation,
                "auto_rejected",
                reason=reason.label,
                reason_code=reason.value,
            )
        )

    logger.info(
        "Auto-rejected invitation %s group=%s invitee=%s reason=%s",
        invitation.pk,
        invitation.group_id,
        invitation.invitee_id,
        reason.value,
    )
    return True


def auto_reject_all_pending_for(group: Group, reason: str) -> int:
    """Auto-reject every pending invitation of ``group``; return how many changed."""
    pending_ids = list(
        Invitation.objects.filter(group=group, status=Invitation.Status.PENDING)
        .order_by("id")
        .values_list("pk", flat=True)
    )
    return sum(1 for pk in pending_ids if _auto_reject(pk, reason))


def auto_reject_other_pending_for(student, joined_group: Group) -> int:
    """Resolve the student's pending invitations from other groups of the same semester."""
    pending_ids = list(
        Invitation.objects.filter(
            invitee=student,
            status=Invitation.Status.PENDING,
            group__semester=joined_group.semester,
        )
        .exclude(group=joined_group)
        .order_by("id")
        .values_list("pk", flat=True)
    )
    return sum(
        1 for pk in pending_ids if _auto_reject(pk, Invitation.Reason.JOINED_OTHER_GROUP)
    )


def reconcile_stale_invitations(group: Optional[Group] = None, invitee=None) -> int:
    """
    Auto-reject pending invitations that can no longer be accepted, e.g. when a
    sweep was interrupted after the group transition committed.
    """
    queryset = Invitation.objects.filter(status=Invitation.Status.PENDING).select_related(
        "group", "invitee"
    )
    if group is not None:
        queryset = queryset.filter(group=group)
    if invitee is not None:
        queryset = queryset.filter(invitee=invitee)

    reconciled = 0
    for invitation in queryset.order_by("id"):
        reason = invitation.stale_reason()
        if reason is not None and _auto_reject(invitation.pk, reason):
            reconciled += 1
    if reconciled:
        logger.warning("Reconciled %s stale pending invitation(s)", reconciled)
    return reconciled


def received_invitations(principal: Principal, status: Optional[str] = None):
    student = require_student(principal)
    invitee = User.objects.get(pk=student.user_id)
    reconcile_stale_invitations(invitee=invitee)
    queryset = Invitation.objects.select_related("group", "invited_by").filter(invitee=invitee)
    if status:
        queryset = queryset.filter(status=status)
    return queryset


def group_invitations(group_id: int, principal: Principal):
    group = Group.objects.filter(pk=group_id).first()
    if group is None:
        raise NotFound("Group not found")
    if not is_admin(principal) and group.get_active_member(principal.user_id) is None:
        raise NotAuthorized("Only group members can view its invitations")
    return Invitation.objects.select_related("invitee", "invited_by").filter(group=group)
