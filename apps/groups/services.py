import logging
from typing import Optional

from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from apps.common.exceptions import (
    AlreadyMember,
    BelowMinimum,
    GroupNotOpen,
    InvalidInput,
    InvalidState,
    NotAuthorized,
    NotFound,
    NotLeader,
    ProjectAlreadyRegistered,
)
from apps.common.principals import Principal, is_admin, require_student
from apps.groups.models import Group, GroupMember
from apps.invitations.models import Invitation
from apps.invitations.services import auto_reject_all_pending_for
from apps.notifications.dispatcher import emit
from apps.notifications.events import Event, EventType
from apps.semesters.services import current_academic_year, get_formation_rules

logger = logging.getLogger(__name__)
User = get_user_model()


def get_group(group_id: int) -> Group:
    group = (
        Group.objects.select_related("leader")
        .prefetch_related("members__student")
        .filter(pk=group_id)
        .first()
    )
    if group is None:
        raise NotFound("Group not found")
    return group


def _lock_group(group_id: int) -> Group:
    group = Group.objects.select_for_update().filter(pk=group_id).first()
    if group is None:
        raise NotFound("Group not found")
    return group


def _require_leader(group: Group, user_id: int) -> None:
    if group.leader_id != user_id:
        raise NotLeader()


def _require_accepting(group: Group) -> None:
    if not group.is_accepting_members:
        raise GroupNotOpen(f"Group is {group.status}")


def create_group(
    principal: Principal,
    name: str = "",
    semester: Optional[int] = None,
    academic_year: Optional[str] = None,
) -> Group:
    student = require_student(principal)
    semester = semester or student.semester
    if not semester:
        raise InvalidInput("semester is required")
    if student.semester and semester != student.semester:
        raise InvalidInput("Groups can only be created for your current semester")

    rules = get_formation_rules(semester)
    with transaction.atomic():
        leader = User.objects.select_for_update().get(pk=student.user_id)
        if leader.get_active_membership(semester) is not None:
            raise AlreadyMember("You are already an active member of a group this semester")

        group = Group.objects.create(
            name=(name or "").strip() or f"Group - Semester {semester}",
            semester=semester,
            academic_year=academic_year or current_academic_year(),
            min_members=rules.min_members,
            max_members=rules.max_members,
            leader=leader,
        )
        group.add_member(leader, role=GroupMember.Role.LEADER)

    logger.info("Group %s created by %s (semester %s)", group.pk, leader.pk, semester)
    return group


def finalize_group(group_id: int, principal: Principal) -> Group:
    student = require_student(principal)
    with transaction.atomic():
        group = _lock_group(group_id)
        _require_leader(group, student.user_id)
        _require_accepting(group)
        count = group.active_member_count()
        if count < group.min_members:
            raise BelowMinimum(
                f"Group must have at least {group.min_members} members to be finalized ({count} now)"
            )
        group.status = Group.Status.FINALIZED
        group.finalized_at = timezone.now()
        group.save(update_fields=["status", "finalized_at", "updated_at"])
        emit(
            Event(
                EventType.GROUP_FINALIZED,
                {"group_id": group.pk, "member_count": count, "finalized_by": student.user_id},
            )
        )

    logger.info("Group %s finalized with %s members", group.pk, count)
    auto_reject_all_pending_for(group, Invitation.Reason.GROUP_FINALIZED)
    return group


def disband_group(group_id: int, principal: Principal) -> Group:
    with transaction.atomic():
        group = _lock_group(group_id)
        if not is_admin(principal):
            require_student(principal)
            _require_leader(group, principal.user_id)
        if group.status == Group.Status.LOCKED:
            raise ProjectAlreadyRegistered("Cannot disband a group with a registered project")
        if group.status == Group.Status.DISBANDED:
            raise InvalidState("Group is already disbanded")

        now = timezone.now()
        member_ids = list(group.active_members().values_list("student_id", flat=True))
        group.members.filter(is_active=True).update(is_active=False, left_at=now, updated_at=now)
        group.status = Group.Status.DISBANDED
        group.disbanded_at = now
        group.save(update_fields=["status", "disbanded_at", "updated_at"])
        emit(
            Event(
                EventType.GROUP_DISBANDED,
                {"group_id": group.pk, "member_ids": member_ids, "disbanded_by": principal.user_id},
            )
        )

    logger.info("Group %s disbanded by %s", group.pk, principal.user_id)
    auto_reject_all_pending_for(group, Invitation.Reason.GROUP_DISBANDED)
    return group


def _deactivate(member: GroupMember) -> None:
    member.is_active = False
    member.left_at = timezone.now()
    member.save(update_fields=["is_active", "left_at", "updated_at"])


def _hand_over_leadership(group: Group, current: GroupMember, successor: GroupMember) -> None:
    current.role = GroupMember.Role.MEMBER
    current.save(update_fields=["role", "updated_at"])
    successor.role = GroupMember.Role.LEADER
    successor.save(update_fields=["role", "updated_at"])
    group.leader_id = successor.student_id
    group.save(update_fields=["leader", "updated_at"])
    emit(
        Event(
            EventType.LEADERSHIP_TRANSFER,
            {
                "group_id": group.pk,
                "previous_leader_id": current.student_id,
                "leader_id": successor.student_id,
            },
        )
    )


def remove_member(group_id: int, principal: Principal, student_id: int) -> GroupMember:
    leader = require_student(principal)
    with transaction.atomic():
        group = _lock_group(group_id)
        _require_leader(group, leader.user_id)
        _require_accepting(group)
        if student_id == leader.user_id:
            raise InvalidInput("The leader cannot remove themselves; transfer leadership or disband")
        member = group.get_active_member(student_id)
        if member is None:
            raise NotFound("Student is not an active member of this group")
        _deactivate(member)
        emit(
            Event(
                EventType.MEMBERSHIP_CHANGE,
                {
                    "group_id": group.pk,
                    "student_id": student_id,
                    "change": "member_removed",
                    "member_count": group.active_member_count(),
                },
            )
        )

    logger.info("Student %s removed from group %s", student_id, group.pk)
    return member


def leave_group(group_id: int, principal: Principal) -> GroupMember:
    student = require_student(principal)
    with transaction.atomic():
        group = _lock_group(group_id)
        member = group.get_active_member(student.user_id)
        if member is None:
            raise NotAuthorized("You are not an active member of this group")
        _require_accepting(group)

        if member.role == GroupMember.Role.LEADER:
            successor = (
                group.active_members()
                .exclude(pk=member.pk)
                .order_by("joined_at", "id")
                .first()
            )
            if successor is None:
                raise InvalidState("The last member cannot leave; disband the group instead")
            _hand_over_leadership(group, member, successor)
            member.refresh_from_db()

        _deactivate(member)
        emit(
            Event(
                EventType.MEMBERSHIP_CHANGE,
                {
                    "group_id": group.pk,
                    "student_id": student.user_id,
                    "change": "member_left",
                    "member_count": group.active_member_count(),
                },
            )
        )

    logger.info("Student %s left group %s", student.user_id, group.pk)
    return member


def transfer_leadership(group_id: int, principal: Principal, student_id: int) -> Group:
    leader = require_student(principal)
    with transaction.atomic():
        group = _lock_group(group_id)
        _require_leader(group, leader.user_id)
        _require_accepting(group)
        successor = group.get_active_member(student_id)
        if successor is None or successor.student_id == leader.user_id:
            raise InvalidInput("New leader must be another active member of the group")
        current = group.get_active_member(leader.user_id)
        _hand_over_leadership(group, current, successor)

    logger.info("Group %s leadership %s -> %s", group.pk, leader.user_id, student_id)
    return group


def lock_group(group: Group) -> Group:
    """Finalized -> locked once a project is registered. Caller holds the row lock."""
    if group.status != Group.Status.FINALIZED:
        raise InvalidState(f"Only finalized groups can be locked (group is {group.status})")
    group.status = Group.Status.LOCKED
    group.locked_at = timezone.now()
    group.save(update_fields=["status", "locked_at", "updated_at"])
    logger.info("Group %s locked", group.pk)
    return group


def groups_for(principal: Principal, semester: Optional[int] = None):
    queryset = Group.objects.select_related("leader").prefetch_related("members__student")
    if not is_admin(principal):
        queryset = queryset.filter(
            members__student_id=principal.user_id, members__is_active=True
        ).distinct()
    if semester:
        queryset = queryset.filter(semester=semester)
    return queryset


def visible_group(group_id: int, principal: Principal) -> Group:
    group = get_group(group_id)
    if is_admin(principal):
        return group
    if group.get_active_member(principal.user_id) is not None:
        return group
    project = getattr(group, "project", None)
    if project is not None and project.preferences.filter(faculty_id=principal.user_id).exists():
        return group
    raise NotAuthorized("You do not have access to this group")
