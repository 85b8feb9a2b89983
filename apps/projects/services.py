import logging
from typing import Sequence

from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from apps.common.exceptions import (
    InvalidInput,
    InvalidPreferenceCount,
    NotFinalized,
    NotFound,
    NotLeader,
    ProjectAlreadyRegistered,
)
from apps.common.principals import Principal, require_student
from apps.groups.models import Group
from apps.groups.services import lock_group
from apps.notifications.dispatcher import emit
from apps.notifications.events import Event, EventType
from apps.projects.models import FacultyPreference, Project
from apps.semesters.services import get_formation_rules

logger = logging.getLogger(__name__)
User = get_user_model()


def _validate_preferences(ranked_faculty_ids: Sequence[int], semester: int) -> list:
    rules = get_formation_rules(semester)
    ids = list(ranked_faculty_ids or [])
    if not rules.min_preferences <= len(ids) <= rules.max_preferences:
        raise InvalidPreferenceCount(
            f"Select between {rules.min_preferences} and {rules.max_preferences} faculty preferences"
        )
    if len(set(ids)) != len(ids):
        raise InvalidPreferenceCount("Faculty preferences must not contain duplicates")

    faculty_ids = set(
        User.objects.filter(pk__in=ids, role=User.Role.FACULTY, is_active=True).values_list(
            "pk", flat=True
        )
    )
    missing = [faculty_id for faculty_id in ids if faculty_id not in faculty_ids]
    if missing:
        raise InvalidInput(f"Not faculty members: {', '.join(str(pk) for pk in missing)}")
    return ids


def register_project(
    group_id: int,
    principal: Principal,
    title: str,
    domain: str,
    ranked_faculty_ids: Sequence[int],
) -> Project:
    student = require_student(principal)
    title = (title or "").strip()
    if not title:
        raise InvalidInput("title is required")

    with transaction.atomic():
        group = Group.objects.select_for_update().filter(pk=group_id).first()
        if group is None:
            raise NotFound("Group not found")
        if group.status == Group.Status.LOCKED or Project.objects.filter(group=group).exists():
            raise ProjectAlreadyRegistered()
        if group.status != Group.Status.FINALIZED:
            raise NotFinalized()
        if group.leader_id != student.user_id:
            raise NotLeader("Only the group leader can register the project")
        ids = _validate_preferences(ranked_faculty_ids, group.semester)

        project = Project.objects.create(
            group=group,
            title=title,
            domain=(domain or "").strip(),
            semester=group.semester,
            academic_year=group.academic_year,
            registered_by_id=student.user_id,
            cursor_advanced_at=timezone.now(),
        )
        FacultyPreference.objects.bulk_create(
            [
                FacultyPreference(project=project, faculty_id=faculty_id, rank=rank)
                for rank, faculty_id in enumerate(ids, start=1)
            ]
        )
        lock_group(group)

        emit(
            Event(
                EventType.PROJECT_REGISTERED,
                {
                    "group_id": group.pk,
                    "project_id": project.pk,
                    "title": project.title,
                    "faculty_ids": ids,
                },
            )
        )
        emit(
            Event(
                EventType.ALLOCATION_REQUEST,
                {
                    "project_id": project.pk,
                    "group_id": group.pk,
                    "faculty_id": ids[0],
                    "title": project.title,
                    "position": 1,
                    "total": len(ids),
                },
            )
        )

    logger.info(
        "Project %s registered for group %s with %s preference(s)", project.pk, group.pk, len(ids)
    )
    return project
