"""
Allocation cascade.

A registered project is offered to its ranked faculty one at a time. The
faculty under the cursor either chooses the project (terminal) or passes,
which advances the cursor; passing on the last preference exhausts the list
and hands the project to an administrator. Every decision runs under a row
lock on the project so only one decision lands per cursor position.
"""
import logging
from datetime import timedelta
from typing import Optional

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Count, F, Q
from django.utils import timezone

from apps.common.exceptions import (
    AlreadyResolved,
    InvalidInput,
    NotAuthorized,
    NotCurrentPreference,
    NotFound,
)
from apps.common.principals import (
    Faculty,
    Principal,
    is_admin,
    require_admin,
    require_faculty,
)
from apps.notifications.dispatcher import emit
from apps.notifications.events import Event, EventType
from apps.projects.models import AllocationDecision, Project

logger = logging.getLogger(__name__)
User = get_user_model()


def _lock_project(project_id: int) -> Project:
    project = Project.objects.select_for_update().filter(pk=project_id).first()
    if project is None:
        raise NotFound("Project not found")
    return project


def _current_decider(project: Project, faculty_id: int):
    if not project.is_pending:
        raise AlreadyResolved(f"Project allocation is already {project.allocation_status}")
    current = project.current_preference()
    if current is None or current.faculty_id != faculty_id:
        raise NotCurrentPreference()
    return current


def _allocation_event(project: Project, faculty_ids) -> Event:
    return Event(
        EventType.GROUP_ALLOCATION,
        {
            "group_id": project.group_id,
            "project_id": project.pk,
            "title": project.title,
            "status": "allocated",
            "allocation_status": project.allocation_status,
            "allocated_by": project.allocated_by,
            "faculty_id": project.allocated_faculty_id,
            "faculty_ids": faculty_ids,
        },
    )


def choose(project_id: int, principal: Principal, comments: str = "") -> Project:
    faculty = require_faculty(principal)
    with transaction.atomic():
        project = _lock_project(project_id)
        current = _current_decider(project, faculty.user_id)
        AllocationDecision.objects.create(
            project=project,
            faculty_id=faculty.user_id,
            rank=current.rank,
            decision=AllocationDecision.Decision.CHOSEN,
            comments=comments or "",
        )
        project.allocated_faculty_id = faculty.user_id
        project.allocation_status = Project.AllocationStatus.ALLOCATED
        project.allocated_by = Project.AllocatedBy.FACULTY_CHOICE
        project.allocated_at = timezone.now()
        project.save(
            update_fields=[
                "allocated_faculty",
                "allocation_status",
                "allocated_by",
                "allocated_at",
                "updated_at",
            ]
        )
        emit(_allocation_event(project, project.ranked_faculty_ids()))

    logger.info(
        "Project %s allocated to faculty %s at preference %s", project.pk, faculty.user_id, current.rank
    )
    return project


def pass_project(project_id: int, principal: Principal, comments: str = "") -> Project:
    faculty = require_faculty(principal)
    with transaction.atomic():
        project = _lock_project(project_id)
        current = _current_decider(project, faculty.user_id)
        AllocationDecision.objects.create(
            project=project,
            faculty_id=faculty.user_id,
            rank=current.rank,
            decision=AllocationDecision.Decision.PASSED,
            comments=comments or "",
        )
        ranked = project.ranked_faculty_ids()
        project.current_preference_index = current.rank
        project.cursor_advanced_at = timezone.now()
        exhausted = project.current_preference_index >= len(ranked)
        if exhausted:
            project.allocation_status = Project.AllocationStatus.EXHAUSTED
        project.save(
            update_fields=[
                "current_preference_index",
                "cursor_advanced_at",
                "allocation_status",
                "updated_at",
            ]
        )

        emit(
            Event(
                EventType.FACULTY_RESPONSE,
                {
                    "group_id": project.group_id,
                    "project_id": project.pk,
                    "faculty_id": faculty.user_id,
                    "response": "passed",
                    "position": current.rank,
                    "total": len(ranked),
                    "allocation_status": project.allocation_status,
                },
            )
        )
        if exhausted:
            emit(
                Event(
                    EventType.ALLOCATION_EXHAUSTED,
                    {
                        "group_id": project.group_id,
                        "project_id": project.pk,
                        "title": project.title,
                        "faculty_ids": ranked,
                    },
                )
            )
        else:
            emit(
                Event(
                    EventType.ALLOCATION_REQUEST,
                    {
                        "project_id": project.pk,
                        "group_id": project.group_id,
                        "faculty_id": ranked[project.current_preference_index],
                        "title": project.title,
                        "position": project.current_preference_index + 1,
                        "total": len(ranked),
                    },
                )
            )

    if exhausted:
        logger.warning("Project %s exhausted all %s faculty preferences", project.pk, len(ranked))
    else:
        logger.info(
            "Faculty %s passed project %s; cursor at %s of %s",
            faculty.user_id,
            project.pk,
            project.current_preference_index + 1,
            len(ranked),
        )
    return project


def force_allocate(project_id: int, faculty_id: int, principal: Principal) -> Project:
    admin = require_admin(principal)
    with transaction.atomic():
        project = _lock_project(project_id)
        if project.allocation_status not in (
            Project.AllocationStatus.PENDING,
            Project.AllocationStatus.EXHAUSTED,
        ):
            raise AlreadyResolved(f"Project allocation is already {project.allocation_status}")
        faculty = User.objects.filter(pk=faculty_id).first()
        if faculty is None:
            raise NotFound("Faculty not found")
        if faculty.role != User.Role.FACULTY:
            raise InvalidInput("Projects can only be allocated to faculty members")

        previous_status = project.allocation_status
        project.allocated_faculty = faculty
        project.allocation_status = Project.AllocationStatus.MANUALLY_ALLOCATED
        project.allocated_by = Project.AllocatedBy.ADMIN_ALLOCATION
        project.allocated_at = timezone.now()
        project.allocated_by_admin_id = admin.user_id
        project.save(
            update_fields=[
                "allocated_faculty",
                "allocation_status",
                "allocated_by",
                "allocated_at",
                "allocated_by_admin",
                "updated_at",
            ]
        )
        faculty_ids = project.ranked_faculty_ids()
        if faculty.pk not in faculty_ids:
            faculty_ids.append(faculty.pk)
        emit(_allocation_event(project, faculty_ids))

    logger.info(
        "Project %s manually allocated to faculty %s by admin %s (was %s)",
        project.pk,
        faculty.pk,
        admin.user_id,
        previous_status,
    )
    return project


def pending_decisions_for(principal: Principal):
    """Projects whose cursor currently points at the calling faculty member."""
    faculty = require_faculty(principal)
    return (
        Project.objects.select_related("group")
        .filter(
            allocation_status=Project.AllocationStatus.PENDING,
            preferences__faculty_id=faculty.user_id,
            preferences__rank=F("current_preference_index") + 1,
        )
        .order_by("cursor_advanced_at", "id")
    )


def allocation_summary(project: Project, now=None) -> dict:
    now = now or timezone.now()
    total = project.preference_count()
    position: Optional[int] = None
    current_faculty_id = None
    if project.is_pending:
        position = project.current_preference_index + 1
        current = project.current_preference()
        current_faculty_id = current.faculty_id if current else None
        label = f"Presented to faculty {position} of {total}"
    elif project.allocation_status == Project.AllocationStatus.EXHAUSTED:
        label = "All faculty preferences exhausted; awaiting admin allocation"
    else:
        label = project.get_allocation_status_display()

    idle_seconds = None
    if project.is_pending and project.cursor_advanced_at:
        idle_seconds = int((now - project.cursor_advanced_at).total_seconds())

    return {
        "project_id": project.pk,
        "status": project.allocation_status,
        "label": label,
        "current_faculty_id": current_faculty_id,
        "position": position,
        "total": total,
        "decisions": project.decisions.count(),
        "allocated_faculty_id": project.allocated_faculty_id,
        "allocated_by": project.allocated_by,
        "seconds_since_cursor_advanced": idle_seconds,
    }


def allocation_statistics(semester: Optional[int] = None, academic_year: Optional[str] = None) -> dict:
    """Allocation totals for the admin dashboard, optionally scoped to a semester and year."""
    queryset = Project.objects.all()
    if semester:
        queryset = queryset.filter(semester=semester)
    if academic_year:
        queryset = queryset.filter(academic_year=academic_year)

    total = queryset.count()
    allocated = queryset.filter(allocation_status__in=Project.TERMINAL_STATUSES).count()

    by_status = dict.fromkeys(Project.AllocationStatus.values, 0)
    for row in queryset.order_by().values("allocation_status").annotate(count=Count("id")):
        by_status[row["allocation_status"]] = row["count"]

    by_faculty = []
    rows = (
        queryset.filter(allocated_faculty__isnull=False)
        .values(
            "allocated_faculty_id",
            "allocated_faculty__username",
            "allocated_faculty__first_name",
            "allocated_faculty__last_name",
        )
        .annotate(count=Count("id"))
        .order_by("-count", "allocated_faculty_id")
    )
    for row in rows:
        full_name = f"{row['allocated_faculty__first_name']} {row['allocated_faculty__last_name']}".strip()
        by_faculty.append(
            {
                "faculty_id": row["allocated_faculty_id"],
                "faculty_name": full_name or row["allocated_faculty__username"],
                "count": row["count"],
            }
        )

    return {
        "semester": semester,
        "academic_year": academic_year,
        "total_projects": total,
        "allocated_projects": allocated,
        "unallocated_projects": total - allocated,
        "allocation_rate": round(allocated * 100 / total, 2) if total else 0.0,
        "by_status": by_status,
        "by_faculty": by_faculty,
    }


def projects_for(principal: Principal):
    queryset = Project.objects.select_related("group", "allocated_faculty").prefetch_related(
        "preferences__faculty"
    )
    if is_admin(principal):
        return queryset
    if isinstance(principal, Faculty):
        return queryset.filter(
            Q(preferences__faculty_id=principal.user_id) | Q(allocated_faculty_id=principal.user_id)
        ).distinct()
    return queryset.filter(
        group__members__student_id=principal.user_id, group__members__is_active=True
    ).distinct()


def visible_project(project_id: int, principal: Principal) -> Project:
    project = projects_for(principal).filter(pk=project_id).first()
    if project is not None:
        return project
    if Project.objects.filter(pk=project_id).exists():
        raise NotAuthorized("You do not have access to this project")
    raise NotFound("Project not found")


def stalled_allocations(older_than_seconds: int, now=None):
    """Pending projects whose cursor has not moved for ``older_than_seconds``."""
    now = now or timezone.now()
    threshold = now - timedelta(seconds=older_than_seconds)
    return (
        Project.objects.select_related("group")
        .filter(
            allocation_status=Project.AllocationStatus.PENDING,
            cursor_advanced_at__lte=threshold,
        )
        .order_by("cursor_advanced_at")
    )
