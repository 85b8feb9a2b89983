from datetime import timedelta
from io import StringIO

import pytest
from django.core.management import call_command
from django.utils import timezone

from apps.common.exceptions import (
    AlreadyResolved,
    InvalidInput,
    InvalidPreferenceCount,
    NotAuthorized,
    NotCurrentPreference,
    NotFinalized,
    NotLeader,
    ProjectAlreadyRegistered,
)
from apps.common.principals import principal_for
from apps.groups.models import Group
from apps.projects.allocation import (
    allocation_statistics,
    allocation_summary,
    choose,
    force_allocate,
    pass_project,
    pending_decisions_for,
)
from apps.projects.models import AllocationDecision, Project
from apps.projects.services import register_project
from apps.notifications.transports import memory_transport
from apps.users.tests.factories import AdminFactory, FacultyFactory, StudentFactory


@pytest.mark.django_db
def test_register_project_locks_group(registered_project):
    project, group, members, faculty = registered_project

    group.refresh_from_db()
    assert group.status == Group.Status.LOCKED
    assert project.allocation_status == Project.AllocationStatus.PENDING
    assert project.current_preference_index == 0
    assert project.ranked_faculty_ids() == [f.pk for f in faculty]
    assert project.academic_year == group.academic_year


@pytest.mark.django_db
def test_register_requires_finalized_group(build_group, faculty_panel):
    group, members = build_group(size=4)

    with pytest.raises(NotFinalized):
        register_project(
            group.pk, principal_for(members[0]), "Title", "", [f.pk for f in faculty_panel]
        )


@pytest.mark.django_db
def test_register_by_non_leader_is_rejected(build_group, faculty_panel):
    group, members = build_group(size=4, finalize=True)

    with pytest.raises(NotLeader):
        register_project(
            group.pk, principal_for(members[1]), "Title", "", [f.pk for f in faculty_panel]
        )


@pytest.mark.django_db
def test_register_validates_preferences(build_group, faculty_panel):
    group, members = build_group(size=4, finalize=True)
    leader = principal_for(members[0])
    ids = [f.pk for f in faculty_panel]

    with pytest.raises(InvalidPreferenceCount):
        register_project(group.pk, leader, "Title", "", ids[:2])
    with pytest.raises(InvalidPreferenceCount):
        register_project(group.pk, leader, "Title", "", ids + [ids[0]])
    with pytest.raises(InvalidPreferenceCount):
        register_project(group.pk, leader, "Title", "", ids + [f.pk for f in FacultyFactory.create_batch(3)])
    with pytest.raises(InvalidInput):
        register_project(group.pk, leader, "Title", "", ids[:2] + [members[2].pk])

    group.refresh_from_db()
    assert group.status == Group.Status.FINALIZED
    assert not Project.objects.exists()


@pytest.mark.django_db
def test_register_twice_is_rejected(registered_project):
    project, group, members, faculty = registered_project

    with pytest.raises(ProjectAlreadyRegistered):
        register_project(group.pk, principal_for(members[0]), "Again", "", [f.pk for f in faculty])


@pytest.mark.django_db
def test_pass_advances_cursor_and_exhausts(registered_project):
    project, group, members, (first, second, third) = registered_project

    pass_project(project.pk, principal_for(first))
    project.refresh_from_db()
    assert project.current_preference_index == 1
    assert project.allocation_status == Project.AllocationStatus.PENDING

    with pytest.raises(NotCurrentPreference):
        choose(project.pk, principal_for(first))

    pass_project(project.pk, principal_for(second))
    pass_project(project.pk, principal_for(third), comments="Out of capacity")

    project.refresh_from_db()
    assert project.allocation_status == Project.AllocationStatus.EXHAUSTED
    assert project.current_preference_index == 3
    assert project.decisions.count() == 3
    assert project.allocated_faculty is None

    with pytest.raises(AlreadyResolved):
        choose(project.pk, principal_for(third))


@pytest.mark.django_db
def test_choose_allocates_and_closes_the_cascade(registered_project):
    project, group, members, (first, second, third) = registered_project
    pass_project(project.pk, principal_for(first))

    choose(project.pk, principal_for(second), comments="Happy to supervise")

    project.refresh_from_db()
    assert project.allocation_status == Project.AllocationStatus.ALLOCATED
    assert project.allocated_faculty == second
    assert project.allocated_by == Project.AllocatedBy.FACULTY_CHOICE
    assert project.allocated_at is not None
    decisions = list(project.decisions.values_list("faculty_id", "decision"))
    assert decisions == [
        (first.pk, AllocationDecision.Decision.PASSED),
        (second.pk, AllocationDecision.Decision.CHOSEN),
    ]

    with pytest.raises(AlreadyResolved):
        choose(project.pk, principal_for(second))
    with pytest.raises(AlreadyResolved):
        pass_project(project.pk, principal_for(third))


@pytest.mark.django_db
def test_only_faculty_decide(registered_project):
    project, group, members, _ = registered_project

    with pytest.raises(NotAuthorized):
        choose(project.pk, principal_for(members[0]))
    with pytest.raises(NotCurrentPreference):
        pass_project(project.pk, principal_for(FacultyFactory()))


@pytest.mark.django_db(transaction=True)
def test_simultaneous_decisions_land_once(registered_project, run_concurrently):
    project, group, members, (first, second, third) = registered_project

    outcomes = run_concurrently(
        lambda: choose(project.pk, principal_for(first)),
        lambda: pass_project(project.pk, principal_for(first)),
    )

    landed = [outcome for outcome in outcomes if isinstance(outcome, Project)]
    refused = [outcome for outcome in outcomes if isinstance(outcome, Exception)]
    assert len(landed) == 1
    assert len(refused) == 1
    assert isinstance(refused[0], (AlreadyResolved, NotCurrentPreference))
    assert project.decisions.count() == 1


@pytest.mark.django_db
def test_force_allocate_after_exhaustion(registered_project, django_capture_on_commit_callbacks):
    project, group, members, panel = registered_project
    for faculty in panel:
        pass_project(project.pk, principal_for(faculty))
    outside = FacultyFactory()
    admin = AdminFactory()

    with django_capture_on_commit_callbacks(execute=True):
        force_allocate(project.pk, outside.pk, principal_for(admin))

    project.refresh_from_db()
    assert project.allocation_status == Project.AllocationStatus.MANUALLY_ALLOCATED
    assert project.allocated_by == Project.AllocatedBy.ADMIN_ALLOCATION
    assert project.allocated_faculty == outside
    assert project.allocated_by_admin == admin
    assert memory_transport.messages_for(f"faculty:{outside.pk}")[0]["type"] == "group_allocation"
    assert memory_transport.messages_for("admin")[0]["data"]["allocated_by"] == "admin_allocation"

    with pytest.raises(AlreadyResolved):
        force_allocate(project.pk, panel[0].pk, principal_for(admin))


@pytest.mark.django_db
def test_force_allocate_preempts_pending_cascade(registered_project):
    project, group, members, panel = registered_project

    force_allocate(project.pk, panel[2].pk, principal_for(AdminFactory()))

    with pytest.raises(AlreadyResolved):
        choose(project.pk, principal_for(panel[0]))


@pytest.mark.django_db
def test_force_allocate_checks_caller_and_target(registered_project):
    project, group, members, panel = registered_project

    with pytest.raises(NotAuthorized):
        force_allocate(project.pk, panel[0].pk, principal_for(panel[0]))
    with pytest.raises(InvalidInput):
        force_allocate(project.pk, StudentFactory().pk, principal_for(AdminFactory()))


@pytest.mark.django_db
def test_pending_decisions_follow_the_cursor(registered_project):
    project, group, members, (first, second, third) = registered_project

    assert list(pending_decisions_for(principal_for(first))) == [project]
    assert list(pending_decisions_for(principal_for(second))) == []

    pass_project(project.pk, principal_for(first))

    assert list(pending_decisions_for(principal_for(first))) == []
    assert list(pending_decisions_for(principal_for(second))) == [project]


@pytest.mark.django_db
def test_allocation_summary_reports_position(registered_project):
    project, group, members, (first, second, third) = registered_project
    pass_project(project.pk, principal_for(first))
    project.refresh_from_db()

    summary = allocation_summary(project, now=project.cursor_advanced_at + timedelta(minutes=5))

    assert summary["label"] == "Presented to faculty 2 of 3"
    assert summary["current_faculty_id"] == second.pk
    assert summary["decisions"] == 1
    assert summary["seconds_since_cursor_advanced"] == 300


@pytest.mark.django_db
def test_stalled_allocations_command(registered_project):
    project, *_ = registered_project
    Project.objects.filter(pk=project.pk).update(
        cursor_advanced_at=timezone.now() - timedelta(days=5)
    )
    out = StringIO()

    call_command("stalled_allocations", "--hours", "48", stdout=out)

    assert f"project={project.pk}" in out.getvalue()
    assert "1 stalled allocation(s)" in out.getvalue()


@pytest.mark.django_db
def test_registration_notifies_first_preference(build_group, faculty_panel, django_capture_on_commit_callbacks):
    group, members = build_group(size=4, finalize=True)

    with django_capture_on_commit_callbacks(execute=True):
        register_project(
            group.pk, principal_for(members[0]), "Title", "", [f.pk for f in faculty_panel]
        )

    assert [m["type"] for m in memory_transport.messages_for(f"faculty:{faculty_panel[0].pk}")] == [
        "allocation_request"
    ]
    assert memory_transport.messages_for(f"faculty:{faculty_panel[1].pk}") == []
    assert [m["type"] for m in memory_transport.messages_for(f"group:{group.pk}")] == [
        "project_registered"
    ]


@pytest.mark.django_db
def test_allocation_statistics_by_status_and_faculty(registered_project, build_group):
    project, group, members, (first, second, third) = registered_project
    choose(project.pk, principal_for(first))

    other_group, other_members = build_group(size=4, finalize=True)
    other = register_project(
        other_group.pk,
        principal_for(other_members[0]),
        "Library seat finder",
        "Web",
        [second.pk, third.pk, first.pk],
    )
    pass_project(other.pk, principal_for(second))

    stats = allocation_statistics(semester=5, academic_year="2025-26")

    assert stats["total_projects"] == 2
    assert stats["allocated_projects"] == 1
    assert stats["unallocated_projects"] == 1
    assert stats["allocation_rate"] == 50.0
    assert stats["by_status"]["allocated"] == 1
    assert stats["by_status"]["pending"] == 1
    assert stats["by_status"]["exhausted"] == 0
    assert stats["by_faculty"] == [
        {"faculty_id": first.pk, "faculty_name": first.display_name, "count": 1}
    ]
    assert allocation_statistics(semester=7)["total_projects"] == 0
    assert allocation_statistics(semester=7)["allocation_rate"] == 0.0
