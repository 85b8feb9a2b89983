import threading

import pytest
from django.db import connections
from rest_framework.test import APIClient

from apps.common.principals import principal_for
from apps.groups.services import create_group, finalize_group
from apps.invitations.services import ACCEPT, create_invitation, respond
from apps.notifications.transports import memory_transport
from apps.projects.services import register_project
from apps.users.tests.factories import FacultyFactory, StudentFactory


@pytest.fixture(autouse=True)
def engine_settings(settings):
    settings.ACADEMIC_YEAR = "2025-26"
    settings.GROUP_FORMATION_DEFAULTS = {
        "MIN_MEMBERS": 4,
        "MAX_MEMBERS": 5,
        "MIN_PREFERENCES": 3,
        "MAX_PREFERENCES": 5,
        "ALLOW_MEMBER_INVITES": False,
    }
    settings.REALTIME = {
        "TRANSPORT": "apps.notifications.transports.InMemoryTransport",
        "GATEWAY_URL": "",
        "GATEWAY_TOKEN": "",
        "TIMEOUT": 1,
        "RETRIES": 0,
    }
    memory_transport.clear()
    yield settings
    memory_transport.clear()


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def build_group(db):
    """Create a group of ``size`` active students (the first one leads)."""

    def _build(size=4, semester=5, finalize=False):
        leader = StudentFactory(semester=semester)
        group = create_group(principal_for(leader))
        members = [leader]
        for _ in range(size - 1):
            student = StudentFactory(semester=semester)
            invitation = create_invitation(group.pk, student.pk, principal_for(leader))
            respond(invitation.pk, principal_for(student), ACCEPT)
            members.append(student)
        if finalize:
            finalize_group(group.pk, principal_for(leader))
        group.refresh_from_db()
        return group, members

    return _build


@pytest.fixture
def faculty_panel(db):
    return FacultyFactory.create_batch(3)


@pytest.fixture
def registered_project(build_group, faculty_panel):
    group, members = build_group(size=4, finalize=True)
    project = register_project(
        group.pk,
        principal_for(members[0]),
        "Campus energy dashboard",
        "IoT",
        [faculty.pk for faculty in faculty_panel],
    )
    return project, group, members, faculty_panel


@pytest.fixture
def run_concurrently():
    """Start each callable in its own thread, release them together and collect outcomes.

    An outcome is the callable's return value or the exception it raised.
    """

    def _run(*calls):
        barrier = threading.Barrier(len(calls))
        outcomes = [None] * len(calls)

        def worker(index, call):
            try:
                barrier.wait(timeout=10)
                outcomes[index] = call()
            except Exception as exc:
                outcomes[index] = exc
            finally:
                connections.close_all()

        threads = [threading.Thread(target=worker, args=(i, call)) for i, call in enumerate(calls)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)
        return outcomes

    return _run
