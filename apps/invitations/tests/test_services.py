import pytest
from django.core.management import call_command

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
from apps.common.principals import principal_for
from apps.groups.models import Group
from apps.groups.services import create_group
from apps.invitations.models import Invitation
from apps.invitations.services import (
    ACCEPT,
    REJECT,
    create_invitation,
    group_invitations,
    received_invitations,
    respond,
)
from apps.semesters.models import SemesterConfig
from apps.users.tests.factories import AdminFactory, FacultyFactory, StudentFactory


@pytest.mark.django_db
def test_leader_invites_student(build_group):
    group, members = build_group(size=1)
    invitee = StudentFactory()

    invitation = create_invitation(group.pk, invitee.pk, principal_for(members[0]))

    assert invitation.status == Invitation.Status.PENDING
    assert invitation.invited_by == members[0]
    assert invitation.proposed_role == "member"
    assert invitation.resolution_code is None


@pytest.mark.django_db
def test_duplicate_pending_invitation_is_rejected(build_group):
    group, members = build_group(size=1)
    invitee = StudentFactory()
    create_invitation(group.pk, invitee.pk, principal_for(members[0]))

    with pytest.raises(DuplicatePending):
        create_invitation(group.pk, invitee.pk, principal_for(members[0]))


@pytest.mark.django_db
def test_reinvite_after_rejection_is_allowed(build_group):
    group, members = build_group(size=1)
    invitee = StudentFactory()
    first = create_invitation(group.pk, invitee.pk, principal_for(members[0]))
    respond(first.pk, principal_for(invitee), REJECT)

    second = create_invitation(group.pk, invitee.pk, principal_for(members[0]))

    assert second.pk != first.pk
    assert second.status == Invitation.Status.PENDING


@pytest.mark.django_db
def test_invitee_already_in_a_group_cannot_be_invited(build_group):
    group, members = build_group(size=1)
    other_group, other_members = build_group(size=2)

    with pytest.raises(AlreadyMember):
        create_invitation(group.pk, other_members[1].pk, principal_for(members[0]))
    with pytest.raises(AlreadyMember):
        create_invitation(other_group.pk, other_members[1].pk, principal_for(other_members[0]))


@pytest.mark.django_db
def test_only_students_of_the_same_semester_can_be_invited(build_group):
    group, members = build_group(size=1, semester=5)

    with pytest.raises(InvalidInput):
        create_invitation(group.pk, FacultyFactory().pk, principal_for(members[0]))
    with pytest.raises(InvalidInput):
        create_invitation(group.pk, StudentFactory(semester=7).pk, principal_for(members[0]))
    with pytest.raises(InvalidInput):
        create_invitation(group.pk, StudentFactory().pk, principal_for(members[0]), role="leader")
    with pytest.raises(NotFound):
        create_invitation(group.pk, 999999, principal_for(members[0]))


@pytest.mark.django_db
def test_member_invites_depend_on_semester_config(build_group):
    group, members = build_group(size=2)

    with pytest.raises(NotAuthorized):
        create_invitation(group.pk, StudentFactory().pk, principal_for(members[1]))

    SemesterConfig.objects.create(semester=5, allow_member_invites=True)
    invitation = create_invitation(group.pk, StudentFactory().pk, principal_for(members[1]))
    assert invitation.invited_by == members[1]


@pytest.mark.django_db
def test_outsider_cannot_invite(build_group):
    group, _ = build_group(size=1)

    with pytest.raises(NotAuthorized):
        create_invitation(group.pk, StudentFactory().pk, principal_for(StudentFactory()))


@pytest.mark.django_db
def test_full_group_cannot_invite(build_group):
    group, members = build_group(size=5)

    with pytest.raises(GroupFull):
        create_invitation(group.pk, StudentFactory().pk, principal_for(members[0]))


@pytest.mark.django_db
def test_respond_checks_invitee(build_group):
    group, members = build_group(size=1)
    invitation = create_invitation(group.pk, StudentFactory().pk, principal_for(members[0]))

    with pytest.raises(NotForYou):
        respond(invitation.pk, principal_for(StudentFactory()), ACCEPT)
    with pytest.raises(NotFound):
        respond(999999, principal_for(members[0]), ACCEPT)
    with pytest.raises(InvalidInput):
        respond(invitation.pk, principal_for(members[0]), "maybe")


@pytest.mark.django_db
def test_resolved_invitation_cannot_be_answered_again(build_group):
    group, members = build_group(size=1)
    invitee = StudentFactory()
    invitation = create_invitation(group.pk, invitee.pk, principal_for(members[0]))
    respond(invitation.pk, principal_for(invitee), REJECT)

    with pytest.raises(AlreadyResolved):
        respond(invitation.pk, principal_for(invitee), ACCEPT)
    with pytest.raises(AlreadyResolved):
        respond(invitation.pk, principal_for(invitee), REJECT)


@pytest.mark.django_db
def test_accept_adds_member_and_clears_other_offers(build_group):
    group_a, members_a = build_group(size=1)
    group_b, members_b = build_group(size=1)
    invitee = StudentFactory()
    offer_a = create_invitation(group_a.pk, invitee.pk, principal_for(members_a[0]))
    offer_b = create_invitation(group_b.pk, invitee.pk, principal_for(members_b[0]))

    respond(offer_a.pk, principal_for(invitee), ACCEPT)

    offer_a.refresh_from_db()
    offer_b.refresh_from_db()
    assert offer_a.status == Invitation.Status.ACCEPTED
    assert group_a.get_active_member(invitee.pk) is not None
    assert offer_b.status == Invitation.Status.AUTO_REJECTED
    assert offer_b.resolution_code == Invitation.Reason.JOINED_OTHER_GROUP


@pytest.mark.django_db
def test_last_slot_goes_to_first_acceptance(build_group):
    group, members = build_group(size=4)
    first, second = StudentFactory(), StudentFactory()
    offer_first = create_invitation(group.pk, first.pk, principal_for(members[0]))
    offer_second = create_invitation(group.pk, second.pk, principal_for(members[0]))

    respond(offer_first.pk, principal_for(first), ACCEPT)
    with pytest.raises(GroupFull):
        respond(offer_second.pk, principal_for(second), ACCEPT)

    group.refresh_from_db()
    offer_second.refresh_from_db()
    assert group.active_member_count() == group.max_members
    assert offer_second.status == Invitation.Status.AUTO_REJECTED
    assert offer_second.resolution_code == Invitation.Reason.GROUP_FULL


@pytest.mark.django_db(transaction=True)
def test_simultaneous_accepts_for_last_slot(build_group, run_concurrently):
    group, members = build_group(size=4)
    first, second = StudentFactory(), StudentFactory()
    offer_first = create_invitation(group.pk, first.pk, principal_for(members[0]))
    offer_second = create_invitation(group.pk, second.pk, principal_for(members[0]))

    outcomes = run_concurrently(
        lambda: respond(offer_first.pk, principal_for(first), ACCEPT),
        lambda: respond(offer_second.pk, principal_for(second), ACCEPT),
    )

    accepted = [outcome for outcome in outcomes if isinstance(outcome, Invitation)]
    rejected = [outcome for outcome in outcomes if isinstance(outcome, Exception)]
    assert len(accepted) == 1
    assert len(rejected) == 1
    assert isinstance(rejected[0], GroupFull)
    assert group.active_member_count() == group.max_members
    assert Invitation.objects.filter(group=group, status=Invitation.Status.PENDING).count() == 0


@pytest.mark.django_db
def test_accept_over_capacity_leaves_invitation_pending(build_group):
    group, members = build_group(size=4)
    invitee = StudentFactory()
    invitation = create_invitation(group.pk, invitee.pk, principal_for(members[0]))
    # Another acceptance commits before the fullness sweep has run
    group.add_member(StudentFactory())

    with pytest.raises(GroupFull):
        respond(invitation.pk, principal_for(invitee), ACCEPT)

    invitation.refresh_from_db()
    assert invitation.status == Invitation.Status.PENDING
    assert group.active_member_count() == 5


@pytest.mark.django_db
def test_accept_for_closed_group_reconciles_invitation(build_group):
    group, members = build_group(size=4)
    invitee = StudentFactory()
    invitation = create_invitation(group.pk, invitee.pk, principal_for(members[0]))
    Group.objects.filter(pk=group.pk).update(status=Group.Status.FINALIZED)

    with pytest.raises(GroupNotOpen):
        respond(invitation.pk, principal_for(invitee), ACCEPT)

    invitation.refresh_from_db()
    assert invitation.status == Invitation.Status.AUTO_REJECTED
    assert invitation.resolution_code == Invitation.Reason.GROUP_FINALIZED
    assert group.get_active_member(invitee.pk) is None


@pytest.mark.django_db
def test_received_invitations_reconciles_stale_entries(build_group):
    group, members = build_group(size=2)
    invitee = StudentFactory()
    invitation = create_invitation(group.pk, invitee.pk, principal_for(members[0]))
    Group.objects.filter(pk=group.pk).update(status=Group.Status.DISBANDED)

    received = list(received_invitations(principal_for(invitee)))

    assert [item.pk for item in received] == [invitation.pk]
    assert received[0].status == Invitation.Status.AUTO_REJECTED
    assert received[0].resolution_code == Invitation.Reason.GROUP_DISBANDED
    assert list(received_invitations(principal_for(invitee), status="pending")) == []


@pytest.mark.django_db
def test_group_invitations_visible_to_members_and_admins(build_group):
    group, members = build_group(size=2)
    create_invitation(group.pk, StudentFactory().pk, principal_for(members[0]))

    pending = Invitation.Status.PENDING
    # build_group already accepted one invitation for members[1]
    assert group_invitations(group.pk, principal_for(members[1])).count() == 2
    assert group_invitations(group.pk, principal_for(members[1])).filter(status=pending).count() == 1
    assert group_invitations(group.pk, principal_for(AdminFactory())).filter(status=pending).count() == 1
    with pytest.raises(NotAuthorized):
        group_invitations(group.pk, principal_for(StudentFactory()))


@pytest.mark.django_db
def test_reconcile_command_resolves_stale_invitations(build_group):
    group, members = build_group(size=2)
    invitation = create_invitation(group.pk, StudentFactory().pk, principal_for(members[0]))
    Group.objects.filter(pk=group.pk).update(status=Group.Status.FINALIZED)

    call_command("reconcile_invitations")
    call_command("reconcile_invitations")

    invitation.refresh_from_db()
    assert invitation.status == Invitation.Status.AUTO_REJECTED
    assert Invitation.objects.filter(status=Invitation.Status.AUTO_REJECTED).count() == 1


@pytest.mark.django_db
def test_invitee_joining_own_group_elsewhere_invalidates_offer():
    leader = StudentFactory()
    group = create_group(principal_for(leader))
    invitee = StudentFactory()
    invitation = create_invitation(group.pk, invitee.pk, principal_for(leader))

    create_group(principal_for(invitee))

    assert invitation.stale_reason() == Invitation.Reason.JOINED_OTHER_GROUP
