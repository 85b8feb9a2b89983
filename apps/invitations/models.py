from django.conf import settings
from django.db import models
from django.db.models import Q

from apps.common.models import TimeStampedModel
from apps.groups.models import Group, GroupMember


class Invitation(TimeStampedModel):
    """An offer from a group to a prospective member."""

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        ACCEPTED = "accepted", "Accepted"
        REJECTED = "rejected", "Rejected"
        AUTO_REJECTED = "auto_rejected", "Auto-rejected"

    class Reason(models.TextChoices):
        GROUP_FINALIZED = "group_finalized", "Group has been finalized"
        GROUP_FULL = "group_full", "Group is now full"
        GROUP_DISBANDED = "group_disbanded", "Group has been disbanded"
        JOINED_OTHER_GROUP = "joined_other_group", "Student joined another group"

    group = models.ForeignKey(
        Group,
        on_delete=models.CASCADE,
        related_name="invitations",
    )
    invitee = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="group_invitations",
    )
    invited_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="group_invitations_sent",
    )
    proposed_role = models.CharField(
        max_length=16,
        choices=GroupMember.Role.choices,
        default=GroupMember.Role.MEMBER,
    )
    status = models.CharField(
        max_length=16,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
    )
    resolved_at = models.DateTimeField(null=True, blank=True)
    resolution_code = models.CharField(
        max_length=32,
        choices=Reason.choices,
        null=True,
        blank=True,
    )
    resolution_reason = models.CharField(max_length=255, null=True, blank=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        constraints = [
            models.UniqueConstraint(
                fields=["group", "invitee"],
                condition=Q(status="pending"),
                name="one_pending_invitation_per_pair",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.group_id} -> {self.invitee_id} ({self.status})"

    @property
    def is_pending(self) -> bool:
        return self.status == self.Status.PENDING

    def stale_reason(self):
        """
        Reason a pending invitation can no longer be accepted, derived from the
        group state, or None while it is still valid.
        """
        if not self.is_pending:
            return None
        status = self.group.status
        if status == Group.Status.DISBANDED:
            return self.Reason.GROUP_DISBANDED
        if status in (Group.Status.FINALIZED, Group.Status.LOCKED):
            return self.Reason.GROUP_FINALIZED
        if self.group.is_full():
            return self.Reason.GROUP_FULL
        membership = self.invitee.get_active_membership(self.group.semester)
        if membership is not None and membership.group_id != self.group_id:
            return self.Reason.JOINED_OTHER_GROUP
        return None
