from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone

from apps.common.models import TimeStampedModel


class Group(TimeStampedModel):
    """A set of students collaborating on one project within one semester."""

    class Status(models.TextChoices):
        FORMING = "forming", "Forming"
        OPEN = "open", "Open"
        FINALIZED = "finalized", "Finalized"
        LOCKED = "locked", "Locked"
        DISBANDED = "disbanded", "Disbanded"

    ACCEPTING_STATUSES = (Status.FORMING, Status.OPEN)

    name = models.CharField(max_length=120, blank=True)
    semester = models.PositiveSmallIntegerField(db_index=True)
    academic_year = models.CharField(max_length=9, db_index=True)
    status = models.CharField(
        max_length=16,
        choices=Status.choices,
        default=Status.FORMING,
        db_index=True,
    )
    min_members = models.PositiveSmallIntegerField()
    max_members = models.PositiveSmallIntegerField()
    leader = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="led_groups",
    )
    finalized_at = models.DateTimeField(null=True, blank=True)
    locked_at = models.DateTimeField(null=True, blank=True)
    disbanded_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at", "id"]
        indexes = [models.Index(fields=["semester", "status"], name="group_semester_status_idx")]

    def __str__(self) -> str:
        return self.name or f"Group {self.pk}"

    @property
    def is_accepting_members(self) -> bool:
        return self.status in self.ACCEPTING_STATUSES

    def active_members(self):
        return self.members.filter(is_active=True)

    def active_member_count(self) -> int:
        return self.active_members().count()

    def is_full(self) -> bool:
        return self.active_member_count() >= self.max_members

    def available_slots(self) -> int:
        return max(self.max_members - self.active_member_count(), 0)

    def get_active_member(self, student_id: int):
        return self.active_members().filter(student_id=student_id).first()

    def add_member(self, student, role: str = "member") -> "GroupMember":
        """
        Activate ``student`` in this group. Callers hold the group row lock and
        have already checked capacity.
        """
        now = timezone.now()
        member, created = GroupMember.objects.get_or_create(
            group=self,
            student=student,
            defaults={"role": role, "is_active": True, "joined_at": now},
        )
        if not created:
            member.role = role
            member.is_active = True
            member.joined_at = now
            member.left_at = None
            member.save(update_fields=["role", "is_active", "joined_at", "left_at", "updated_at"])

        if self.status == self.Status.FORMING and self.active_member_count() >= self.min_members:
            self.status = self.Status.OPEN
            self.save(update_fields=["status", "updated_at"])
        return member


class GroupMember(TimeStampedModel):
    """Student membership and role within a group."""

    class Role(models.TextChoices):
        LEADER = "leader", "Leader"
        MEMBER = "member", "Member"

    group = models.ForeignKey(
        Group,
        on_delete=models.CASCADE,
        related_name="members",
    )
    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="group_memberships",
    )
    role = models.CharField(
        max_length=16,
        choices=Role.choices,
        default=Role.MEMBER,
    )
    is_active = models.BooleanField(default=True, db_index=True)
    joined_at = models.DateTimeField(default=timezone.now)
    left_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["joined_at", "id"]
        constraints = [
            models.UniqueConstraint(fields=["group", "student"], name="unique_group_student"),
            models.UniqueConstraint(
                fields=["group"],
                condition=Q(role="leader", is_active=True),
                name="one_active_leader_per_group",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.student_id} -> {self.group_id} ({self.role})"
