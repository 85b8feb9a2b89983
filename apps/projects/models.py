from django.conf import settings
from django.db import models

from apps.common.models import TimeStampedModel
from apps.groups.models import Group


class Project(TimeStampedModel):
    """A finalized group's registered project and the state of its allocation cascade."""

    class AllocationStatus(models.TextChoices):
        PENDING = "pending", "Pending"
        ALLOCATED = "allocated", "Allocated"
        EXHAUSTED = "exhausted", "Exhausted"
        MANUALLY_ALLOCATED = "manually_allocated", "Manually allocated"

    class AllocatedBy(models.TextChoices):
        FACULTY_CHOICE = "faculty_choice", "Faculty choice"
        ADMIN_ALLOCATION = "admin_allocation", "Admin allocation"

    TERMINAL_STATUSES = (AllocationStatus.ALLOCATED, AllocationStatus.MANUALLY_ALLOCATED)

    group = models.OneToOneField(
        Group,
        on_delete=models.PROTECT,
        related_name="project",
    )
    title = models.CharField(max_length=200)
    domain = models.CharField(max_length=120, blank=True)
    semester = models.PositiveSmallIntegerField(db_index=True)
    academic_year = models.CharField(max_length=9, db_index=True)
    registered_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="registered_projects",
    )

    current_preference_index = models.PositiveSmallIntegerField(default=0)
    allocation_status = models.CharField(
        max_length=24,
        choices=AllocationStatus.choices,
        default=AllocationStatus.PENDING,
        db_index=True,
    )
    allocated_faculty = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="allocated_projects",
    )
    allocated_by = models.CharField(
        max_length=24,
        choices=AllocatedBy.choices,
        null=True,
        blank=True,
    )
    allocated_at = models.DateTimeField(null=True, blank=True)
    allocated_by_admin = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="manual_allocations",
    )
    cursor_advanced_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self) -> str:
        return self.title

    @property
    def is_pending(self) -> bool:
        return self.allocation_status == self.AllocationStatus.PENDING

    def ranked_faculty_ids(self):
        return list(self.preferences.order_by("rank").values_list("faculty_id", flat=True))

    def preference_count(self) -> int:
        return self.preferences.count()

    def current_preference(self):
        """The preference the cursor points at, or None once the list is exhausted."""
        return self.preferences.filter(rank=self.current_preference_index + 1).first()


class FacultyPreference(TimeStampedModel):
    project = models.ForeignKey(
        Project,
        on_delete=models.CASCADE,
        related_name="preferences",
    )
    faculty = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="project_preferences",
    )
    rank = models.PositiveSmallIntegerField()

    class Meta:
        ordering = ["rank", "id"]
        constraints = [
            models.UniqueConstraint(fields=["project", "rank"], name="unique_project_rank"),
            models.UniqueConstraint(fields=["project", "faculty"], name="unique_project_faculty"),
        ]

    def __str__(self) -> str:
        return f"{self.project_id} #{self.rank} -> {self.faculty_id}"


class AllocationDecision(models.Model):
    """Append-only log of faculty responses in the cascade."""

    class Decision(models.TextChoices):
        CHOSEN = "chosen", "Chosen"
        PASSED = "passed", "Passed"

    project = models.ForeignKey(
        Project,
        on_delete=models.CASCADE,
        related_name="decisions",
    )
    faculty = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="allocation_decisions",
    )
    rank = models.PositiveSmallIntegerField()
    decision = models.CharField(max_length=16, choices=Decision.choices)
    comments = models.TextField(blank=True)
    decided_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["decided_at", "id"]

    def __str__(self) -> str:
        return f"{self.project_id}: {self.faculty_id} {self.decision}"
