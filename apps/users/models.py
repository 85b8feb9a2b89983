from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    class Role(models.TextChoices):
        STUDENT = "student", "Student"
        FACULTY = "faculty", "Faculty"
        ADMIN = "admin", "Admin"

    email = models.EmailField(unique=True, null=True, blank=True)
    role = models.CharField(
        max_length=16,
        choices=Role.choices,
        default=Role.STUDENT,
        db_index=True,
    )
    semester = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        help_text="Current semester (students only)",
    )
    department = models.CharField(max_length=120, blank=True)

    def __str__(self):
        return f"{self.username} ({self.email})" if self.email else self.username

    @property
    def display_name(self) -> str:
        return self.get_full_name() or self.username

    def get_active_membership(self, semester: int):
        """Return the active group membership for the semester (or None)."""
        from apps.groups.models import Group

        return (
            self.group_memberships.filter(
                is_active=True,
                group__semester=semester,
            )
            .exclude(group__status=Group.Status.DISBANDED)
            .select_related("group")
            .first()
        )
