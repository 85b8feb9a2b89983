from django.core.validators import MinValueValidator
from django.db import models

from apps.common.models import TimeStampedModel


class SemesterConfig(TimeStampedModel):
    """Per-semester group formation and preference rules."""

    semester = models.PositiveSmallIntegerField(unique=True)
    min_members = models.PositiveSmallIntegerField(default=4, validators=[MinValueValidator(1)])
    max_members = models.PositiveSmallIntegerField(default=5, validators=[MinValueValidator(1)])
    min_preferences = models.PositiveSmallIntegerField(default=3, validators=[MinValueValidator(1)])
    max_preferences = models.PositiveSmallIntegerField(default=5, validators=[MinValueValidator(1)])
    allow_member_invites = models.BooleanField(
        default=False,
        help_text="Let non-leader members send invitations",
    )

    class Meta:
        ordering = ["semester"]

    def __str__(self) -> str:
        return f"Semester {self.semester} ({self.min_members}-{self.max_members} members)"
