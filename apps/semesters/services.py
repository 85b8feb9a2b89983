from dataclasses import dataclass
from datetime import date
from typing import Optional

from django.conf import settings
from django.utils import timezone

from apps.semesters.models import SemesterConfig


@dataclass(frozen=True)
class FormationRules:
    semester: int
    min_members: int
    max_members: int
    min_preferences: int
    max_preferences: int
    allow_member_invites: bool = False


def _defaults() -> dict:
    return getattr(settings, "GROUP_FORMATION_DEFAULTS", {}) or {}


def get_formation_rules(semester: int) -> FormationRules:
    config = SemesterConfig.objects.filter(semester=semester).first()
    if config is not None:
        return FormationRules(
            semester=semester,
            min_members=config.min_members,
            max_members=config.max_members,
            min_preferences=config.min_preferences,
            max_preferences=config.max_preferences,
            allow_member_invites=config.allow_member_invites,
        )

    defaults = _defaults()
    return FormationRules(
        semester=semester,
        min_members=int(defaults.get("MIN_MEMBERS", 4)),
        max_members=int(defaults.get("MAX_MEMBERS", 5)),
        min_preferences=int(defaults.get("MIN_PREFERENCES", 3)),
        max_preferences=int(defaults.get("MAX_PREFERENCES", 5)),
        allow_member_invites=bool(defaults.get("ALLOW_MEMBER_INVITES", False)),
    )


def current_academic_year(today: Optional[date] = None) -> str:
    """Return the configured academic year or derive ``YYYY-YY`` from today."""
    configured = getattr(settings, "ACADEMIC_YEAR", "")
    if configured:
        return configured
    today = today or timezone.localdate()
    start = today.year if today.month >= 7 else today.year - 1
    return f"{start}-{str(start + 1)[-2:]}"
