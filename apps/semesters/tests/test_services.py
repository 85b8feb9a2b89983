from datetime import date

import pytest

from apps.semesters.models import SemesterConfig
from apps.semesters.services import current_academic_year, get_formation_rules


@pytest.mark.django_db
def test_rules_fall_back_to_settings(settings):
    settings.GROUP_FORMATION_DEFAULTS = {"MIN_MEMBERS": 2, "MAX_MEMBERS": 3}

    rules = get_formation_rules(4)

    assert (rules.min_members, rules.max_members) == (2, 3)
    assert (rules.min_preferences, rules.max_preferences) == (3, 5)
    assert rules.allow_member_invites is False


@pytest.mark.django_db
def test_semester_row_overrides_defaults():
    SemesterConfig.objects.create(semester=5, min_members=3, max_preferences=7)

    rules = get_formation_rules(5)

    assert rules.min_members == 3
    assert rules.max_preferences == 7


def test_academic_year_from_settings():
    assert current_academic_year() == "2025-26"


def test_academic_year_rolls_over_in_july(settings):
    settings.ACADEMIC_YEAR = ""

    assert current_academic_year(date(2026, 6, 30)) == "2025-26"
    assert current_academic_year(date(2026, 7, 1)) == "2026-27"
