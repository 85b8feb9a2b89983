from django.contrib import admin

from apps.semesters.models import SemesterConfig


@admin.register(SemesterConfig)
class SemesterConfigAdmin(admin.ModelAdmin):
    list_display = (
        "semester",
        "min_members",
        "max_members",
        "min_preferences",
        "max_preferences",
        "allow_member_invites",
        "updated_at",
    )
