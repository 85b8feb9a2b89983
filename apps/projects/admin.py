from django.contrib import admin

from apps.projects.models import AllocationDecision, FacultyPreference, Project


class FacultyPreferenceInline(admin.TabularInline):
    model = FacultyPreference
    extra = 0
    fields = ("rank", "faculty")
    readonly_fields = ("rank", "faculty")
    can_delete = False


class AllocationDecisionInline(admin.TabularInline):
    model = AllocationDecision
    extra = 0
    fields = ("rank", "faculty", "decision", "comments", "decided_at")
    readonly_fields = fields
    can_delete = False


@admin.register(Project)
class ProjectAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "title",
        "group",
        "semester",
        "academic_year",
        "allocation_status",
        "current_preference_index",
        "allocated_faculty",
        "allocated_by",
        "cursor_advanced_at",
    )
    list_filter = ("allocation_status", "allocated_by", "semester", "academic_year")
    search_fields = ("title", "domain", "group__name")
    readonly_fields = (
        "current_preference_index",
        "allocation_status",
        "allocated_faculty",
        "allocated_by",
        "allocated_at",
        "allocated_by_admin",
        "cursor_advanced_at",
    )
    inlines = [FacultyPreferenceInline, AllocationDecisionInline]
