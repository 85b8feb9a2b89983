from django.contrib import admin

from apps.groups.models import Group, GroupMember


class GroupMemberInline(admin.TabularInline):
    model = GroupMember
    extra = 0
    fields = ("student", "role", "is_active", "joined_at", "left_at")
    readonly_fields = ("joined_at", "left_at")
    autocomplete_fields = ("student",)


@admin.register(Group)
class GroupAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "name",
        "semester",
        "academic_year",
        "status",
        "leader",
        "min_members",
        "max_members",
        "created_at",
    )
    list_filter = ("status", "semester", "academic_year")
    search_fields = ("name", "leader__username", "leader__email")
    autocomplete_fields = ("leader",)
    inlines = [GroupMemberInline]


@admin.register(GroupMember)
class GroupMemberAdmin(admin.ModelAdmin):
    list_display = ("id", "group", "student", "role", "is_active", "joined_at", "left_at")
    list_filter = ("role", "is_active", "group__semester")
    search_fields = ("group__name", "student__username", "student__email")
    autocomplete_fields = ("group", "student")
