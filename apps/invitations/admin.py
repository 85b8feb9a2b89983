from django.contrib import admin

from apps.invitations.models import Invitation


@admin.register(Invitation)
class InvitationAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "group",
        "invitee",
        "invited_by",
        "status",
        "resolution_code",
        "created_at",
        "resolved_at",
    )
    list_filter = ("status", "resolution_code", "group__semester")
    search_fields = ("group__name", "invitee__username", "invitee__email")
    autocomplete_fields = ("group", "invitee", "invited_by")
    readonly_fields = ("resolved_at", "resolution_code", "resolution_reason")
