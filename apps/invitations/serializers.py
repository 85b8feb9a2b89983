from rest_framework import serializers

from apps.invitations.models import Invitation
from apps.invitations.services import DECISIONS


class InvitationSerializer(serializers.ModelSerializer):
    group = serializers.SerializerMethodField()
    invitee = serializers.SerializerMethodField()
    invited_by = serializers.SerializerMethodField()
    status_display = serializers.CharField(source="get_status_display", read_only=True)

    class Meta:
        model = Invitation
        fields = [
            "id",
            "group",
            "invitee",
            "invited_by",
            "proposed_role",
            "status",
            "status_display",
            "resolution_code",
            "resolution_reason",
            "created_at",
            "resolved_at",
        ]
        read_only_fields = fields

    def get_group(self, obj: Invitation):
        group = obj.group
        return {
            "id": group.id,
            "name": group.name,
            "semester": group.semester,
            "status": group.status,
        }

    def _user(self, user):
        if user is None:
            return None
        return {"id": user.id, "username": user.username, "name": user.display_name}

    def get_invitee(self, obj: Invitation):
        return self._user(obj.invitee)

    def get_invited_by(self, obj: Invitation):
        return self._user(obj.invited_by)


class InvitationCreateSerializer(serializers.Serializer):
    group_id = serializers.IntegerField(min_value=1)
    invitee_id = serializers.IntegerField(min_value=1)
    role = serializers.CharField(required=False, default="member")


class InvitationRespondSerializer(serializers.Serializer):
    decision = serializers.ChoiceField(choices=DECISIONS)
