from django.contrib.auth import get_user_model
from rest_framework import serializers

from apps.common.principals import Admin, Faculty, principal_for
from apps.groups.models import GroupMember

User = get_user_model()


class ActiveMembershipSerializer(serializers.ModelSerializer):
    group_id = serializers.IntegerField(read_only=True)
    group_name = serializers.CharField(source="group.name", read_only=True)
    group_status = serializers.CharField(source="group.status", read_only=True)
    semester = serializers.IntegerField(source="group.semester", read_only=True)

    class Meta:
        model = GroupMember
        fields = ["group_id", "group_name", "group_status", "semester", "role", "joined_at"]


class UserSerializer(serializers.ModelSerializer):
    name = serializers.CharField(source="display_name", read_only=True)
    principal = serializers.SerializerMethodField()
    memberships = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "name",
            "role",
            "principal",
            "semester",
            "department",
            "memberships",
        ]
        read_only_fields = fields

    def get_principal(self, obj) -> str:
        principal = principal_for(obj)
        if isinstance(principal, Admin):
            return "admin"
        if isinstance(principal, Faculty):
            return "faculty"
        return "student"

    def get_memberships(self, obj):
        memberships = obj.group_memberships.filter(is_active=True).select_related("group")
        return ActiveMembershipSerializer(memberships, many=True).data
