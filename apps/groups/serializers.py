from rest_framework import serializers

from apps.groups.models import Group, GroupMember


def _user_brief(user):
    if user is None:
        return None
    return {
        "id": user.id,
        "username": user.username,
        "name": user.display_name,
        "email": user.email,
    }


class GroupMemberSerializer(serializers.ModelSerializer):
    student = serializers.SerializerMethodField()
    role_display = serializers.CharField(source="get_role_display", read_only=True)

    class Meta:
        model = GroupMember
        fields = [
            "id",
            "student",
            "role",
            "role_display",
            "is_active",
            "joined_at",
            "left_at",
        ]
        read_only_fields = fields

    def get_student(self, obj: GroupMember):
        return _user_brief(obj.student)


class GroupSerializer(serializers.ModelSerializer):
    leader = serializers.SerializerMethodField()
    members = serializers.SerializerMethodField()
    member_count = serializers.SerializerMethodField()
    available_slots = serializers.SerializerMethodField()
    my_role = serializers.SerializerMethodField()
    status_display = serializers.CharField(source="get_status_display", read_only=True)

    class Meta:
        model = Group
        fields = [
            "id",
            "name",
            "semester",
            "academic_year",
            "status",
            "status_display",
            "min_members",
            "max_members",
            "leader",
            "members",
            "member_count",
            "available_slots",
            "my_role",
            "finalized_at",
            "locked_at",
            "disbanded_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def _active_members(self, obj: Group):
        return [member for member in obj.members.all() if member.is_active]

    def get_leader(self, obj: Group):
        return _user_brief(obj.leader)

    def get_members(self, obj: Group):
        return GroupMemberSerializer(self._active_members(obj), many=True).data

    def get_member_count(self, obj: Group) -> int:
        return len(self._active_members(obj))

    def get_available_slots(self, obj: Group) -> int:
        return max(obj.max_members - len(self._active_members(obj)), 0)

    def get_my_role(self, obj: Group):
        request = self.context.get("request")
        if not request or not request.user.is_authenticated:
            return None
        for member in self._active_members(obj):
            if member.student_id == request.user.id:
                return member.role
        return None


class GroupCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=120, required=False, allow_blank=True, default="")
    semester = serializers.IntegerField(required=False, min_value=1, max_value=12)
    academic_year = serializers.RegexField(r"^\d{4}-\d{2}$", required=False)


class MemberTargetSerializer(serializers.Serializer):
    student_id = serializers.IntegerField(min_value=1)
