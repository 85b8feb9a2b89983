from rest_framework import serializers

from apps.projects.allocation import allocation_summary
from apps.projects.models import AllocationDecision, FacultyPreference, Project


class FacultyPreferenceSerializer(serializers.ModelSerializer):
    faculty_name = serializers.CharField(source="faculty.display_name", read_only=True)
    department = serializers.CharField(source="faculty.department", read_only=True)

    class Meta:
        model = FacultyPreference
        fields = ["rank", "faculty_id", "faculty_name", "department"]
        read_only_fields = fields


class AllocationDecisionSerializer(serializers.ModelSerializer):
    class Meta:
        model = AllocationDecision
        fields = ["rank", "faculty_id", "decision", "comments", "decided_at"]
        read_only_fields = fields


class ProjectSerializer(serializers.ModelSerializer):
    group = serializers.SerializerMethodField()
    preferences = FacultyPreferenceSerializer(many=True, read_only=True)
    allocation = serializers.SerializerMethodField()

    class Meta:
        model = Project
        fields = [
            "id",
            "title",
            "domain",
            "semester",
            "academic_year",
            "group",
            "registered_by_id",
            "preferences",
            "current_preference_index",
            "allocation_status",
            "allocated_faculty_id",
            "allocated_by",
            "allocated_at",
            "allocation",
            "created_at",
        ]
        read_only_fields = fields

    def get_group(self, obj: Project):
        return {"id": obj.group_id, "name": obj.group.name, "status": obj.group.status}

    def get_allocation(self, obj: Project):
        return allocation_summary(obj)


class ProjectDetailSerializer(ProjectSerializer):
    decisions = AllocationDecisionSerializer(many=True, read_only=True)

    class Meta(ProjectSerializer.Meta):
        fields = ProjectSerializer.Meta.fields + ["decisions", "allocated_by_admin_id", "cursor_advanced_at"]
        read_only_fields = fields


class ProjectRegisterSerializer(serializers.Serializer):
    group_id = serializers.IntegerField(min_value=1)
    title = serializers.CharField(max_length=200)
    domain = serializers.CharField(max_length=120, required=False, allow_blank=True, default="")
    faculty_preferences = serializers.ListField(
        child=serializers.IntegerField(min_value=1), allow_empty=False
    )


class DecisionSerializer(serializers.Serializer):
    comments = serializers.CharField(required=False, allow_blank=True, default="")


class ForceAllocateSerializer(serializers.Serializer):
    faculty_id = serializers.IntegerField(min_value=1)
