from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from apps.common.principals import principal_for
from apps.groups import services
from apps.groups.serializers import (
    GroupCreateSerializer,
    GroupMemberSerializer,
    GroupSerializer,
    MemberTargetSerializer,
)
from apps.invitations.serializers import InvitationSerializer
from apps.invitations.services import group_invitations


class GroupViewSet(viewsets.ViewSet):
    """
    Group aggregate. Reads return the caller's groups (all groups for admins);
    every write goes through ``apps.groups.services``.
    """

    permission_classes = [IsAuthenticated]
    lookup_value_regex = r"\d+"

    def _render(self, group, status_code=status.HTTP_200_OK):
        group = services.get_group(group.pk)
        serializer = GroupSerializer(group, context={"request": self.request})
        return Response(serializer.data, status=status_code)

    def list(self, request):
        semester = request.query_params.get("semester")
        queryset = services.groups_for(
            principal_for(request.user),
            semester=int(semester) if semester and semester.isdigit() else None,
        )
        serializer = GroupSerializer(queryset, many=True, context={"request": request})
        return Response(serializer.data)

    def retrieve(self, request, pk=None):
        group = services.visible_group(int(pk), principal_for(request.user))
        return self._render(group)

    def create(self, request):
        serializer = GroupCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        group = services.create_group(principal_for(request.user), **serializer.validated_data)
        return self._render(group, status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], url_path="finalize")
    def finalize(self, request, pk=None):
        group = services.finalize_group(int(pk), principal_for(request.user))
        return self._render(group)

    @action(detail=True, methods=["post"], url_path="disband")
    def disband(self, request, pk=None):
        group = services.disband_group(int(pk), principal_for(request.user))
        return self._render(group)

    @action(detail=True, methods=["post"], url_path="leave")
    def leave(self, request, pk=None):
        member = services.leave_group(int(pk), principal_for(request.user))
        return Response(GroupMemberSerializer(member).data)

    @action(detail=True, methods=["post"], url_path="remove-member")
    def remove_member(self, request, pk=None):
        serializer = MemberTargetSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        member = services.remove_member(
            int(pk), principal_for(request.user), serializer.validated_data["student_id"]
        )
        return Response(GroupMemberSerializer(member).data)

    @action(detail=True, methods=["post"], url_path="transfer-leadership")
    def transfer_leadership(self, request, pk=None):
        serializer = MemberTargetSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        group = services.transfer_leadership(
            int(pk), principal_for(request.user), serializer.validated_data["student_id"]
        )
        return self._render(group)

    @action(detail=True, methods=["get"], url_path="invitations")
    def invitations(self, request, pk=None):
        queryset = group_invitations(int(pk), principal_for(request.user))
        status_param = request.query_params.get("status")
        if status_param:
            queryset = queryset.filter(status=status_param)
        return Response(InvitationSerializer(queryset, many=True).data)
