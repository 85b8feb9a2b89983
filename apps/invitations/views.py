from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from apps.common.permissions import IsStudent
from apps.common.principals import principal_for
from apps.invitations import services
from apps.invitations.models import Invitation
from apps.invitations.serializers import (
    InvitationCreateSerializer,
    InvitationRespondSerializer,
    InvitationSerializer,
)


class InvitationViewSet(viewsets.ViewSet):
    permission_classes = [IsAuthenticated, IsStudent]
    lookup_value_regex = r"\d+"

    def list(self, request):
        status_param = request.query_params.get("status")
        if status_param and status_param not in Invitation.Status.values:
            status_param = None
        queryset = services.received_invitations(principal_for(request.user), status=status_param)
        return Response(InvitationSerializer(queryset, many=True).data)

    def create(self, request):
        serializer = InvitationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        invitation = services.create_invitation(
            data["group_id"],
            data["invitee_id"],
            principal_for(request.user),
            role=data["role"],
        )
        return Response(InvitationSerializer(invitation).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], url_path="respond")
    def respond(self, request, pk=None):
        serializer = InvitationRespondSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        invitation = services.respond(
            int(pk), principal_for(request.user), serializer.validated_data["decision"]
        )
        invitation.refresh_from_db()
        return Response(InvitationSerializer(invitation).data)
