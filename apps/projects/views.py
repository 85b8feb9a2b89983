from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.common.permissions import IsAdminRole, IsFaculty
from apps.common.principals import principal_for
from apps.projects import allocation
from apps.projects.filters import ProjectFilter
from apps.projects.serializers import (
    DecisionSerializer,
    ForceAllocateSerializer,
    ProjectDetailSerializer,
    ProjectRegisterSerializer,
    ProjectSerializer,
)
from apps.projects.services import register_project


class ProjectViewSet(viewsets.GenericViewSet):
    serializer_class = ProjectSerializer
    permission_classes = [IsAuthenticated]
    lookup_value_regex = r"\d+"
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    filterset_class = ProjectFilter
    search_fields = ["title", "domain", "group__name"]
    ordering_fields = ["created_at", "cursor_advanced_at", "id"]
    ordering = ["-created_at", "-id"]

    def get_queryset(self):
        return allocation.projects_for(principal_for(self.request.user))

    def _detail(self, project, status_code=status.HTTP_200_OK):
        return Response(ProjectDetailSerializer(project).data, status=status_code)

    def list(self, request):
        queryset = self.filter_queryset(self.get_queryset())
        return Response(ProjectSerializer(queryset, many=True).data)

    def retrieve(self, request, pk=None):
        project = allocation.visible_project(int(pk), principal_for(request.user))
        return Response(ProjectDetailSerializer(project).data)

    def create(self, request):
        serializer = ProjectRegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        project = register_project(
            data["group_id"],
            principal_for(request.user),
            data["title"],
            data["domain"],
            data["faculty_preferences"],
        )
        return self._detail(project, status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], url_path="choose")
    def choose(self, request, pk=None):
        serializer = DecisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        project = allocation.choose(
            int(pk), principal_for(request.user), serializer.validated_data["comments"]
        )
        return self._detail(project)

    @action(detail=True, methods=["post"], url_path="pass", url_name="pass")
    def pass_project(self, request, pk=None):
        serializer = DecisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        project = allocation.pass_project(
            int(pk), principal_for(request.user), serializer.validated_data["comments"]
        )
        return self._detail(project)

    @action(
        detail=True,
        methods=["post"],
        url_path="force-allocate",
        permission_classes=[IsAuthenticated, IsAdminRole],
    )
    def force_allocate(self, request, pk=None):
        serializer = ForceAllocateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        project = allocation.force_allocate(
            int(pk), serializer.validated_data["faculty_id"], principal_for(request.user)
        )
        return self._detail(project)

    @action(
        detail=False,
        methods=["get"],
        url_path="statistics",
        permission_classes=[IsAuthenticated, IsAdminRole],
    )
    def statistics(self, request):
        semester = request.query_params.get("semester")
        data = allocation.allocation_statistics(
            semester=int(semester) if semester and semester.isdigit() else None,
            academic_year=request.query_params.get("academic_year") or None,
        )
        return Response(data)


class PendingDecisionsAPIView(APIView):
    permission_classes = [IsAuthenticated, IsFaculty]

    def get(self, request):
        queryset = allocation.pending_decisions_for(principal_for(request.user))
        return Response(ProjectSerializer(queryset, many=True).data)
