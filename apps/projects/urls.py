from django.urls import path
from rest_framework.routers import DefaultRouter

from apps.projects.views import PendingDecisionsAPIView, ProjectViewSet

router = DefaultRouter()
router.register(r"projects", ProjectViewSet, basename="project")

urlpatterns = [
    path("faculty/pending-decisions", PendingDecisionsAPIView.as_view(), name="faculty-pending-decisions"),
]

urlpatterns += router.urls
