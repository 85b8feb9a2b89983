from rest_framework.routers import DefaultRouter

from apps.invitations.views import InvitationViewSet

router = DefaultRouter()
router.register(r"invitations", InvitationViewSet, basename="invitation")

urlpatterns = router.urls
