from django.urls import path
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from .views import MeAPIView

urlpatterns = [
    path("auth/me", MeAPIView.as_view(), name="auth-me"),
    path("auth/jwt/create", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("auth/jwt/refresh", TokenRefreshView.as_view(), name="token_refresh"),
]
