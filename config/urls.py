from django.contrib import admin
from django.urls import include, path
from django.http import HttpResponse


def healthz(_request):
    return HttpResponse("ok", content_type="text/plain")


urlpatterns = [
    path("admin/", admin.site.urls),
    path("healthz/", healthz),
    path("api/", include("apps.users.urls")),
    path("api/", include("apps.groups.urls")),
    path("api/", include("apps.invitations.urls")),
    path("api/", include("apps.projects.urls")),
]
