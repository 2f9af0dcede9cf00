"""
URL configuration for revolution-atlas API.
"""

from django.contrib import admin
from django.urls import include, path

from api.config.views import ping

urlpatterns = [
    path("admin/", admin.site.urls),
    path("ping", ping),
    path("api/", include("api.revolutions.urls")),
]
