"""
URL routing for revolutions API.
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from api.revolutions.views import EventViewSet

router = DefaultRouter()
# Map client requests /api/events without the trailing slash.
router.trailing_slash = "/?"
router.register(r"events", EventViewSet, basename="event")

app_name = "revolutions"

urlpatterns = [
    path("", include(router.urls)),
]
