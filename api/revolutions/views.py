from django.conf import settings
from django.db.models import Count
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from api.revolutions.models import Event, EventQuerySet
from api.revolutions.serializers import CountryCountSerializer, EventSerializer

MISSING_FILTER_DETAIL = (
    "Provide a 'countryIso' (ISO 3166 alpha-2 or alpha-3) or a 'country' "
    "query parameter."
)
DEFAULT_SAMPLE_SIZE = 20
MAX_SAMPLE_SIZE = 500


def _min_year() -> int:
    return getattr(settings, "REVOLUTIONS_MIN_YEAR", 1900)


def filter_by_country(
    qs: EventQuerySet,
    country_iso: str | None,
    country: str | None,
) -> EventQuerySet:
    """ISO match first; the normalized country name is the fallback."""
    if country_iso:
        by_iso = qs.for_country_iso(country_iso)
        if by_iso.exists() or not country:
            return by_iso
    return qs.for_country_name(country)


class EventViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = EventSerializer
    permission_classes = []
    pagination_class = None

    def get_queryset(self):
        return Event.objects.since_year(_min_year()).order_by("-start_date", "-id")

    def list(self, request, *args, **kwargs):
        country_iso = (request.query_params.get("countryIso") or "").strip()
        country = (request.query_params.get("country") or "").strip()
        if not country_iso and not country:
            return Response(
                {"detail": MISSING_FILTER_DETAIL},
                status=status.HTTP_400_BAD_REQUEST,
            )
        qs = filter_by_country(self.get_queryset(), country_iso, country)
        serializer = self.get_serializer(qs, many=True)
        return Response(serializer.data)

    @action(detail=False, methods=["get"])
    def counts(self, request):
        rows = (
            Event.objects.values("country_iso")
            .annotate(count=Count("id"))
            .order_by("-count", "country_iso")
        )
        return Response(CountryCountSerializer(rows, many=True).data)

    @action(detail=False, methods=["get"])
    def sample(self, request):
        """Newest stored events, unfiltered, for checking an import run."""
        try:
            take = int(request.query_params.get("take", DEFAULT_SAMPLE_SIZE))
        except ValueError:
            take = DEFAULT_SAMPLE_SIZE
        take = min(max(take, 1), MAX_SAMPLE_SIZE)
        qs = Event.objects.order_by("-start_date", "-id")[:take]
        return Response(self.get_serializer(qs, many=True).data)
