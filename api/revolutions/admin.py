from django.contrib import admin
from django.db.models import Q
from django.utils.html import escape, format_html

from api.revolutions.models import Event


class HasCoordsFilter(admin.SimpleListFilter):
    title = "has coordinates"
    parameter_name = "has_coords"

    def lookups(self, request, model_admin):
        return (("yes", "Yes"), ("no", "No"))

    def queryset(self, request, queryset):
        if self.value() == "yes":
            return queryset.filter(latitude__isnull=False, longitude__isnull=False)
        if self.value() == "no":
            return queryset.filter(Q(latitude__isnull=True) | Q(longitude__isnull=True))
        return queryset


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    list_display = [
        "name",
        "wikidata_link",
        "start_date",
        "end_date",
        "country",
        "country_iso",
        "has_coords",
        "estimated_deaths",
    ]
    list_display_links = ["name"]
    list_filter = [HasCoordsFilter, "country_iso", "type"]
    list_per_page = 50
    search_fields = ["name", "country", "description", "external_id"]
    readonly_fields = ["country_key", "created_datetime", "updated_datetime"]
    date_hierarchy = "start_date"

    fieldsets = (
        (None, {"fields": ("name", "type", "description", "external_id")}),
        ("Dates", {"fields": ("start_date", "end_date")}),
        (
            "Location",
            {"fields": ("country", "country_iso", "country_key", "latitude", "longitude")},
        ),
        ("Details", {"fields": ("estimated_deaths", "sources", "tags")}),
        ("Bookkeeping", {"fields": ("created_datetime", "updated_datetime")}),
    )

    @admin.display(boolean=True, description="Coords")
    def has_coords(self, obj: Event) -> bool:
        return obj.latitude is not None and obj.longitude is not None

    @admin.display(description="Wikidata")
    def wikidata_link(self, obj: Event) -> str:
        if not obj.external_id:
            return "—"
        return format_html(
            '<a href="https://www.wikidata.org/wiki/{}" target="_blank" '
            'rel="noopener">{}</a>',
            obj.external_id,
            escape(obj.external_id),
        )
