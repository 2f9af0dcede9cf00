from __future__ import annotations

from django.db import models

from api.revolutions.countries import normalize_country_name, to_alpha2


class EventQuerySet(models.QuerySet["Event"]):
    def since_year(self, year: int | None) -> "EventQuerySet":
        if year is None:
            return self
        return self.filter(start_date__year__gte=year)

    def for_country_iso(self, code: str | None) -> "EventQuerySet":
        alpha2 = to_alpha2(code)
        if alpha2 is None:
            return self.none()
        return self.filter(country_iso=alpha2)

    def for_country_name(self, name: str | None) -> "EventQuerySet":
        key = normalize_country_name(name)
        if not key:
            return self.none()
        return self.filter(country_key=key)

    def find_duplicate(self, name: str, year: int) -> "Event | None":
        return (
            self.filter(name=name, start_date__year=year).order_by("pk").first()
        )


class EventManager(models.Manager["Event"]):
    def get_queryset(self) -> EventQuerySet:
        return EventQuerySet(self.model, using=self._db)

    def since_year(self, year: int | None) -> EventQuerySet:
        return self.get_queryset().since_year(year)

    def find_duplicate(self, name: str, year: int) -> "Event | None":
        return self.get_queryset().find_duplicate(name, year)


class Event(models.Model):
    external_id = models.CharField(max_length=32, unique=True, null=True, blank=True)
    name = models.CharField(max_length=500)
    start_date = models.DateField(db_index=True)
    end_date = models.DateField(null=True, blank=True)

    country = models.CharField(max_length=500, blank=True)
    country_iso = models.CharField(max_length=2, null=True, blank=True, db_index=True)
    country_key = models.CharField(max_length=500, blank=True, db_index=True, editable=False)

    latitude = models.FloatField(null=True, blank=True)
    longitude = models.FloatField(null=True, blank=True)

    type = models.CharField(max_length=100, blank=True)
    description = models.TextField(blank=True)
    estimated_deaths = models.PositiveIntegerField(null=True, blank=True)
    sources = models.CharField(max_length=500, blank=True)
    tags = models.JSONField(default=list, blank=True)

    created_datetime = models.DateTimeField(auto_now_add=True, null=True)
    updated_datetime = models.DateTimeField(auto_now=True, null=True)

    objects = EventManager()

    class Meta:
        ordering = ["-start_date", "-id"]

    def __str__(self) -> str:
        return self.name or self.external_id or f"Event {self.pk}"

    def save(self, *args, **kwargs) -> None:
        # Empty strings would collide on the unique constraint.
        self.external_id = (self.external_id or "").strip() or None
        self.country_iso = to_alpha2(self.country_iso)
        self.country_key = normalize_country_name(self.country)
        update_fields = kwargs.get("update_fields")
        if update_fields is not None and "country" in update_fields:
            kwargs["update_fields"] = {*update_fields, "country_key"}
        super().save(*args, **kwargs)
