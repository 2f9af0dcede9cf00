from rest_framework import serializers

from api.revolutions.models import Event


class EventSerializer(serializers.ModelSerializer):
    startDate = serializers.DateField(source="start_date", read_only=True)
    endDate = serializers.DateField(source="end_date", read_only=True, allow_null=True)
    countryIso = serializers.CharField(
        source="country_iso", read_only=True, allow_null=True
    )
    externalId = serializers.CharField(
        source="external_id", read_only=True, allow_null=True
    )
    estimatedDeaths = serializers.IntegerField(
        source="estimated_deaths", read_only=True, allow_null=True
    )

    class Meta:
        model = Event
        fields = [
            "id",
            "name",
            "startDate",
            "endDate",
            "country",
            "countryIso",
            "latitude",
            "longitude",
            "type",
            "description",
            "externalId",
            "estimatedDeaths",
            "sources",
            "tags",
        ]
        read_only_fields = fields


class CountryCountSerializer(serializers.Serializer):
    countryIso = serializers.CharField(source="country_iso", allow_null=True)
    count = serializers.IntegerField()
