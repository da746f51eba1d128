from rest_framework import serializers

from .models import Bar, TrafficReport


class BarSerializer(serializers.ModelSerializer):
    """
    Bar list/detail serializer.

    Pass the current occupancy snapshot as context["snapshot"] to include
    the live popularity count.
    """
    coordinates = serializers.SerializerMethodField()
    queue_count = serializers.SerializerMethodField()
    average_rating = serializers.SerializerMethodField()
    popularity = serializers.SerializerMethodField()

    class Meta:
        model = Bar
        fields = [
            "id",
            "name",
            "address",
            "coordinates",
            "image",
            "queue_count",
            "average_rating",
            "popularity",
            "created_at",
        ]

    def get_coordinates(self, obj):
        if not obj.has_coordinates:
            return None
        return {"latitude": float(obj.latitude), "longitude": float(obj.longitude)}

    def get_queue_count(self, obj):
        count = getattr(obj, "queue_count", None)
        return count if count is not None else obj.queue_entries.count()

    def get_average_rating(self, obj):
        average = getattr(obj, "average_rating", None)
        return round(float(average), 2) if average is not None else None

    def get_popularity(self, obj):
        snapshot = self.context.get("snapshot")
        return snapshot.count(str(obj.pk)) if snapshot is not None else 0


class BarDetailSerializer(BarSerializer):
    """Adds recent reports and the requesting user's queue/rating state."""
    latest_cover_fee = serializers.SerializerMethodField()
    latest_traffic_level = serializers.SerializerMethodField()
    ratings_count = serializers.SerializerMethodField()
    in_queue = serializers.SerializerMethodField()

    class Meta(BarSerializer.Meta):
        fields = BarSerializer.Meta.fields + [
            "latest_cover_fee",
            "latest_traffic_level",
            "ratings_count",
            "in_queue",
        ]

    def get_latest_cover_fee(self, obj):
        fee = obj.cover_fees.first()
        return fee.amount if fee else None

    def get_latest_traffic_level(self, obj):
        report = obj.traffic_reports.first()
        return report.level if report else None

    def get_ratings_count(self, obj):
        return obj.ratings.count()

    def get_in_queue(self, obj):
        request = self.context.get("request")
        if not request or not request.user.is_authenticated:
            return False
        return obj.queue_entries.filter(user=request.user).exists()


class BarCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=120)
    address = serializers.CharField()
    image = serializers.CharField(required=False, allow_blank=True)
    latitude = serializers.DecimalField(max_digits=9, decimal_places=6, required=False, min_value=-90, max_value=90)
    longitude = serializers.DecimalField(max_digits=9, decimal_places=6, required=False, min_value=-180, max_value=180)

    def validate(self, data):
        if ("latitude" in data) != ("longitude" in data):
            raise serializers.ValidationError("latitude and longitude must be provided together")
        return data


class RatingSerializer(serializers.Serializer):
    value = serializers.IntegerField(min_value=1, max_value=5)


class CoverFeeSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=8, decimal_places=2, min_value=0)


class TrafficReportSerializer(serializers.Serializer):
    level = serializers.ChoiceField(choices=[choice for choice, _ in TrafficReport.LEVEL_CHOICES])


class VenueLocationSerializer(serializers.Serializer):
    """Wire shape of common.utils.geo.VenueLocation"""
    venue_id = serializers.CharField()
    coordinates = serializers.SerializerMethodField()

    def get_coordinates(self, obj):
        return obj.coordinates.to_dict() if obj.coordinates else None
