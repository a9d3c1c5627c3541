"""
DRF Serializers for venues and search results.
"""
from rest_framework import serializers

from .models import Venue, VenueAmenities, VenueStatus


class VenueAmenitiesSerializer(serializers.ModelSerializer):
    class Meta:
        model = VenueAmenities
        exclude = ['id', 'venue']
        read_only_fields = ['created_at', 'updated_at']


class VenueSerializer(serializers.ModelSerializer):
    """Venue detail with geospatial data in a frontend-friendly format"""

    latitude = serializers.SerializerMethodField()
    longitude = serializers.SerializerMethodField()
    amenities = serializers.SerializerMethodField()

    class Meta:
        model = Venue
        fields = [
            'id',
            'name',
            'address',
            'city',
            'country',
            'postal_code',
            'latitude',
            'longitude',
            'place_id',
            'phone',
            'website',
            'hours',
            'status',
            'overall_rating',
            'total_reviews',
            'amenities',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

    def get_latitude(self, obj):
        """Extract latitude from location PointField"""
        if obj.location:
            return obj.location.y
        return None

    def get_longitude(self, obj):
        if obj.location:
            return obj.location.x
        return None

    def get_amenities(self, obj):
        amenities = obj.amenities_or_none()
        if amenities is None:
            return None
        return VenueAmenitiesSerializer(amenities).data


class VenueCreateSerializer(serializers.Serializer):
    """Input shape for proposing a venue; range checks happen in VenueService."""

    name = serializers.CharField(max_length=255)
    address = serializers.CharField()
    latitude = serializers.FloatField()
    longitude = serializers.FloatField()
    city = serializers.CharField(max_length=255, required=False)
    country = serializers.CharField(max_length=255, required=False)
    postal_code = serializers.CharField(max_length=20, required=False)
    phone = serializers.CharField(max_length=50, required=False)
    website = serializers.URLField(max_length=500, required=False)
    hours = serializers.JSONField(required=False)
    place_id = serializers.CharField(max_length=255, required=False)


class VenueStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=VenueStatus.choices)


class VenueSearchResultSerializer(serializers.Serializer):
    """Serializer for VenueSearchResult DTOs"""

    venue_id = serializers.UUIDField()
    name = serializers.CharField()
    address = serializers.CharField()
    distance_km = serializers.DecimalField(max_digits=8, decimal_places=2)
    overall_rating = serializers.DecimalField(max_digits=2, decimal_places=1)
    total_reviews = serializers.IntegerField()
