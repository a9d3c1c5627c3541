"""
Serializers for the recommendations module.
"""
from rest_framework import serializers


class PointDTOSerializer(serializers.Serializer):
    """Serializer for PointDTO"""
    latitude = serializers.FloatField()
    longitude = serializers.FloatField()


class VenueRecommendationSerializer(serializers.Serializer):
    """Serializer for VenueRecommendation DTO"""
    venue_id = serializers.UUIDField()
    name = serializers.CharField()
    address = serializers.CharField()
    distance_km = serializers.DecimalField(max_digits=8, decimal_places=2)
    overall_rating = serializers.DecimalField(max_digits=2, decimal_places=1)
    compatibility_score = serializers.DecimalField(max_digits=6, decimal_places=1)
