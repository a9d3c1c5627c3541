from rest_framework import serializers
from .models import PreferredSeating, UserProfile, WorkStyle


class UserProfileSerializer(serializers.ModelSerializer):
    username = serializers.CharField(source="user.username", read_only=True)

    class Meta:
        model = UserProfile
        fields = [
            "id",
            "username",
            "noise_tolerance",
            "wifi_importance",
            "preferred_seating",
            "work_style",
            "total_reviews",
        ]
        read_only_fields = fields


class PreferencesSerializer(serializers.Serializer):
    noise_tolerance = serializers.IntegerField(min_value=1, max_value=5, required=False, allow_null=True)
    wifi_importance = serializers.IntegerField(min_value=1, max_value=5, required=False, allow_null=True)
    preferred_seating = serializers.ChoiceField(choices=PreferredSeating.choices, required=False)
    work_style = serializers.ChoiceField(choices=WorkStyle.choices, required=False)


class UserStatsSerializer(serializers.Serializer):
    user_id = serializers.UUIDField()
    total_reviews = serializers.IntegerField()
    votes_received = serializers.IntegerField()
    helpful_votes_received = serializers.IntegerField()
