from rest_framework import serializers

from .models import Review, ReviewVote, VisitTimeOfDay


class ReviewSerializer(serializers.ModelSerializer):
    class Meta:
        model = Review
        fields = [
            'id',
            'user',
            'venue',
            'overall_rating',
            'wifi_rating',
            'noise_rating',
            'comfort_rating',
            'food_rating',
            'title',
            'text',
            'visit_date',
            'visit_time_of_day',
            'crowd_level',
            'helpful_votes',
            'total_votes',
            'state',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


def _rating(**kwargs):
    return serializers.IntegerField(min_value=1, max_value=5, **kwargs)


class ReviewWriteSerializer(serializers.Serializer):
    """
    Request shape for creating or editing a review. Range rules are enforced
    again in ReviewService, which is the authority.
    """
    venue_id = serializers.UUIDField(required=False)
    overall_rating = _rating(required=False)
    wifi_rating = _rating(required=False, allow_null=True)
    noise_rating = _rating(required=False, allow_null=True)
    comfort_rating = _rating(required=False, allow_null=True)
    food_rating = _rating(required=False, allow_null=True)
    crowd_level = _rating(required=False, allow_null=True)
    title = serializers.CharField(max_length=255, required=False, allow_blank=True)
    text = serializers.CharField(required=False, allow_blank=True)
    visit_date = serializers.DateField(required=False, allow_null=True)
    visit_time_of_day = serializers.ChoiceField(choices=VisitTimeOfDay.choices, required=False, allow_blank=True)


class VoteSerializer(serializers.ModelSerializer):
    class Meta:
        model = ReviewVote
        fields = ['id', 'review', 'user', 'is_helpful', 'created_at']
        read_only_fields = fields


class VoteWriteSerializer(serializers.Serializer):
    is_helpful = serializers.BooleanField()
