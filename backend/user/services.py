import logging

from django.db.models import Count, Q

from core.db import atomic_with_retry
from core.exceptions import NotFoundError, ValidationError
from core.validators import validate_choice, validate_scale
from reviews.models import ReviewState, ReviewVote
from .models import PreferredSeating, UserProfile, WorkStyle

logger = logging.getLogger(__name__)

PREFERENCE_SCALES = ('noise_tolerance', 'wifi_importance')
PREFERENCE_CHOICES = {
    'preferred_seating': PreferredSeating.values,
    'work_style': WorkStyle.values,
}


class PreferenceService:
    """Work preferences that feed the compatibility scorer, and per-user stats."""

    @staticmethod
    def get_profile(user_id) -> UserProfile:
        profile = UserProfile.objects.select_related('user').filter(pk=user_id).first()
        if profile is None:
            raise NotFoundError("user not found", details={'user_id': str(user_id)})
        return profile

    @staticmethod
    @atomic_with_retry
    def update_preferences(user_id, **fields) -> UserProfile:
        """
        Partial update of the preference fields.

        noise_tolerance / wifi_importance accept None to clear the value,
        which turns personalized ranking back off for the user.
        """
        unknown = set(fields) - set(PREFERENCE_SCALES) - set(PREFERENCE_CHOICES)
        if unknown:
            raise ValidationError("unknown preference fields", details={'fields': sorted(unknown)})
        if not fields:
            raise ValidationError("nothing to update")
        for name in PREFERENCE_SCALES:
            if name in fields:
                validate_scale(name, fields[name], 1, 5)
        for name, choices in PREFERENCE_CHOICES.items():
            if name in fields:
                validate_choice(name, fields[name], choices)

        profile = UserProfile.objects.select_for_update().filter(pk=user_id).first()
        if profile is None:
            raise NotFoundError("user not found", details={'user_id': str(user_id)})

        for name, value in fields.items():
            setattr(profile, name, value)
        profile.save(update_fields=[*fields, 'updated_at'])
        logger.info(f"Preferences of {user_id} updated ({', '.join(sorted(fields))})")
        return profile

    @staticmethod
    def get_stats(user_id) -> dict:
        """
        Review activity of a user.

        total_reviews is the maintained counter; the vote figures are counted
        live over votes on the user's active reviews.
        """
        profile = PreferenceService.get_profile(user_id)
        votes = ReviewVote.objects.filter(review__user=profile, review__state=ReviewState.ACTIVE).aggregate(
            votes_received=Count('id'),
            helpful_votes_received=Count('id', filter=Q(is_helpful=True)),
        )
        return {
            'user_id': profile.pk,
            'total_reviews': profile.total_reviews,
            'votes_received': votes['votes_received'],
            'helpful_votes_received': votes['helpful_votes_received'],
        }
