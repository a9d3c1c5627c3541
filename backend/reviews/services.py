"""
Mutation entry points for reviews and helpfulness votes.

Each public method is one transaction (core.db.atomic_with_retry). The
aggregate refresh happens in the post_save / post_delete hooks, inside that
same transaction, so a review or vote is never committed with stale
counters.
"""
import logging

from core.db import atomic_with_retry
from core.exceptions import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from core.validators import validate_choice, validate_scale
from locations.models import Venue, VenueStatus
from reviews.models import Review, ReviewState, ReviewVote, VisitTimeOfDay
from user.models import UserProfile

logger = logging.getLogger(__name__)

SUB_RATING_FIELDS = ('wifi_rating', 'noise_rating', 'comfort_rating', 'food_rating', 'crowd_level')
TEXT_FIELDS = {'title': 255, 'text': None}
EDITABLE_FIELDS = {'overall_rating', 'visit_date', 'visit_time_of_day', *SUB_RATING_FIELDS, *TEXT_FIELDS}


def _clean_review_fields(fields: dict) -> dict:
    """Validate optional review fields; raises ValidationError on the first bad one."""
    unknown = set(fields) - EDITABLE_FIELDS
    if unknown:
        raise ValidationError("unknown review fields", details={'fields': sorted(unknown)})

    if 'overall_rating' in fields:
        validate_scale('overall_rating', fields['overall_rating'], 1, 5, required=True)
    for name in SUB_RATING_FIELDS:
        if name in fields:
            validate_scale(name, fields[name], 1, 5)
    for name, max_length in TEXT_FIELDS.items():
        value = fields.get(name)
        if value is None:
            continue
        if not isinstance(value, str):
            raise ValidationError(f"{name} must be a string", details={'field': name})
        if max_length and len(value) > max_length:
            raise ValidationError(f"{name} is too long", details={'field': name, 'max_length': max_length})
    if fields.get('visit_time_of_day'):
        validate_choice('visit_time_of_day', fields['visit_time_of_day'], VisitTimeOfDay.values)
    return fields


def _get_profile(user_id) -> UserProfile:
    profile = UserProfile.objects.filter(pk=user_id).first()
    if profile is None:
        raise NotFoundError("user not found", details={'user_id': str(user_id)})
    return profile


def _lock_profile(user_id) -> UserProfile:
    profile = UserProfile.objects.select_for_update().filter(pk=user_id).first()
    if profile is None:
        raise NotFoundError("user not found", details={'user_id': str(user_id)})
    return profile


def _lock_review(review_id) -> Review:
    review = Review.objects.select_for_update().filter(pk=review_id).first()
    if review is None:
        raise NotFoundError("review not found", details={'review_id': str(review_id)})
    return review


class ReviewService:
    """
    Review and vote write paths. The principal (user_id) comes from the
    external auth layer and is trusted as-is.
    """

    @staticmethod
    @atomic_with_retry
    def submit_review(user_id, venue_id, overall_rating, **fields) -> Review:
        """
        Create the user's review of a venue.

        Raises:
            ValidationError: bad rating or fields, venue not open for reviews
            NotFoundError: unknown user or venue
            ConflictError: the user already has an active review of this venue
        """
        fields = _clean_review_fields({'overall_rating': overall_rating, **fields})

        # Parent rows are locked up front, venue before user. The insert alone
        # would only take FOR KEY SHARE on them, and the aggregate refresh
        # upgrading that to FOR UPDATE deadlocks against a concurrent writer.
        venue = Venue.objects.select_for_update().not_deleted().filter(pk=venue_id).first()
        if venue is None:
            raise NotFoundError("venue not found", details={'venue_id': str(venue_id)})
        profile = _lock_profile(user_id)
        if venue.status != VenueStatus.ACTIVE:
            raise ValidationError(
                "venue is not accepting reviews",
                details={'venue_id': str(venue_id), 'status': venue.status},
            )

        if Review.objects.active().filter(user=profile, venue=venue).exists():
            raise ConflictError(
                "user has already reviewed this venue",
                details={'user_id': str(profile.pk), 'venue_id': str(venue.pk)},
            )

        # The partial unique index backs the check above; a violation becomes
        # ConflictError in atomic_with_retry.
        review = Review.objects.create(user=profile, venue=venue, **fields)
        logger.info(f"Review {review.id} created by {profile.pk} for venue {venue.pk}")
        return review

    @staticmethod
    @atomic_with_retry
    def update_review(review_id, user_id, **fields) -> Review:
        """Edit an active review. Only its author may do so."""
        fields = _clean_review_fields(fields)
        if not fields:
            raise ValidationError("nothing to update", details={'fields': sorted(EDITABLE_FIELDS)})

        review = _lock_review(review_id)
        if str(review.user_id) != str(user_id):
            raise PermissionDeniedError("only the author can edit a review")
        if not review.is_active:
            raise ValidationError("review has been deleted", details={'review_id': str(review_id)})

        for name, value in fields.items():
            setattr(review, name, value)
        review.save(update_fields=[*fields, 'updated_at'])
        logger.info(f"Review {review.id} updated ({', '.join(sorted(fields))})")
        return review

    @staticmethod
    @atomic_with_retry
    def delete_review(review_id, user_id) -> Review:
        """Soft delete; the row stays, every aggregate stops counting it."""
        review = _lock_review(review_id)
        if str(review.user_id) != str(user_id):
            raise PermissionDeniedError("only the author can delete a review")
        if not review.is_active:
            raise ValidationError("review has already been deleted", details={'review_id': str(review_id)})

        review.soft_delete()
        logger.info(f"Review {review.id} soft-deleted")
        return review

    @staticmethod
    @atomic_with_retry
    def cast_vote(user_id, review_id, is_helpful: bool) -> ReviewVote:
        """
        Record a helpful / not helpful vote.

        Raises:
            ConflictError: the user already voted on this review
        """
        if not isinstance(is_helpful, bool):
            raise ValidationError("is_helpful must be a boolean", details={'field': 'is_helpful'})

        profile = _get_profile(user_id)
        # locked before the insert, see submit_review
        review = _lock_review(review_id)
        if review.state != ReviewState.ACTIVE:
            raise ValidationError("cannot vote on a deleted review", details={'review_id': str(review_id)})

        if ReviewVote.objects.filter(user=profile, review=review).exists():
            raise ConflictError(
                "user has already voted on this review",
                details={'user_id': str(profile.pk), 'review_id': str(review.pk)},
            )

        vote = ReviewVote.objects.create(user=profile, review=review, is_helpful=is_helpful)
        logger.info(f"Vote {vote.id} ({'helpful' if is_helpful else 'not helpful'}) on review {review.pk}")
        return vote

    @staticmethod
    @atomic_with_retry
    def change_vote(user_id, review_id, is_helpful: bool) -> ReviewVote:
        if not isinstance(is_helpful, bool):
            raise ValidationError("is_helpful must be a boolean", details={'field': 'is_helpful'})

        review = _lock_review(review_id)
        if review.state != ReviewState.ACTIVE:
            raise ValidationError("cannot vote on a deleted review", details={'review_id': str(review_id)})
        vote = ReviewVote.objects.select_for_update().filter(user_id=user_id, review_id=review_id).first()
        if vote is None:
            raise NotFoundError("vote not found", details={'review_id': str(review_id)})
        if vote.is_helpful != is_helpful:
            vote.is_helpful = is_helpful
            vote.save(update_fields=['is_helpful'])
            logger.info(f"Vote {vote.id} changed to {'helpful' if is_helpful else 'not helpful'}")
        return vote

    @staticmethod
    @atomic_with_retry
    def retract_vote(user_id, review_id) -> None:
        _lock_review(review_id)
        vote = ReviewVote.objects.select_for_update().filter(user_id=user_id, review_id=review_id).first()
        if vote is None:
            raise NotFoundError("vote not found", details={'review_id': str(review_id)})
        vote.delete()
        logger.info(f"Vote by {user_id} on review {review_id} retracted")
