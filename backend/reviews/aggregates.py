"""
AggregateMaintainer: keeps the denormalized counters on Venue, UserProfile
and Review equal to what their source rows say.

Each refresh locks the key row first, then re-scans only the rows scoped to
that key and overwrites the stored value. Locking before scanning matters:
under READ COMMITTED the scan is a new statement and therefore sees every
sibling row committed by a writer that held the lock before us, so the last
writer on a key always stores the settled value. Values are recomputed,
never incremented, so a missed event cannot leave drift behind.
"""
import logging
from decimal import Decimal
from typing import Optional

from django.db import transaction
from django.db.models import Count, Q, Sum

from core.rounding import round_rating
from locations.models import Venue
from reviews.models import Review, ReviewState, ReviewVote
from user.models import UserProfile

logger = logging.getLogger(__name__)

ZERO_RATING = Decimal('0.0')


def mean_rating(total, count) -> Decimal:
    """round_half_up(total / count, 1), or 0 when there is nothing to average."""
    if not count:
        return ZERO_RATING
    return round_rating(Decimal(total) / Decimal(count))


class AggregateMaintainer:
    """
    Write-path observer. Called from the post_save / post_delete receivers in
    reviews.signals, always inside the transaction of the triggering write.
    Exceptions propagate so that the write rolls back with them.
    """

    def refresh_venue(self, venue_id) -> Optional[Venue]:
        """Recompute overall_rating and total_reviews for one venue."""
        venue = Venue.objects.select_for_update().filter(pk=venue_id).first()
        if venue is None:
            # Key row already gone (cascade), nothing left to maintain
            return None

        stats = Review.objects.filter(
            venue_id=venue_id,
            state=ReviewState.ACTIVE,
        ).aggregate(
            rating_sum=Sum('overall_rating'),
            review_count=Count('id'),
        )
        venue.overall_rating = mean_rating(stats['rating_sum'], stats['review_count'])
        venue.total_reviews = stats['review_count']
        Venue.objects.filter(pk=venue_id).update(
            overall_rating=venue.overall_rating,
            total_reviews=venue.total_reviews,
        )
        logger.debug(f"Venue {venue_id} aggregates: rating={venue.overall_rating} reviews={venue.total_reviews}")
        return venue

    def refresh_user(self, user_id) -> Optional[UserProfile]:
        """Recompute total_reviews for one user."""
        profile = UserProfile.objects.select_for_update().filter(pk=user_id).first()
        if profile is None:
            return None

        profile.total_reviews = Review.objects.filter(
            user_id=user_id,
            state=ReviewState.ACTIVE,
        ).count()
        UserProfile.objects.filter(pk=user_id).update(total_reviews=profile.total_reviews)
        logger.debug(f"User {user_id} aggregates: reviews={profile.total_reviews}")
        return profile

    def refresh_review_votes(self, review_id) -> Optional[Review]:
        """Recompute helpful_votes and total_votes for one review."""
        review = Review.objects.select_for_update().filter(pk=review_id).first()
        if review is None:
            return None

        tallies = ReviewVote.objects.filter(review_id=review_id).aggregate(
            total=Count('id'),
            helpful=Count('id', filter=Q(is_helpful=True)),
        )
        review.total_votes = tallies['total']
        review.helpful_votes = tallies['helpful']
        # queryset update: must not re-enter the Review post_save hook
        Review.objects.filter(pk=review_id).update(
            total_votes=review.total_votes,
            helpful_votes=review.helpful_votes,
        )
        logger.debug(f"Review {review_id} votes: helpful={review.helpful_votes} total={review.total_votes}")
        return review

    def on_review_changed(self, review: Review) -> None:
        # venue before user: one global lock order for every write path
        self.refresh_venue(review.venue_id)
        self.refresh_user(review.user_id)

    def on_vote_changed(self, vote: ReviewVote) -> None:
        self.refresh_review_votes(vote.review_id)

    def rebuild_all(self) -> dict:
        """
        Repair path: recompute every aggregate from scratch, in key order.
        Runs as a single transaction.
        """
        counts = {'venues': 0, 'users': 0, 'reviews': 0}

        with transaction.atomic():
            for venue_id in Venue.objects.order_by('pk').values_list('pk', flat=True):
                self.refresh_venue(venue_id)
                counts['venues'] += 1

            for user_id in UserProfile.objects.order_by('pk').values_list('pk', flat=True):
                self.refresh_user(user_id)
                counts['users'] += 1

            for review_id in Review.objects.order_by('pk').values_list('pk', flat=True):
                self.refresh_review_votes(review_id)
                counts['reviews'] += 1

        logger.info(
            f"Rebuilt aggregates for {counts['venues']} venues, "
            f"{counts['users']} users, {counts['reviews']} reviews"
        )
        return counts


maintainer = AggregateMaintainer()
