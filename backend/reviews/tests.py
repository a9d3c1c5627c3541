"""
Tests for reviews, votes and the aggregates they maintain.
"""
import threading
from unittest.mock import patch
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.contrib.gis.geos import Point
from django.db import connection
from django.test import TestCase, TransactionTestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from core.exceptions import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from locations.models import Venue, VenueStatus
from user.models import UserProfile
from .aggregates import maintainer, mean_rating
from .models import Review, ReviewState, ReviewVote
from .services import ReviewService

User = get_user_model()


def make_profile(username):
    user = User.objects.create_user(username=username, password='password123')
    return UserProfile.objects.create(user=user)


def make_venue(name="Test Cafe", status=VenueStatus.ACTIVE):
    return Venue.objects.create(
        name=name,
        address="123 Test St",
        location=Point(-122.4194, 37.7749, srid=4326),
        status=status,
    )


class MeanRatingTests(TestCase):
    def test_empty_is_zero(self):
        self.assertEqual(mean_rating(None, 0), Decimal('0.0'))

    def test_rounds_half_up(self):
        # 4.25 -> 4.3, where banker's rounding would give 4.2
        self.assertEqual(mean_rating(17, 4), Decimal('4.3'))
        self.assertEqual(mean_rating(14, 3), Decimal('4.7'))


class VenueAggregateTests(TestCase):
    def setUp(self):
        self.venue = make_venue()
        self.alice = make_profile('alice')
        self.bob = make_profile('bob')

    def test_first_review_sets_rating(self):
        """A 5-star review on an unreviewed venue gives 5.0 over 1 review."""
        ReviewService.submit_review(self.alice.pk, self.venue.pk, 5)

        self.venue.refresh_from_db()
        self.assertEqual(self.venue.overall_rating, Decimal('5.0'))
        self.assertEqual(self.venue.total_reviews, 1)

    def test_soft_delete_resets_rating(self):
        """Soft-deleting the only review puts both aggregates back to 0."""
        review = ReviewService.submit_review(self.alice.pk, self.venue.pk, 5)
        ReviewService.delete_review(review.pk, self.alice.pk)

        self.venue.refresh_from_db()
        self.assertEqual(self.venue.overall_rating, Decimal('0.0'))
        self.assertEqual(self.venue.total_reviews, 0)

        review.refresh_from_db()
        self.assertEqual(review.state, ReviewState.DELETED)
        self.assertIsNotNone(review.deleted_at)

    def test_mean_over_active_reviews(self):
        ReviewService.submit_review(self.alice.pk, self.venue.pk, 5)
        ReviewService.submit_review(self.bob.pk, self.venue.pk, 4)

        self.venue.refresh_from_db()
        self.assertEqual(self.venue.overall_rating, Decimal('4.5'))
        self.assertEqual(self.venue.total_reviews, 2)

    def test_rating_edit_is_reflected(self):
        review = ReviewService.submit_review(self.alice.pk, self.venue.pk, 2)
        ReviewService.update_review(review.pk, self.alice.pk, overall_rating=4)

        self.venue.refresh_from_db()
        self.assertEqual(self.venue.overall_rating, Decimal('4.0'))
        self.assertEqual(self.venue.total_reviews, 1)

    def test_hard_delete_is_reflected(self):
        review = ReviewService.submit_review(self.alice.pk, self.venue.pk, 3)
        Review.objects.get(pk=review.pk).delete()

        self.venue.refresh_from_db()
        self.alice.refresh_from_db()
        self.assertEqual(self.venue.total_reviews, 0)
        self.assertEqual(self.alice.total_reviews, 0)

    def test_user_total_reviews(self):
        other = make_venue("Other Cafe")
        first = ReviewService.submit_review(self.alice.pk, self.venue.pk, 4)
        ReviewService.submit_review(self.alice.pk, other.pk, 3)

        self.alice.refresh_from_db()
        self.assertEqual(self.alice.total_reviews, 2)

        ReviewService.delete_review(first.pk, self.alice.pk)
        self.alice.refresh_from_db()
        self.assertEqual(self.alice.total_reviews, 1)

    def test_refresh_is_idempotent(self):
        ReviewService.submit_review(self.alice.pk, self.venue.pk, 3)
        ReviewService.submit_review(self.bob.pk, self.venue.pk, 4)

        maintainer.refresh_venue(self.venue.pk)
        maintainer.refresh_venue(self.venue.pk)

        self.venue.refresh_from_db()
        self.assertEqual(self.venue.overall_rating, Decimal('3.5'))
        self.assertEqual(self.venue.total_reviews, 2)

    def test_rebuild_all_repairs_drift(self):
        review = ReviewService.submit_review(self.alice.pk, self.venue.pk, 4)
        ReviewService.cast_vote(self.bob.pk, review.pk, True)
        # Corrupt every counter behind the hooks' back
        Venue.objects.filter(pk=self.venue.pk).update(overall_rating=Decimal('1.0'), total_reviews=9)
        UserProfile.objects.filter(pk=self.alice.pk).update(total_reviews=7)
        Review.objects.filter(pk=review.pk).update(helpful_votes=5, total_votes=5)

        counts = maintainer.rebuild_all()

        self.assertEqual(counts, {'venues': 1, 'users': 2, 'reviews': 1})
        self.venue.refresh_from_db()
        self.alice.refresh_from_db()
        review.refresh_from_db()
        self.assertEqual((self.venue.overall_rating, self.venue.total_reviews), (Decimal('4.0'), 1))
        self.assertEqual(self.alice.total_reviews, 1)
        self.assertEqual((review.helpful_votes, review.total_votes), (1, 1))


class ReviewServiceTests(TestCase):
    def setUp(self):
        self.venue = make_venue()
        self.alice = make_profile('alice')
        self.bob = make_profile('bob')

    def test_duplicate_review_is_rejected(self):
        """A second active review for the same (user, venue) is a conflict and changes nothing."""
        ReviewService.submit_review(self.alice.pk, self.venue.pk, 5)

        with self.assertRaises(ConflictError):
            ReviewService.submit_review(self.alice.pk, self.venue.pk, 1)

        self.venue.refresh_from_db()
        self.alice.refresh_from_db()
        self.assertEqual(self.venue.overall_rating, Decimal('5.0'))
        self.assertEqual(self.venue.total_reviews, 1)
        self.assertEqual(self.alice.total_reviews, 1)
        self.assertEqual(Review.objects.filter(user=self.alice, venue=self.venue).count(), 1)

    def test_review_again_after_soft_delete(self):
        review = ReviewService.submit_review(self.alice.pk, self.venue.pk, 2)
        ReviewService.delete_review(review.pk, self.alice.pk)

        ReviewService.submit_review(self.alice.pk, self.venue.pk, 4)

        self.venue.refresh_from_db()
        self.assertEqual(self.venue.overall_rating, Decimal('4.0'))
        self.assertEqual(self.venue.total_reviews, 1)

    def test_rating_out_of_range(self):
        for rating in (0, 6, 4.5, True, None):
            with self.assertRaises(ValidationError):
                ReviewService.submit_review(self.alice.pk, self.venue.pk, rating)
        self.assertFalse(Review.objects.exists())

    def test_sub_rating_out_of_range(self):
        with self.assertRaises(ValidationError):
            ReviewService.submit_review(self.alice.pk, self.venue.pk, 4, wifi_rating=9)

    def test_unknown_field_rejected(self):
        with self.assertRaises(ValidationError):
            ReviewService.submit_review(self.alice.pk, self.venue.pk, 4, helpful_votes=100)

    def test_unknown_venue(self):
        with self.assertRaises(NotFoundError):
            ReviewService.submit_review(self.alice.pk, '00000000-0000-0000-0000-000000000000', 4)

    def test_pending_venue_not_reviewable(self):
        pending = make_venue("Pending", status=VenueStatus.PENDING)
        with self.assertRaises(ValidationError):
            ReviewService.submit_review(self.alice.pk, pending.pk, 4)

    def test_only_author_can_edit_or_delete(self):
        review = ReviewService.submit_review(self.alice.pk, self.venue.pk, 4)

        with self.assertRaises(PermissionDeniedError):
            ReviewService.update_review(review.pk, self.bob.pk, overall_rating=1)
        with self.assertRaises(PermissionDeniedError):
            ReviewService.delete_review(review.pk, self.bob.pk)

    def test_delete_twice(self):
        review = ReviewService.submit_review(self.alice.pk, self.venue.pk, 4)
        ReviewService.delete_review(review.pk, self.alice.pk)
        with self.assertRaises(ValidationError):
            ReviewService.delete_review(review.pk, self.alice.pk)

    def test_update_text_fields(self):
        review = ReviewService.submit_review(self.alice.pk, self.venue.pk, 4, title="Good")
        ReviewService.update_review(review.pk, self.alice.pk, title="Great", visit_time_of_day='morning')

        review.refresh_from_db()
        self.assertEqual(review.title, "Great")
        self.assertEqual(review.visit_time_of_day, 'morning')


class VoteTests(TestCase):
    def setUp(self):
        self.venue = make_venue()
        self.author = make_profile('author')
        self.alice = make_profile('alice')
        self.bob = make_profile('bob')
        self.review = ReviewService.submit_review(self.author.pk, self.venue.pk, 4)

    def test_votes_in_either_order(self):
        """One helpful and one unhelpful vote leave 2 total / 1 helpful, whatever the order."""
        ReviewService.cast_vote(self.alice.pk, self.review.pk, True)
        ReviewService.cast_vote(self.bob.pk, self.review.pk, False)
        self.review.refresh_from_db()
        self.assertEqual((self.review.total_votes, self.review.helpful_votes), (2, 1))

        ReviewVote.objects.all().delete()
        ReviewService.cast_vote(self.bob.pk, self.review.pk, False)
        ReviewService.cast_vote(self.alice.pk, self.review.pk, True)
        self.review.refresh_from_db()
        self.assertEqual((self.review.total_votes, self.review.helpful_votes), (2, 1))

    def test_duplicate_vote(self):
        ReviewService.cast_vote(self.alice.pk, self.review.pk, True)
        with self.assertRaises(ConflictError):
            ReviewService.cast_vote(self.alice.pk, self.review.pk, False)

        self.review.refresh_from_db()
        self.assertEqual((self.review.total_votes, self.review.helpful_votes), (1, 1))

    def test_change_and_retract_vote(self):
        ReviewService.cast_vote(self.alice.pk, self.review.pk, True)
        ReviewService.change_vote(self.alice.pk, self.review.pk, False)
        self.review.refresh_from_db()
        self.assertEqual((self.review.total_votes, self.review.helpful_votes), (1, 0))

        ReviewService.retract_vote(self.alice.pk, self.review.pk)
        self.review.refresh_from_db()
        self.assertEqual((self.review.total_votes, self.review.helpful_votes), (0, 0))

        with self.assertRaises(NotFoundError):
            ReviewService.retract_vote(self.alice.pk, self.review.pk)

    def test_vote_on_deleted_review(self):
        ReviewService.cast_vote(self.bob.pk, self.review.pk, True)
        ReviewService.delete_review(self.review.pk, self.author.pk)
        with self.assertRaises(ValidationError):
            ReviewService.cast_vote(self.alice.pk, self.review.pk, True)
        with self.assertRaises(ValidationError):
            ReviewService.change_vote(self.bob.pk, self.review.pk, False)

        self.assertTrue(ReviewVote.objects.get(user=self.bob, review=self.review).is_helpful)

    def test_vote_must_be_boolean(self):
        with self.assertRaises(ValidationError):
            ReviewService.cast_vote(self.alice.pk, self.review.pk, 'yes')

    def test_vote_does_not_touch_venue_aggregates(self):
        ReviewService.cast_vote(self.alice.pk, self.review.pk, True)
        self.venue.refresh_from_db()
        self.assertEqual((self.venue.overall_rating, self.venue.total_reviews), (Decimal('4.0'), 1))


class FailedRefreshRollbackTests(TestCase):
    """A failing aggregate refresh aborts the write that triggered it."""

    def setUp(self):
        self.venue = make_venue()
        self.author = make_profile('author')
        self.alice = make_profile('alice')
        self.review = ReviewService.submit_review(self.author.pk, self.venue.pk, 4)

    def test_submit_review_rolls_back(self):
        # the venue refresh has already run when the user refresh fails
        with patch.object(maintainer, 'refresh_user', side_effect=RuntimeError("refresh failed")):
            with self.assertRaises(RuntimeError):
                ReviewService.submit_review(self.alice.pk, self.venue.pk, 1)

        self.assertFalse(Review.objects.filter(user=self.alice).exists())
        self.venue.refresh_from_db()
        self.alice.refresh_from_db()
        self.assertEqual((self.venue.overall_rating, self.venue.total_reviews), (Decimal('4.0'), 1))
        self.assertEqual(self.alice.total_reviews, 0)

    def test_cast_vote_rolls_back(self):
        with patch.object(maintainer, 'refresh_review_votes', side_effect=RuntimeError("refresh failed")):
            with self.assertRaises(RuntimeError):
                ReviewService.cast_vote(self.alice.pk, self.review.pk, True)

        self.assertFalse(ReviewVote.objects.filter(review=self.review).exists())
        self.review.refresh_from_db()
        self.assertEqual((self.review.total_votes, self.review.helpful_votes), (0, 0))

    def test_delete_review_rolls_back(self):
        with patch.object(maintainer, 'refresh_venue', side_effect=RuntimeError("refresh failed")):
            with self.assertRaises(RuntimeError):
                ReviewService.delete_review(self.review.pk, self.author.pk)

        self.review.refresh_from_db()
        self.venue.refresh_from_db()
        self.assertEqual(self.review.state, ReviewState.ACTIVE)
        self.assertEqual((self.venue.overall_rating, self.venue.total_reviews), (Decimal('4.0'), 1))


class ConcurrentWriteTests(TransactionTestCase):
    """Writers on the same key in separate transactions and connections."""

    def setUp(self):
        self.venue = make_venue()
        self.author = make_profile('author')
        self.alice = make_profile('alice')
        self.bob = make_profile('bob')
        self.review = ReviewService.submit_review(self.author.pk, self.venue.pk, 4)

    def _run_concurrently(self, *calls):
        barrier = threading.Barrier(len(calls))
        errors = []

        def worker(call):
            try:
                barrier.wait()
                call()
            except Exception as e:  # collected and asserted on below
                errors.append(e)
            finally:
                connection.close()

        threads = [threading.Thread(target=worker, args=(call,)) for call in calls]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return errors

    def test_concurrent_votes(self):
        errors = self._run_concurrently(
            lambda: ReviewService.cast_vote(self.alice.pk, self.review.pk, True),
            lambda: ReviewService.cast_vote(self.bob.pk, self.review.pk, False),
        )

        self.assertEqual(errors, [])
        self.review.refresh_from_db()
        self.assertEqual((self.review.total_votes, self.review.helpful_votes), (2, 1))

    def test_concurrent_reviews_on_one_venue(self):
        errors = self._run_concurrently(
            lambda: ReviewService.submit_review(self.alice.pk, self.venue.pk, 5),
            lambda: ReviewService.submit_review(self.bob.pk, self.venue.pk, 3),
        )

        self.assertEqual(errors, [])
        self.venue.refresh_from_db()
        self.assertEqual((self.venue.overall_rating, self.venue.total_reviews), (Decimal('4.0'), 3))

    def test_concurrent_duplicate_review(self):
        errors = self._run_concurrently(
            lambda: ReviewService.submit_review(self.alice.pk, self.venue.pk, 5),
            lambda: ReviewService.submit_review(self.alice.pk, self.venue.pk, 1),
        )

        self.assertEqual(len(errors), 1)
        self.assertIsInstance(errors[0], ConflictError)
        self.venue.refresh_from_db()
        self.alice.refresh_from_db()
        self.assertEqual(self.venue.total_reviews, 2)
        self.assertEqual(self.alice.total_reviews, 1)


class ReviewAPITests(APITestCase):
    def setUp(self):
        self.venue = make_venue()
        self.user = User.objects.create_user(username='writer', password='password123')
        self.profile = UserProfile.objects.create(user=self.user)
        self.client.force_authenticate(user=self.user)
        self.list_url = reverse('reviews:review-list')

    def test_submit_review(self):
        response = self.client.post(self.list_url, {
            'venue_id': str(self.venue.pk),
            'overall_rating': 5,
            'wifi_rating': 4,
            'title': 'Great place to work',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['overall_rating'], 5)
        self.venue.refresh_from_db()
        self.assertEqual(self.venue.total_reviews, 1)

    def test_duplicate_review_returns_conflict(self):
        payload = {'venue_id': str(self.venue.pk), 'overall_rating': 5}
        self.client.post(self.list_url, payload, format='json')

        response = self.client.post(self.list_url, payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error']['code'], 'CONFLICT')
        self.assertTrue(response.data['error']['trace_id'].startswith('req_'))

    def test_invalid_rating_returns_validation_error(self):
        response = self.client.post(self.list_url, {
            'venue_id': str(self.venue.pk), 'overall_rating': 7,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error']['code'], 'VALIDATION_ERROR')

    def test_edit_and_delete(self):
        review = ReviewService.submit_review(self.profile.pk, self.venue.pk, 3)
        detail_url = reverse('reviews:review-detail', args=[review.pk])

        response = self.client.patch(detail_url, {'overall_rating': 4}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['overall_rating'], 4)

        response = self.client.delete(detail_url)
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.venue.refresh_from_db()
        self.assertEqual(self.venue.total_reviews, 0)

    def test_vote_endpoint(self):
        author = make_profile('author')
        review = ReviewService.submit_review(author.pk, self.venue.pk, 4)
        vote_url = reverse('reviews:review-vote', args=[review.pk])

        response = self.client.post(vote_url, {'is_helpful': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        response = self.client.patch(vote_url, {'is_helpful': False}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        review.refresh_from_db()
        self.assertEqual((review.total_votes, review.helpful_votes), (1, 0))

        response = self.client.delete(vote_url)
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_requires_authentication(self):
        self.client.force_authenticate(user=None)
        response = self.client.post(self.list_url, {'venue_id': str(self.venue.pk), 'overall_rating': 5}, format='json')
        self.assertIn(response.status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))
