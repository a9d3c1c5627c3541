from django.test import TestCase
from django.urls import reverse
from django.contrib.auth import get_user_model
from django.contrib.gis.geos import Point
from rest_framework import status
from rest_framework.test import APITestCase

from core.exceptions import NotFoundError, ValidationError
from locations.models import Venue, VenueStatus
from reviews.services import ReviewService
from .models import PreferredSeating, UserProfile, WorkStyle
from .services import PreferenceService

User = get_user_model()


class UserProfileTests(TestCase):
    def setUp(self):
        self.user1 = User.objects.create_user(username='user1', password='password123')
        self.profile1 = UserProfile.objects.create(user=self.user1)

    def test_defaults(self):
        """A new profile has no scoring preferences and no reviews."""
        self.assertIsNone(self.profile1.noise_tolerance)
        self.assertIsNone(self.profile1.wifi_importance)
        self.assertEqual(self.profile1.preferred_seating, PreferredSeating.ANY)
        self.assertEqual(self.profile1.work_style, WorkStyle.MIXED)
        self.assertEqual(self.profile1.total_reviews, 0)
        self.assertFalse(self.profile1.is_personalized)

    def test_update_preferences(self):
        """Test that preferences are validated and persisted."""
        PreferenceService.update_preferences(
            self.profile1.pk,
            noise_tolerance=2,
            wifi_importance=5,
            preferred_seating=PreferredSeating.QUIET,
        )
        self.profile1.refresh_from_db()

        self.assertEqual(self.profile1.noise_tolerance, 2)
        self.assertEqual(self.profile1.wifi_importance, 5)
        self.assertEqual(self.profile1.preferred_seating, PreferredSeating.QUIET)
        self.assertTrue(self.profile1.is_personalized)

    def test_clearing_a_preference(self):
        PreferenceService.update_preferences(self.profile1.pk, noise_tolerance=2, wifi_importance=5)
        PreferenceService.update_preferences(self.profile1.pk, wifi_importance=None)
        self.profile1.refresh_from_db()

        self.assertIsNone(self.profile1.wifi_importance)
        self.assertFalse(self.profile1.is_personalized)

    def test_invalid_preferences(self):
        with self.assertRaises(ValidationError):
            PreferenceService.update_preferences(self.profile1.pk, noise_tolerance=6)
        with self.assertRaises(ValidationError):
            PreferenceService.update_preferences(self.profile1.pk, work_style='remote')
        with self.assertRaises(ValidationError):
            PreferenceService.update_preferences(self.profile1.pk, total_reviews=10)
        with self.assertRaises(ValidationError):
            PreferenceService.update_preferences(self.profile1.pk)

    def test_unknown_user(self):
        with self.assertRaises(NotFoundError):
            PreferenceService.update_preferences('00000000-0000-0000-0000-000000000000', noise_tolerance=3)

    def test_stats(self):
        """Stats combine the review counter with votes received on active reviews."""
        voter = UserProfile.objects.create(user=User.objects.create_user(username='voter', password='password123'))
        venue = Venue.objects.create(
            name="Cafe",
            address="1 Main St",
            location=Point(0.0, 0.0, srid=4326),
            status=VenueStatus.ACTIVE,
        )
        review = ReviewService.submit_review(self.profile1.pk, venue.pk, 4)
        ReviewService.cast_vote(voter.pk, review.pk, True)

        stats = PreferenceService.get_stats(self.profile1.pk)

        self.assertEqual(stats['total_reviews'], 1)
        self.assertEqual(stats['votes_received'], 1)
        self.assertEqual(stats['helpful_votes_received'], 1)


class PreferencesAPITests(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(username='me', password='password123')
        self.profile = UserProfile.objects.create(user=self.user)
        self.client.force_authenticate(user=self.user)

    def test_me(self):
        response = self.client.get(reverse('user:me'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['username'], 'me')

    def test_patch_preferences(self):
        url = reverse('user:preferences')
        response = self.client.patch(url, {'noise_tolerance': 3, 'work_style': 'focused'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['noise_tolerance'], 3)
        self.assertEqual(response.data['work_style'], 'focused')

        response = self.client.get(url)
        self.assertEqual(response.data['noise_tolerance'], 3)

    def test_patch_rejects_out_of_range(self):
        response = self.client.patch(reverse('user:preferences'), {'wifi_importance': 0}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error']['code'], 'VALIDATION_ERROR')

    def test_stats_endpoint(self):
        response = self.client.get(reverse('user:stats'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_reviews'], 0)
        self.assertEqual(response.data['helpful_votes_received'], 0)
