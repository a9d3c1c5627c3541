"""
Tests for the recommendations module.
"""
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import patch

from django.contrib.auth.models import User
from django.contrib.gis.geos import Point
from django.db import OperationalError
from django.test import TestCase, override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from core.exceptions import StoreError, ValidationError
from locations.models import Venue, VenueAmenities, VenueStatus
from recommendations.dtos import CompatibilityWeights, VenueRecommendation, VenueSearchResult
from recommendations.query_service import VenueQueryService
from recommendations.scoring_service import ScoringService
from user.models import UserProfile

SF_LAT, SF_LNG = 37.7749, -122.4194


def make_venue(name, lat=SF_LAT, lng=SF_LNG, rating='0.0', status=VenueStatus.ACTIVE, wifi=None, noise=None):
    venue = Venue.objects.create(
        name=name,
        address=f"{name} street",
        location=Point(lng, lat, srid=4326),
        status=status,
        overall_rating=Decimal(rating),
    )
    if wifi is not None or noise is not None:
        VenueAmenities.objects.create(venue=venue, wifi_quality=wifi, noise_level=noise)
    return venue


def stub_venue(rating, wifi=None, noise=None, amenities=True):
    """Unsaved stand-in, enough for the pure scoring path."""
    record = SimpleNamespace(wifi_quality=wifi, noise_level=noise) if amenities else None
    return SimpleNamespace(overall_rating=Decimal(rating), amenities_or_none=lambda: record)


def stub_user(noise_tolerance=None, wifi_importance=None):
    return SimpleNamespace(
        noise_tolerance=noise_tolerance,
        wifi_importance=wifi_importance,
        is_personalized=noise_tolerance is not None and wifi_importance is not None,
    )


class ScoringServiceTestCase(TestCase):
    """Test cases for ScoringService"""

    def setUp(self):
        self.scoring_service = ScoringService(CompatibilityWeights())
        self.user = stub_user(noise_tolerance=2, wifi_importance=5)

    def test_formula(self):
        """4.0*0.4 + 5*5*0.2 - |1-2|*0.1 + 2.5 = 9.0"""
        score = self.scoring_service.compute_score(self.user, stub_venue('4.0', wifi=5, noise=1))
        self.assertEqual(score, Decimal('9.0'))

    def test_noise_mismatch_penalized(self):
        """4.0*0.4 + 2*5*0.2 - |5-2|*0.1 + 2.5 = 5.8"""
        score = self.scoring_service.compute_score(self.user, stub_venue('4.0', wifi=2, noise=5))
        self.assertEqual(score, Decimal('5.8'))

    def test_missing_amenities_use_neutral_defaults(self):
        """No survey: wifi 3, noise 3 -> 4.0*0.4 + 3*5*0.2 - 1*0.1 + 2.5 = 7.0"""
        without = self.scoring_service.compute_score(self.user, stub_venue('4.0', amenities=False))
        partial = self.scoring_service.compute_score(self.user, stub_venue('4.0', wifi=None, noise=None))
        self.assertEqual(without, Decimal('7.0'))
        self.assertEqual(partial, without)

    def test_unpersonalized_user_gets_rating(self):
        score = self.scoring_service.compute_score(stub_user(noise_tolerance=3), stub_venue('4.3', wifi=5, noise=1))
        self.assertEqual(score, Decimal('4.3'))

    def test_score_is_monotonic_in_wifi_quality(self):
        scores = [
            self.scoring_service.compute_score(self.user, stub_venue('3.0', wifi=wifi, noise=2))
            for wifi in range(1, 6)
        ]
        self.assertEqual(scores, sorted(scores))

    def test_rank_orders_by_score_then_rating(self):
        a = stub_venue('4.0', wifi=3, noise=2)
        b = stub_venue('5.0', wifi=1, noise=2)
        a.pk, b.pk = 'a', 'b'
        # a: 1.6 + 3.0 + 2.5 = 7.1, b: 2.0 + 1.0 + 2.5 = 5.5
        ranked = self.scoring_service.rank(self.user, [(b, Decimal('0.10')), (a, Decimal('2.00'))])
        self.assertEqual([venue.pk for venue, _, _ in ranked], ['a', 'b'])

        tie_low = stub_venue('3.0', amenities=False)
        tie_high = stub_venue('3.0', amenities=False)
        tie_low.pk, tie_high.pk = 'x', 'y'
        ranked = ScoringService(CompatibilityWeights()).rank(
            stub_user(), [(tie_high, Decimal('1.00')), (tie_low, Decimal('0.50'))]
        )
        # equal score and rating: nearer first
        self.assertEqual([venue.pk for venue, _, _ in ranked], ['x', 'y'])

    def test_custom_weights(self):
        weights = CompatibilityWeights.from_mapping({'rating': '1', 'wifi': 0, 'noise': 0, 'offset': 0})
        score = ScoringService(weights).compute_score(self.user, stub_venue('4.2', wifi=5, noise=1))
        self.assertEqual(score, Decimal('4.2'))

    def test_unknown_weight_rejected(self):
        with self.assertRaises(ValueError):
            CompatibilityWeights.from_mapping({'distance': 1})

    @override_settings(VENUE_COMPATIBILITY_WEIGHTS={'offset': '0'})
    def test_weights_from_settings(self):
        self.assertEqual(ScoringService().weights.offset, Decimal('0'))
        self.assertEqual(ScoringService().weights.rating, Decimal('0.4'))


class VenueQueryServiceTestCase(TestCase):
    def setUp(self):
        self.service = VenueQueryService(ScoringService(CompatibilityWeights()))
        user = User.objects.create_user(username='worker', password='testpass123')
        self.profile = UserProfile.objects.create(user=user, noise_tolerance=2, wifi_importance=5)

    def test_search_venues(self):
        """Both venues within 5 km come back nearest first; 1 km keeps only the first."""
        first = make_venue("Mission Coffee", rating='4.5')
        second = make_venue("Dolores Desk", lat=37.7582)

        results = self.service.search_venues(SF_LAT, SF_LNG, 5)

        self.assertEqual([r.venue_id for r in results], [first.pk, second.pk])
        self.assertIsInstance(results[0], VenueSearchResult)
        self.assertEqual(results[0].overall_rating, Decimal('4.5'))
        self.assertEqual(results[0].distance_km, Decimal('0.00'))

        results = self.service.search_venues(SF_LAT, SF_LNG, 1)
        self.assertEqual([r.venue_id for r in results], [first.pk])

    def test_search_validation(self):
        for args in [(91, 0, 5), (0, 181, 5), (0, 0, 0), (0, 0, -2), ('abc', 0, 5), (0, 0, 'nan')]:
            with self.assertRaises(ValidationError):
                self.service.search_venues(*args)
        with self.assertRaises(ValidationError):
            self.service.search_venues(0, 0, 5, status='open')

    def test_search_has_no_radius_cap_by_default(self):
        """Widening the radius only ever adds venues."""
        near = make_venue("Mission Coffee")
        far = make_venue("Oakland Office", lat=37.8044, lng=-122.2712)

        narrow = self.service.search_venues(SF_LAT, SF_LNG, 5)
        wide = self.service.search_venues(SF_LAT, SF_LNG, 60)

        self.assertEqual([r.venue_id for r in narrow], [near.pk])
        self.assertEqual([r.venue_id for r in wide], [near.pk, far.pk])

    @override_settings(VENUE_SEARCH_MAX_RADIUS_KM=10)
    def test_search_radius_cap(self):
        with self.assertRaises(ValidationError):
            self.service.search_venues(SF_LAT, SF_LNG, 11)

    @patch('locations.services.GeoService.radius_queryset')
    def test_search_database_failure_is_store_error(self, radius_queryset):
        radius_queryset.side_effect = OperationalError("canceling statement due to statement timeout")

        with self.assertRaises(StoreError):
            self.service.search_venues(SF_LAT, SF_LNG, 5)

    @patch('locations.services.GeoService.radius_queryset')
    def test_recommend_database_failure_is_store_error(self, radius_queryset):
        radius_queryset.side_effect = OperationalError("server closed the connection unexpectedly")

        with self.assertRaises(StoreError):
            self.service.recommend_venues(self.profile.pk, SF_LAT, SF_LNG, 5)

    def test_recommend_prefers_matching_amenities(self):
        """Equal rating and distance: the quiet, fast-wifi venue ranks first."""
        venue_a = make_venue("Quiet Fast", lng=-122.4100, rating='4.0', wifi=5, noise=1)
        venue_b = make_venue("Loud Slow", lng=-122.4288, rating='4.0', wifi=2, noise=5)

        results = self.service.recommend_venues(self.profile.pk, SF_LAT, SF_LNG, 5)

        self.assertEqual([r.venue_id for r in results], [venue_a.pk, venue_b.pk])
        self.assertIsInstance(results[0], VenueRecommendation)
        self.assertEqual(results[0].compatibility_score, Decimal('9.0'))
        self.assertEqual(results[1].compatibility_score, Decimal('5.8'))

    def test_recommend_only_active_venues(self):
        make_venue("Closed", rating='5.0', status=VenueStatus.CLOSED)
        active = make_venue("Open", rating='3.0')

        results = self.service.recommend_venues(self.profile.pk, SF_LAT, SF_LNG, 5)
        self.assertEqual([r.venue_id for r in results], [active.pk])

    def test_recommend_unknown_user(self):
        with self.assertRaises(ValidationError):
            self.service.recommend_venues('00000000-0000-0000-0000-000000000000', SF_LAT, SF_LNG, 5)
        with self.assertRaises(ValidationError):
            self.service.recommend_venues('not-a-uuid', SF_LAT, SF_LNG, 5)

    def test_recommend_is_deterministic(self):
        for i in range(4):
            make_venue(f"Same {i}", rating='3.0')
        first = self.service.recommend_venues(self.profile.pk, SF_LAT, SF_LNG, 5)
        second = self.service.recommend_venues(self.profile.pk, SF_LAT, SF_LNG, 5)
        self.assertEqual(first, second)


class RecommendationsAPITestCase(APITestCase):
    def setUp(self):
        user = User.objects.create_user(username='worker', password='testpass123')
        self.profile = UserProfile.objects.create(user=user, noise_tolerance=2, wifi_importance=5)
        self.venue = make_venue("Quiet Fast", rating='4.0', wifi=5, noise=1)
        self.url = reverse('recommendations:recommend_venues')

    def test_recommend_endpoint(self):
        response = self.client.get(self.url, {
            'user_id': str(self.profile.pk), 'lat': SF_LAT, 'lng': SF_LNG, 'radius_km': 5,
        })

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        item = response.data['recommendations'][0]
        self.assertEqual(item['venue_id'], str(self.venue.pk))
        self.assertEqual(item['compatibility_score'], '9.0')

    def test_unknown_user_is_validation_error(self):
        response = self.client.get(self.url, {
            'user_id': '00000000-0000-0000-0000-000000000000', 'lat': SF_LAT, 'lng': SF_LNG, 'radius_km': 5,
        })
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error']['code'], 'VALIDATION_ERROR')

    @patch('locations.services.GeoService.radius_queryset')
    def test_database_failure_is_service_unavailable(self, radius_queryset):
        radius_queryset.side_effect = OperationalError("canceling statement due to statement timeout")

        response = self.client.get(self.url, {
            'user_id': str(self.profile.pk), 'lat': SF_LAT, 'lng': SF_LNG, 'radius_km': 5,
        })

        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertEqual(response.data['error']['code'], 'STORE_ERROR')

    def test_missing_parameters(self):
        response = self.client.get(self.url, {'lat': SF_LAT, 'lng': SF_LNG})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error']['details']['fields'], ['user_id', 'radius_km'])
