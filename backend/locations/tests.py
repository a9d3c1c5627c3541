from decimal import Decimal

from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase
from django.contrib.gis.geos import Point
from django.contrib.auth import get_user_model

from core.exceptions import NotFoundError, ValidationError
from user.models import UserProfile
from .models import Venue, VenueAmenities, VenueStatus
from .services import GeoService, VenueService

User = get_user_model()

SF_LAT, SF_LNG = 37.7749, -122.4194


def make_venue(name, lat, lng, status=VenueStatus.ACTIVE, **kwargs):
    return Venue.objects.create(
        name=name,
        address=f"{name} street",
        location=Point(lng, lat, srid=4326),
        status=status,
        **kwargs
    )


class VenueModelTests(TestCase):
    def setUp(self):
        self.venue = make_venue("Test Cafe", 20.0, 10.0)

    def test_create_venue(self):
        """Test that a venue can be created with empty aggregates."""
        self.assertEqual(Venue.objects.count(), 1)
        self.assertEqual(self.venue.overall_rating, Decimal('0.0'))
        self.assertEqual(self.venue.total_reviews, 0)
        # Note: Point(x, y) maps to (lon, lat)
        self.assertEqual(self.venue.get_lat_lon(), (20.0, 10.0))

    def test_invalid_coordinates(self):
        """Test that invalid coordinates raise a ValueError during save."""
        venue = Venue(
            name="Bad Location",
            address="nowhere",
            location=Point(200.0, 100.0, srid=4326)  # Invalid: Lat > 90, Lon > 180
        )
        with self.assertRaises(ValueError):
            venue.save()

    def test_amenities_or_none(self):
        """A venue without a survey reports None instead of raising."""
        self.assertIsNone(self.venue.amenities_or_none())
        VenueAmenities.objects.create(venue=self.venue, wifi_quality=4)
        venue = Venue.objects.select_related('amenities').get(pk=self.venue.pk)
        self.assertEqual(venue.amenities_or_none().wifi_quality, 4)


class GeoServiceTests(TestCase):
    def setUp(self):
        self.center = GeoService.make_point(SF_LAT, SF_LNG)
        self.first = make_venue("Mission Coffee", SF_LAT, SF_LNG)
        # ~1.85 km due south
        self.second = make_venue("Dolores Desk", 37.7582, SF_LNG)
        # ~100 km away
        self.far = make_venue("Far Away", 38.6749, SF_LNG)

    def test_radius_returns_nearest_first(self):
        """Both venues within 5 km come back, nearest first."""
        results = GeoService.find_within_radius(self.center, 5)

        self.assertEqual([v.pk for v, _ in results], [self.first.pk, self.second.pk])
        self.assertEqual(results[0][1], Decimal('0.00'))
        self.assertGreater(results[1][1], Decimal('1.80'))
        self.assertLess(results[1][1], Decimal('1.90'))

    def test_smaller_radius_excludes_farther_venue(self):
        results = GeoService.find_within_radius(self.center, 1)
        self.assertEqual([v.pk for v, _ in results], [self.first.pk])

    def test_distances_are_rounded_to_two_places(self):
        for _, distance_km in GeoService.find_within_radius(self.center, 5):
            self.assertEqual(distance_km, distance_km.quantize(Decimal('0.01')))

    def test_zero_radius_keeps_only_exact_location(self):
        results = GeoService.find_within_radius(self.center, 0)
        self.assertEqual([v.pk for v, _ in results], [self.first.pk])

    def test_negative_radius_rejected(self):
        with self.assertRaises(ValidationError):
            GeoService.find_within_radius(self.center, -1)

    def test_status_filter(self):
        """Only the requested status is returned; None means any status."""
        pending = make_venue("Pending Place", SF_LAT, -122.4190, status=VenueStatus.PENDING)

        active_ids = [v.pk for v, _ in GeoService.find_within_radius(self.center, 5)]
        self.assertNotIn(pending.pk, active_ids)

        pending_ids = [v.pk for v, _ in GeoService.find_within_radius(self.center, 5, VenueStatus.PENDING)]
        self.assertEqual(pending_ids, [pending.pk])

        any_ids = [v.pk for v, _ in GeoService.find_within_radius(self.center, 5, None)]
        self.assertIn(pending.pk, any_ids)
        self.assertIn(self.first.pk, any_ids)

    def test_soft_deleted_venues_are_excluded(self):
        VenueService.soft_delete(self.second.pk)
        results = GeoService.find_within_radius(self.center, 5)
        self.assertEqual([v.pk for v, _ in results], [self.first.pk])

    def test_empty_result(self):
        center = GeoService.make_point(0.0, 0.0)
        self.assertEqual(GeoService.find_within_radius(center, 10), [])

    def test_equal_distance_is_ordered_by_id(self):
        twin = make_venue("Twin", SF_LAT, SF_LNG)
        results = GeoService.find_within_radius(self.center, 0.5)
        ids = [v.pk for v, _ in results]
        self.assertEqual(ids, sorted([self.first.pk, twin.pk], key=str))

    def test_larger_radius_is_superset_in_distance_order(self):
        previous = set()
        for radius in (0.5, 1, 2, 5, 50, 150):
            results = GeoService.find_within_radius(self.center, radius)
            ids = {v.pk for v, _ in results}
            self.assertTrue(previous <= ids)
            distances = [d for _, d in results]
            self.assertEqual(distances, sorted(distances))
            previous = ids
        self.assertIn(self.far.pk, previous)

    def test_distance_km(self):
        self.assertEqual(GeoService.distance_km(self.first, SF_LAT, SF_LNG), Decimal('0.00'))
        self.assertGreater(GeoService.distance_km(self.far, SF_LAT, SF_LNG), Decimal('99'))


class VenueServiceTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username='owner', password='password123')
        self.profile = UserProfile.objects.create(user=self.user)

    def test_create_venue_starts_pending(self):
        venue = VenueService.create_venue(
            "New Spot", "1 Main St", SF_LAT, SF_LNG,
            created_by_id=self.profile.pk, city="San Francisco"
        )
        self.assertEqual(venue.status, VenueStatus.PENDING)
        self.assertEqual(venue.created_by_id, self.profile.pk)
        self.assertEqual(venue.city, "San Francisco")

    def test_create_venue_rejects_bad_coordinates(self):
        with self.assertRaises(ValidationError):
            VenueService.create_venue("Nowhere", "1 Main St", 91, 0)
        self.assertEqual(Venue.objects.count(), 0)

    def test_create_venue_rejects_unknown_fields(self):
        with self.assertRaises(ValidationError):
            VenueService.create_venue("Spot", "1 Main St", 0, 0, category="cafe")

    def test_set_status(self):
        venue = VenueService.create_venue("Spot", "1 Main St", 0, 0)
        VenueService.set_status(venue.pk, VenueStatus.ACTIVE)
        venue.refresh_from_db()
        self.assertEqual(venue.status, VenueStatus.ACTIVE)

        with self.assertRaises(ValidationError):
            VenueService.set_status(venue.pk, 'open')

    def test_soft_delete_hides_venue(self):
        venue = make_venue("Spot", 0, 0)
        VenueService.soft_delete(venue.pk)

        venue.refresh_from_db()
        self.assertTrue(venue.is_deleted)
        with self.assertRaises(NotFoundError):
            VenueService.get_venue(venue.pk)
        with self.assertRaises(NotFoundError):
            VenueService.soft_delete(venue.pk)

    def test_upsert_amenities_creates_then_updates(self):
        venue = make_venue("Spot", 0, 0)

        VenueService.upsert_amenities(venue.pk, wifi_quality=4, power_outlets=True)
        VenueService.upsert_amenities(venue.pk, noise_level=2)

        amenities = VenueAmenities.objects.get(venue=venue)
        self.assertEqual(amenities.wifi_quality, 4)
        self.assertEqual(amenities.noise_level, 2)
        self.assertTrue(amenities.power_outlets)
        self.assertEqual(VenueAmenities.objects.filter(venue=venue).count(), 1)

    def test_upsert_amenities_validates_scales(self):
        venue = make_venue("Spot", 0, 0)
        with self.assertRaises(ValidationError):
            VenueService.upsert_amenities(venue.pk, wifi_quality=6)
        with self.assertRaises(ValidationError):
            VenueService.upsert_amenities(venue.pk, price_range=5)
        with self.assertRaises(ValidationError):
            VenueService.upsert_amenities(venue.pk, has_food='yes')
        self.assertFalse(VenueAmenities.objects.filter(venue=venue).exists())


class VenueAPITests(APITestCase):
    def setUp(self):
        self.first = make_venue("Mission Coffee", SF_LAT, SF_LNG)
        self.second = make_venue("Dolores Desk", 37.7582, SF_LNG)
        self.search_url = reverse('locations:venue-search')

    def test_search_endpoint(self):
        """Test searching venues around a point."""
        response = self.client.get(self.search_url, {'lat': SF_LAT, 'lng': SF_LNG, 'radius_km': 5})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)
        names = [item['name'] for item in response.data['results']]
        self.assertEqual(names, ["Mission Coffee", "Dolores Desk"])
        self.assertEqual(response.data['results'][0]['distance_km'], '0.00')

    def test_search_rejects_bad_latitude(self):
        response = self.client.get(self.search_url, {'lat': 95, 'lng': SF_LNG, 'radius_km': 5})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error']['code'], 'VALIDATION_ERROR')
        self.assertEqual(response.data['error']['message'], 'lat out of range')

    def test_search_rejects_non_positive_radius(self):
        response = self.client.get(self.search_url, {'lat': SF_LAT, 'lng': SF_LNG, 'radius_km': 0})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_search_requires_parameters(self):
        response = self.client.get(self.search_url, {'lat': SF_LAT})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error']['details']['fields'], ['lng', 'radius_km'])

    def test_venue_detail(self):
        VenueAmenities.objects.create(venue=self.first, wifi_quality=5, noise_level=1)
        url = reverse('locations:venue-detail', args=[self.first.pk])

        response = self.client.get(url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['name'], "Mission Coffee")
        self.assertAlmostEqual(response.data['latitude'], SF_LAT)
        self.assertEqual(response.data['amenities']['wifi_quality'], 5)

    def test_create_requires_authentication(self):
        response = self.client.post(reverse('locations:venue-list'), {
            'name': 'Spot', 'address': '1 Main St', 'latitude': 0, 'longitude': 0,
        }, format='json')
        self.assertIn(response.status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))

    def test_create_venue(self):
        user = User.objects.create_user(username='proposer', password='password123')
        profile = UserProfile.objects.create(user=user)
        self.client.force_authenticate(user=user)

        response = self.client.post(reverse('locations:venue-list'), {
            'name': 'Spot', 'address': '1 Main St', 'latitude': 10.5, 'longitude': 20.5,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], VenueStatus.PENDING)
        venue = Venue.objects.get(pk=response.data['id'])
        self.assertEqual(venue.created_by_id, profile.pk)

    def test_distance_endpoint(self):
        url = reverse('locations:venue-distance', args=[self.first.pk])

        response = self.client.get(url, {'lat': 37.7582, 'lng': SF_LNG})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['venue_id'], str(self.first.pk))
        self.assertTrue(Decimal('1.80') < Decimal(response.data['distance_km']) < Decimal('1.90'))

    def test_amenities_endpoint(self):
        user = User.objects.create_user(username='surveyor', password='password123')
        self.client.force_authenticate(user=user)
        url = reverse('locations:venue-amenities', args=[self.first.pk])

        response = self.client.put(url, {'wifi_quality': 4, 'power_outlets': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['wifi_quality'], 4)

        response = self.client.patch(url, {'wifi_quality': 9}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self.first.amenities.wifi_quality, 4)

    def test_amenities_endpoint_input_shapes(self):
        user = User.objects.create_user(username='surveyor', password='password123')
        self.client.force_authenticate(user=user)
        url = reverse('locations:venue-amenities', args=[self.first.pk])

        response = self.client.put(url, [{'wifi_quality': 4}], format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error']['code'], 'VALIDATION_ERROR')
        self.assertFalse(VenueAmenities.objects.filter(venue=self.first).exists())

        # form-encoded values arrive as strings
        response = self.client.patch(url, {'wifi_quality': '3', 'power_outlets': 'true'}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        amenities = VenueAmenities.objects.get(venue=self.first)
        self.assertEqual(amenities.wifi_quality, 3)
        self.assertTrue(amenities.power_outlets)
        self.assertTrue(amenities.has_coffee)

    def test_status_requires_staff(self):
        user = User.objects.create_user(username='regular', password='password123')
        self.client.force_authenticate(user=user)
        url = reverse('locations:venue-set-status', args=[self.first.pk])

        response = self.client.post(url, {'status': 'closed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        user.is_staff = True
        user.save()
        response = self.client.post(url, {'status': 'closed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'closed')

        response = self.client.post(url, {'status': 'open'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.post(url, ['active'], format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.first.refresh_from_db()
        self.assertEqual(self.first.status, VenueStatus.CLOSED)
