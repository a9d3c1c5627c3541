"""
Domain services for the locations app: geodesic radius queries over the
spatially indexed venue table and the venue write paths.
"""
import logging
from decimal import Decimal
from typing import List, Optional, Tuple

from django.contrib.gis.db.models.functions import Distance as DistanceFunc
from django.contrib.gis.geos import Point
from django.contrib.gis.measure import Distance
from django.db.models import QuerySet
from django.utils import timezone

from core.db import atomic_with_retry, store_read
from core.exceptions import NotFoundError, ValidationError
from core.rounding import round_km
from core.validators import require_number, validate_choice, validate_coordinates, validate_scale
from .models import Venue, VenueAmenities, VenueStatus

logger = logging.getLogger(__name__)


class GeoService:
    """
    Domain Service that encapsulates all spatial business logic.
    Isolates direct database queries so that callers interact with a clean
    API rather than raw ORM/SQL calls.
    """

    @staticmethod
    def make_point(lat: float, lon: float) -> Point:
        """Build a WGS84 point. Note the GEOS argument order is (x=lon, y=lat)."""
        return Point(lon, lat, srid=4326)

    @staticmethod
    def radius_queryset(center: Point, radius_km: float, status: Optional[str] = VenueStatus.ACTIVE) -> QuerySet:
        """
        Venues whose geography lies within radius_km of center, closest first.

        ST_DWithin on the geography column is answered from the GiST index;
        ST_Distance is only evaluated for rows that pass it. Both use the
        same spheroidal geography metric, so filter and ordering agree.
        """
        return (
            Venue.objects.not_deleted()
            .with_status(status)
            .filter(location__dwithin=(center, Distance(km=radius_km)))
            .annotate(distance=DistanceFunc('location', center))
            .select_related('amenities')
            .order_by('distance', 'id')
        )

    @staticmethod
    def find_within_radius(
        center: Point,
        radius_km: float,
        status: Optional[str] = VenueStatus.ACTIVE,
    ) -> List[Tuple[Venue, Decimal]]:
        """
        Execute the radius query and return (venue, distance_km) pairs.

        Args:
            center: WGS84 point
            radius_km: non-negative radius in kilometres
            status: venue status to keep, None for every status

        Returns:
            List ordered by ascending distance, ties by venue id. distance_km
            is rounded to 2 decimals; an empty list when nothing matches.
        """
        radius_km = require_number('radius_km', radius_km)
        if radius_km < 0:
            raise ValidationError("radius_km must not be negative", details={'field': 'radius_km'})
        if status is not None:
            validate_choice('status', status, VenueStatus.values)

        results = []
        for venue in GeoService.radius_queryset(center, radius_km, status):
            distance_km = round_km(venue.distance.km)
            if radius_km == 0 and distance_km != 0:
                continue
            results.append((venue, distance_km))
        return results

    @staticmethod
    @store_read
    def distance_km(venue: Venue, lat: float, lon: float) -> Decimal:
        """Distance from one venue to a point, same metric as the radius query."""
        lat, lon = validate_coordinates(lat, lon)
        target = GeoService.make_point(lat, lon)
        row = (
            Venue.objects.filter(pk=venue.pk)
            .annotate(distance=DistanceFunc('location', target))
            .values_list('distance', flat=True)
            .first()
        )
        if row is None:
            raise NotFoundError("venue not found", details={'venue_id': str(venue.pk)})
        return round_km(row.km)


AMENITY_SCALES = {
    'wifi_quality': (1, 5),
    'noise_level': (1, 5),
    'seating_comfort': (1, 5),
    'price_range': (1, 4),
}

AMENITY_FLAGS = {
    'wifi_password_required',
    'power_outlets',
    'has_food',
    'has_coffee',
    'outdoor_seating',
    'natural_lighting',
    'air_conditioning',
    'pet_friendly',
    'wheelchair_accessible',
    'meeting_rooms',
    'phone_booth',
    'parking_available',
}

VENUE_DETAIL_FIELDS = {'city', 'country', 'postal_code', 'phone', 'website', 'hours', 'place_id'}


class VenueService:
    """Venue write paths. Promotion and moderation policy is decided upstream."""

    @staticmethod
    @store_read
    def get_venue(venue_id) -> Venue:
        venue = Venue.objects.not_deleted().select_related('amenities').filter(pk=venue_id).first()
        if venue is None:
            raise NotFoundError("venue not found", details={'venue_id': str(venue_id)})
        return venue

    @staticmethod
    @atomic_with_retry
    def create_venue(name: str, address: str, lat, lon, created_by_id=None, **details) -> Venue:
        """New venues always start as pending."""
        if not name or not address:
            raise ValidationError("name and address are required", details={'fields': ['name', 'address']})
        lat, lon = validate_coordinates(lat, lon)
        unknown = set(details) - VENUE_DETAIL_FIELDS
        if unknown:
            raise ValidationError("unknown venue fields", details={'fields': sorted(unknown)})

        venue = Venue.objects.create(
            name=name,
            address=address,
            location=GeoService.make_point(lat, lon),
            created_by_id=created_by_id,
            status=VenueStatus.PENDING,
            **details
        )
        logger.info(f"Venue {venue.id} created (pending) by {created_by_id}")
        return venue

    @staticmethod
    @atomic_with_retry
    def set_status(venue_id, status: str) -> Venue:
        validate_choice('status', status, VenueStatus.values)
        venue = Venue.objects.select_for_update().not_deleted().filter(pk=venue_id).first()
        if venue is None:
            raise NotFoundError("venue not found", details={'venue_id': str(venue_id)})
        previous = venue.status
        venue.status = status
        venue.save(update_fields=['status', 'updated_at'])
        logger.info(f"Venue {venue_id} status {previous} -> {status}")
        return venue

    @staticmethod
    @atomic_with_retry
    def soft_delete(venue_id) -> Venue:
        venue = Venue.objects.select_for_update().not_deleted().filter(pk=venue_id).first()
        if venue is None:
            raise NotFoundError("venue not found", details={'venue_id': str(venue_id)})
        venue.deleted_at = timezone.now()
        venue.save(update_fields=['deleted_at', 'updated_at'])
        logger.info(f"Venue {venue_id} soft-deleted")
        return venue

    @staticmethod
    @atomic_with_retry
    def upsert_amenities(venue_id, **fields) -> VenueAmenities:
        """Create the single amenities record of a venue, or update it in place."""
        unknown = set(fields) - set(AMENITY_SCALES) - AMENITY_FLAGS
        if unknown:
            raise ValidationError("unknown amenity fields", details={'fields': sorted(unknown)})
        for name, (low, high) in AMENITY_SCALES.items():
            if name in fields:
                validate_scale(name, fields[name], low, high)
        for name in AMENITY_FLAGS & set(fields):
            if not isinstance(fields[name], bool):
                raise ValidationError(f"{name} must be a boolean", details={'field': name})

        venue = Venue.objects.select_for_update().not_deleted().filter(pk=venue_id).first()
        if venue is None:
            raise NotFoundError("venue not found", details={'venue_id': str(venue_id)})

        amenities, created = VenueAmenities.objects.update_or_create(venue=venue, defaults=fields)
        logger.info(f"Amenities for venue {venue_id} {'created' if created else 'updated'}")
        return amenities
