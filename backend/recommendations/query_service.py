"""
VenueQueryService: the read surface of the venue core.

Composes the radius engine and the compatibility scorer. All inputs are
validated before any query runs, and a rejected request never yields a
partial result. Reads are plain queries: no locks, no retries. Database
failures on the read path surface as StoreError.
"""
import logging
from typing import List, Optional

from django.conf import settings

from core.db import store_read
from core.exceptions import ValidationError
from core.validators import validate_choice, validate_coordinates, validate_radius, validate_uuid
from locations.models import VenueStatus
from locations.services import GeoService
from recommendations.dtos import VenueRecommendation, VenueSearchResult
from recommendations.scoring_service import ScoringService
from user.models import UserProfile

logger = logging.getLogger(__name__)


class VenueQueryService:

    def __init__(self, scoring_service: Optional[ScoringService] = None):
        self.scoring_service = scoring_service or ScoringService()

    @staticmethod
    def _max_radius_km():
        return getattr(settings, 'VENUE_SEARCH_MAX_RADIUS_KM', None)

    @store_read
    def search_venues(self, lat, lng, radius_km, status: str = VenueStatus.ACTIVE) -> List[VenueSearchResult]:
        """
        Venues within radius_km of (lat, lng), nearest first.

        Raises:
            ValidationError: bad coordinates, non-positive radius, unknown status
        """
        lat, lng = validate_coordinates(lat, lng)
        radius_km = validate_radius(radius_km, self._max_radius_km())
        validate_choice('status', status, VenueStatus.values)

        center = GeoService.make_point(lat, lng)
        matches = GeoService.find_within_radius(center, radius_km, status)
        logger.debug(f"search_venues({lat}, {lng}, {radius_km}km, {status}) -> {len(matches)} venues")

        return [
            VenueSearchResult(
                venue_id=venue.id,
                name=venue.name,
                address=venue.address,
                distance_km=distance_km,
                overall_rating=venue.overall_rating,
                total_reviews=venue.total_reviews,
            )
            for venue, distance_km in matches
        ]

    @store_read
    def recommend_venues(self, user_id, lat, lng, radius_km) -> List[VenueRecommendation]:
        """
        Active venues within radius_km of (lat, lng), ranked for the user.

        Raises:
            ValidationError: bad coordinates, non-positive radius, unknown user
        """
        user_id = validate_uuid('user_id', user_id)
        lat, lng = validate_coordinates(lat, lng)
        radius_km = validate_radius(radius_km, self._max_radius_km())

        user = UserProfile.objects.filter(pk=user_id).first()
        if user is None:
            raise ValidationError(f"User {user_id} not found", details={'field': 'user_id'})

        center = GeoService.make_point(lat, lng)
        ranked = self.scoring_service.recommend(user, center, radius_km)

        return [
            VenueRecommendation(
                venue_id=venue.id,
                name=venue.name,
                address=venue.address,
                distance_km=distance_km,
                overall_rating=venue.overall_rating,
                compatibility_score=score,
            )
            for venue, distance_km, score in ranked
        ]
