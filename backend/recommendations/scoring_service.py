"""
ScoringService: ranks venues for one user by how well they fit the user's
stated work preferences.
"""
import logging
from decimal import Decimal
from typing import List, Optional, Tuple

from django.conf import settings
from django.contrib.gis.geos import Point

from core.rounding import round_rating, to_decimal
from locations.models import Venue, VenueStatus
from locations.services import GeoService
from recommendations.dtos import CompatibilityWeights
from user.models import UserProfile

logger = logging.getLogger(__name__)


class ScoringService:
    """
    Algorithm Service: Compatibility scorer.

    Score = round(Rating * W_R + WifiQuality * WifiImportance * W_W
                  - |NoiseLevel - NoiseTolerance| * W_N + Offset, 1)

    Rating dominates; the wifi term is weighted by how much the user cares
    about wifi; a noise mismatch is penalized proportionally. Venues without
    an amenities record use the neutral defaults instead of being dropped.
    Users who have not set both preferences get the plain venue rating.

    Pure and stateless: the same data always yields the same ranking.
    """

    def __init__(self, weights: Optional[CompatibilityWeights] = None):
        """Use explicit weights, else settings.VENUE_COMPATIBILITY_WEIGHTS."""
        if weights is None:
            weights = CompatibilityWeights.from_mapping(
                getattr(settings, 'VENUE_COMPATIBILITY_WEIGHTS', None)
            )
        self.weights = weights

    def compute_score(self, user: UserProfile, venue: Venue) -> Decimal:
        """
        Compatibility score of one venue for one user.

        Args:
            user: UserProfile carrying noise_tolerance / wifi_importance
            venue: Venue, ideally with amenities already joined

        Returns:
            Decimal with one decimal place
        """
        rating = to_decimal(venue.overall_rating)
        if not user.is_personalized:
            return round_rating(rating)

        w = self.weights
        amenities = venue.amenities_or_none()
        wifi_quality = w.default_wifi_quality
        noise_level = w.default_noise_level
        if amenities is not None:
            if amenities.wifi_quality is not None:
                wifi_quality = amenities.wifi_quality
            if amenities.noise_level is not None:
                noise_level = amenities.noise_level

        score = (
            rating * w.rating
            + Decimal(wifi_quality) * Decimal(user.wifi_importance) * w.wifi
            - Decimal(abs(noise_level - user.noise_tolerance)) * w.noise
            + w.offset
        )
        return round_rating(score)

    def rank(self, user: UserProfile, candidates: List[Tuple[Venue, Decimal]]) -> List[Tuple[Venue, Decimal, Decimal]]:
        """
        Score (venue, distance_km) candidates and order them.

        Ordering: score desc, overall_rating desc, then distance asc and
        venue id so equal candidates always come back in the same order.
        """
        scored = [
            (venue, distance_km, self.compute_score(user, venue))
            for venue, distance_km in candidates
        ]
        scored.sort(key=lambda item: (
            -item[2],
            -to_decimal(item[0].overall_rating),
            item[1],
            str(item[0].pk),
        ))
        return scored

    def recommend(self, user: UserProfile, center: Point, radius_km: float) -> List[Tuple[Venue, Decimal, Decimal]]:
        """
        Orchestrator: radius query over active venues, then scoring.

        Returns:
            List of (venue, distance_km, compatibility_score), best first
        """
        candidates = GeoService.find_within_radius(center, radius_km, VenueStatus.ACTIVE)
        ranked = self.rank(user, candidates)
        logger.debug(
            f"Ranked {len(ranked)} venues for user {user.pk} "
            f"(personalized={user.is_personalized})"
        )
        return ranked
