"""
Data Transfer Objects returned by the venue query facade and used to
configure the compatibility scorer.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping, Optional
from uuid import UUID

from core.rounding import to_decimal


@dataclass(frozen=True)
class PointDTO:
    """Represents a geographic point (latitude, longitude)"""
    latitude: float
    longitude: float


@dataclass(frozen=True)
class CompatibilityWeights:
    """
    Constants of the compatibility formula. They are inherited business rules
    without a documented derivation, so they are configuration, not literals.
    """
    rating: Decimal = Decimal('0.4')
    wifi: Decimal = Decimal('0.2')
    noise: Decimal = Decimal('0.1')
    offset: Decimal = Decimal('2.5')
    default_wifi_quality: int = 3
    default_noise_level: int = 3

    @classmethod
    def from_mapping(cls, values: Optional[Mapping]) -> 'CompatibilityWeights':
        """Build from a settings dict; missing keys keep their defaults."""
        values = dict(values or {})
        unknown = set(values) - set(cls.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown compatibility weight(s): {', '.join(sorted(unknown))}")
        for key in ('rating', 'wifi', 'noise', 'offset'):
            if key in values:
                values[key] = to_decimal(values[key])
        for key in ('default_wifi_quality', 'default_noise_level'):
            if key in values:
                values[key] = int(values[key])
        return cls(**values)


@dataclass(frozen=True)
class VenueSearchResult:
    venue_id: UUID
    name: str
    address: str
    distance_km: Decimal
    overall_rating: Decimal
    total_reviews: int


@dataclass(frozen=True)
class VenueRecommendation:
    venue_id: UUID
    name: str
    address: str
    distance_km: Decimal
    overall_rating: Decimal
    compatibility_score: Decimal
