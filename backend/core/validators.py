"""
Input checks shared by the services. They raise core.exceptions.ValidationError
and never touch the database.
"""
import math
import uuid

from core.exceptions import ValidationError


def require_number(name: str, value) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number", details={'field': name})
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number", details={'field': name})
    if math.isnan(value) or math.isinf(value):
        raise ValidationError(f"{name} must be a finite number", details={'field': name})
    return value


def validate_coordinates(lat, lng):
    """Return (lat, lng) as floats or raise ValidationError."""
    lat = require_number('lat', lat)
    lng = require_number('lng', lng)
    if not -90.0 <= lat <= 90.0:
        raise ValidationError("lat out of range", details={'field': 'lat', 'min': -90, 'max': 90})
    if not -180.0 <= lng <= 180.0:
        raise ValidationError("lng out of range", details={'field': 'lng', 'min': -180, 'max': 180})
    return lat, lng


def validate_radius(radius_km, max_km=None) -> float:
    radius_km = require_number('radius_km', radius_km)
    if radius_km <= 0:
        raise ValidationError("radius_km must be positive", details={'field': 'radius_km'})
    if max_km is not None and radius_km > max_km:
        raise ValidationError(
            f"radius_km must not exceed {max_km}",
            details={'field': 'radius_km', 'max': max_km},
        )
    return radius_km


def validate_scale(name: str, value, low: int, high: int, required: bool = False):
    """Integer on an inclusive scale; None allowed unless required."""
    if value is None:
        if required:
            raise ValidationError(f"{name} is required", details={'field': name})
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer", details={'field': name})
    if not low <= value <= high:
        raise ValidationError(
            f"{name} must be between {low} and {high}",
            details={'field': name, 'min': low, 'max': high},
        )
    return value


def validate_choice(name: str, value, choices):
    if value not in choices:
        raise ValidationError(
            f"{name} must be one of {', '.join(sorted(choices))}",
            details={'field': name},
        )
    return value


def validate_uuid(name: str, value) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        raise ValidationError(f"{name} must be a valid UUID", details={'field': name})
