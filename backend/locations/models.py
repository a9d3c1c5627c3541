import uuid
from decimal import Decimal

from django.contrib.gis.db import models as gis_models
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models


class VenueStatus(models.TextChoices):
    ACTIVE = 'active', 'Active'
    PENDING = 'pending', 'Pending'
    CLOSED = 'closed', 'Closed'
    ARCHIVED = 'archived', 'Archived'


class VenueQuerySet(models.QuerySet):
    def not_deleted(self):
        return self.filter(deleted_at__isnull=True)

    def with_status(self, status):
        if status is None:
            return self
        return self.filter(status=status)


class Venue(models.Model):
    """
    A place people can work from (cafe, library, coworking space).
    Utilizes a geography PointField so PostGIS computes true surface
    distances and serves ST_DWithin from the GiST index.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Basic Information
    name = models.CharField(max_length=255, help_text="The official name of the venue")
    address = models.TextField(help_text="Human readable physical address")
    city = models.CharField(max_length=255, blank=True, default="")
    country = models.CharField(max_length=255, blank=True, default="")
    postal_code = models.CharField(max_length=20, blank=True, default="")

    # Geospatial Data
    location = gis_models.PointField(
        geography=True,
        srid=4326,
        help_text="PostGIS geography(Point, 4326): x = longitude, y = latitude"
    )

    # External Integration
    place_id = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
        help_text="Unique ID from the places provider to prevent duplicates"
    )

    # Contact
    phone = models.CharField(max_length=50, blank=True, default="")
    website = models.URLField(max_length=500, blank=True, default="")
    hours = models.JSONField(
        default=dict,
        blank=True,
        help_text='{"monday": {"open": "08:00", "close": "18:00"}, ...}'
    )

    # Moderation
    status = models.CharField(
        max_length=10,
        choices=VenueStatus.choices,
        default=VenueStatus.PENDING
    )
    created_by = models.ForeignKey(
        'user.UserProfile',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_venues'
    )

    # Derived aggregates, maintained by reviews.aggregates
    overall_rating = models.DecimalField(
        max_digits=2,
        decimal_places=1,
        default=Decimal('0.0'),
        help_text="Mean of active review ratings, 1dp; 0 when there are none"
    )
    total_reviews = models.IntegerField(default=0, validators=[MinValueValidator(0)])

    deleted_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = VenueQuerySet.as_manager()

    class Meta:
        db_table = 'locations_venue'
        indexes = [
            models.Index(fields=['status'], name='venue_status_idx'),
            models.Index(fields=['-overall_rating'], name='venue_rating_idx'),
        ]

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        """Reject coordinates outside the WGS84 range before they reach PostGIS."""
        if self.location:
            lat = self.location.y
            lon = self.location.x
            if not (-90 <= lat <= 90 and -180 <= lon <= 180):
                raise ValueError("Invalid coordinates: latitude must be -90 to 90, longitude must be -180 to 180")

        super().save(*args, **kwargs)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def get_lat_lon(self):
        if self.location:
            return (self.location.y, self.location.x)
        return None

    def amenities_or_none(self):
        """Amenities record, or None when the venue has not been surveyed yet."""
        try:
            return self.amenities
        except VenueAmenities.DoesNotExist:
            return None


def _rating_field(**kwargs):
    return models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(1), MaxValueValidator(5)],
        **kwargs
    )


class VenueAmenities(models.Model):
    """Work-related amenity survey, at most one per venue."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    venue = models.OneToOneField(Venue, on_delete=models.CASCADE, related_name='amenities')

    wifi_quality = _rating_field()
    wifi_password_required = models.BooleanField(default=True)
    noise_level = _rating_field(help_text="1 = very quiet, 5 = very noisy")
    seating_comfort = _rating_field()
    price_range = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(1), MaxValueValidator(4)],
        help_text="$ = 1 ... $$$$ = 4"
    )

    power_outlets = models.BooleanField(default=False)
    has_food = models.BooleanField(default=False)
    has_coffee = models.BooleanField(default=True)
    outdoor_seating = models.BooleanField(default=False)
    natural_lighting = models.BooleanField(default=False)
    air_conditioning = models.BooleanField(default=False)
    pet_friendly = models.BooleanField(default=False)
    wheelchair_accessible = models.BooleanField(default=False)
    meeting_rooms = models.BooleanField(default=False)
    phone_booth = models.BooleanField(default=False)
    parking_available = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'locations_venue_amenities'
        verbose_name_plural = 'venue amenities'

    def __str__(self):
        return f"Amenities for {self.venue.name}"
