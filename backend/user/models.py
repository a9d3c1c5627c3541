import uuid

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models


class PreferredSeating(models.TextChoices):
    QUIET = 'quiet', 'Quiet'
    SOCIAL = 'social', 'Social'
    OUTDOOR = 'outdoor', 'Outdoor'
    ANY = 'any', 'Any'


class WorkStyle(models.TextChoices):
    FOCUSED = 'focused', 'Focused'
    COLLABORATIVE = 'collaborative', 'Collaborative'
    MIXED = 'mixed', 'Mixed'


class UserProfile(models.Model):
    """
    Work preferences of a user plus the derived review counter.
    Identity and authentication live on the auth user; this core trusts it.
    """
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="profile"
    )
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # 1 = needs silence, 5 = does not mind noise. Null means "not set".
    noise_tolerance = models.PositiveSmallIntegerField(
        null=True, blank=True,
        validators=[MinValueValidator(1), MaxValueValidator(5)]
    )
    wifi_importance = models.PositiveSmallIntegerField(
        null=True, blank=True,
        validators=[MinValueValidator(1), MaxValueValidator(5)]
    )
    preferred_seating = models.CharField(
        max_length=10,
        choices=PreferredSeating.choices,
        default=PreferredSeating.ANY
    )
    work_style = models.CharField(
        max_length=15,
        choices=WorkStyle.choices,
        default=WorkStyle.MIXED
    )

    # Derived: maintained by reviews.aggregates, never written by callers
    total_reviews = models.IntegerField(validators=[MinValueValidator(0)], default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'user_profile'

    def __str__(self):
        return f"Profile({self.user.username})"

    @property
    def is_personalized(self) -> bool:
        """Both preferences must be set before recommendations are personalized."""
        return self.noise_tolerance is not None and self.wifi_importance is not None
