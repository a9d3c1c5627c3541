"""
Reviews and helpfulness votes.

Both models are aggregate sources: saving or deleting them fires the
receivers in reviews.signals, and save()/delete() open an atomic block so
those receivers run inside the same transaction as the write.
"""
import uuid

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models, transaction
from django.db.models import Q
from django.utils import timezone

from locations.models import Venue
from user.models import UserProfile


class ReviewState(models.TextChoices):
    """Soft delete as an explicit state, so every scoped query filters the same way."""
    ACTIVE = 'active', 'Active'
    DELETED = 'deleted', 'Deleted'


class VisitTimeOfDay(models.TextChoices):
    MORNING = 'morning', 'Morning'
    AFTERNOON = 'afternoon', 'Afternoon'
    EVENING = 'evening', 'Evening'


class ReviewQuerySet(models.QuerySet):
    def active(self):
        return self.filter(state=ReviewState.ACTIVE)


def _score_field():
    return models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(1), MaxValueValidator(5)]
    )


class Review(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(UserProfile, on_delete=models.CASCADE, related_name='reviews')
    venue = models.ForeignKey(Venue, on_delete=models.CASCADE, related_name='reviews')

    overall_rating = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(5)]
    )
    wifi_rating = _score_field()
    noise_rating = _score_field()
    comfort_rating = _score_field()
    food_rating = _score_field()

    title = models.CharField(max_length=255, blank=True, default="")
    text = models.TextField(blank=True, default="")

    # Visit context
    visit_date = models.DateField(null=True, blank=True)
    visit_time_of_day = models.CharField(
        max_length=10,
        choices=VisitTimeOfDay.choices,
        blank=True,
        default=""
    )
    crowd_level = _score_field()

    # Derived: maintained from ReviewVote rows
    helpful_votes = models.IntegerField(default=0, validators=[MinValueValidator(0)])
    total_votes = models.IntegerField(default=0, validators=[MinValueValidator(0)])

    state = models.CharField(max_length=10, choices=ReviewState.choices, default=ReviewState.ACTIVE)
    deleted_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ReviewQuerySet.as_manager()

    class Meta:
        db_table = 'reviews_review'
        indexes = [
            models.Index(fields=['venue', 'state'], name='review_venue_state_idx'),
            models.Index(fields=['user', 'state'], name='review_user_state_idx'),
            models.Index(fields=['-created_at'], name='review_created_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['user', 'venue'],
                condition=Q(state='active'),
                name='unique_active_review_per_user_venue',
            ),
        ]

    def __str__(self):
        return f"Review by {self.user_id} for {self.venue_id} - {self.overall_rating}/5"

    @property
    def is_active(self) -> bool:
        return self.state == ReviewState.ACTIVE

    def save(self, *args, **kwargs):
        with transaction.atomic():
            super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        with transaction.atomic():
            return super().delete(*args, **kwargs)

    def soft_delete(self):
        """Mark the review deleted; the post_save hook refreshes venue and user."""
        self.state = ReviewState.DELETED
        self.deleted_at = timezone.now()
        self.save(update_fields=['state', 'deleted_at', 'updated_at'])


class ReviewVote(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    review = models.ForeignKey(Review, on_delete=models.CASCADE, related_name='votes')
    user = models.ForeignKey(UserProfile, on_delete=models.CASCADE, related_name='review_votes')
    is_helpful = models.BooleanField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'reviews_review_vote'
        constraints = [
            models.UniqueConstraint(fields=['user', 'review'], name='unique_vote_per_user_review'),
        ]

    def __str__(self):
        return f"Vote by {self.user_id} on {self.review_id}: {'helpful' if self.is_helpful else 'not helpful'}"

    def save(self, *args, **kwargs):
        with transaction.atomic():
            super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        with transaction.atomic():
            return super().delete(*args, **kwargs)
