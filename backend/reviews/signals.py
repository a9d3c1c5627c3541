"""
Write-path hooks: every Review / ReviewVote mutation recomputes the
aggregates it affects. Receivers run inside the writer's transaction
(see Review.save / ReviewVote.save), so a failing refresh aborts the write.
"""
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from reviews.aggregates import maintainer
from reviews.models import Review, ReviewVote


@receiver(post_save, sender=Review, dispatch_uid='reviews.review_saved')
def review_saved(sender, instance, **kwargs):
    maintainer.on_review_changed(instance)


@receiver(post_delete, sender=Review, dispatch_uid='reviews.review_deleted')
def review_deleted(sender, instance, **kwargs):
    maintainer.on_review_changed(instance)


@receiver(post_save, sender=ReviewVote, dispatch_uid='reviews.vote_saved')
def vote_saved(sender, instance, **kwargs):
    maintainer.on_vote_changed(instance)


@receiver(post_delete, sender=ReviewVote, dispatch_uid='reviews.vote_deleted')
def vote_deleted(sender, instance, **kwargs):
    maintainer.on_vote_changed(instance)
