from django.contrib import admin
from .models import Review, ReviewVote


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    """
    Moderation view. Vote counters are derived from ReviewVote rows and
    shown read-only; saving here still goes through the aggregate hooks.
    """
    list_display = ['id', 'venue', 'user', 'overall_rating', 'state', 'helpful_votes', 'created_at']
    list_filter = ['state', 'overall_rating', 'created_at']
    search_fields = ['title', 'text', 'venue__name']
    readonly_fields = ['id', 'helpful_votes', 'total_votes', 'created_at', 'updated_at']
    raw_id_fields = ['user', 'venue']


@admin.register(ReviewVote)
class ReviewVoteAdmin(admin.ModelAdmin):
    list_display = ['review', 'user', 'is_helpful', 'created_at']
    list_filter = ['is_helpful']
    raw_id_fields = ['review', 'user']
