from django.contrib import admin
from django.contrib.gis.admin import GISModelAdmin
from .models import Venue, VenueAmenities


class VenueAmenitiesInline(admin.StackedInline):
    model = VenueAmenities
    can_delete = False
    extra = 0


@admin.register(Venue)
class VenueAdmin(GISModelAdmin):
    """
    Admin interface for Venue with geospatial support.
    GISModelAdmin provides map interface for location data.
    Rating and review count are derived, so they are read-only here.
    """
    list_display = ['name', 'city', 'status', 'overall_rating', 'total_reviews', 'created_at']
    list_filter = ['status', 'city', 'created_at']
    search_fields = ['name', 'address', 'place_id']
    readonly_fields = ['id', 'overall_rating', 'total_reviews', 'created_at', 'updated_at']
    inlines = [VenueAmenitiesInline]

    fieldsets = (
        ('Basic Information', {
            'fields': ('id', 'name', 'address', 'city', 'country', 'postal_code')
        }),
        ('Location', {
            'fields': ('location',)
        }),
        ('Contact', {
            'fields': ('place_id', 'phone', 'website', 'hours')
        }),
        ('Moderation', {
            'fields': ('status', 'created_by', 'deleted_at')
        }),
        ('Rating & Quality', {
            'fields': ('overall_rating', 'total_reviews')
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )
