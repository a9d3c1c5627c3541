"""
API views for locations app endpoints.

Views only translate HTTP to service calls; validation and error mapping
live in the services and core.exceptions.custom_exception_handler.
"""
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAdminUser, IsAuthenticated
from rest_framework.response import Response

from core.exceptions import ValidationError
from recommendations.query_service import VenueQueryService
from .models import Venue, VenueStatus
from .serializers import (
    VenueAmenitiesSerializer,
    VenueCreateSerializer,
    VenueSearchResultSerializer,
    VenueSerializer,
    VenueStatusSerializer,
)
from .services import GeoService, VenueService


class VenueViewSet(mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """
    Venue detail, radius search and the venue write paths.
    """
    queryset = Venue.objects.not_deleted().select_related('amenities')
    serializer_class = VenueSerializer
    permission_classes = [AllowAny]
    lookup_value_regex = '[0-9a-fA-F-]{36}'

    def get_permissions(self):
        if self.action == 'create':
            return [IsAuthenticated()]
        return super().get_permissions()

    def create(self, request):
        """
        Propose a new venue. It starts as pending until moderated.
        """
        serializer = VenueCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)

        venue = VenueService.create_venue(
            name=data.pop('name'),
            address=data.pop('address'),
            lat=data.pop('latitude'),
            lon=data.pop('longitude'),
            created_by_id=getattr(getattr(request.user, 'profile', None), 'pk', None),
            **data
        )
        return Response(VenueSerializer(venue).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['get'])
    def search(self, request):
        """
        Find venues around a location, nearest first.

        Query parameters:
        - lat: float (required)
        - lng: float (required)
        - radius_km: float (required, > 0)
        - status: str (optional, default: active)
        """
        params = request.query_params
        missing = [name for name in ('lat', 'lng', 'radius_km') if params.get(name) in (None, '')]
        if missing:
            raise ValidationError("missing query parameters", details={'fields': missing})

        results = VenueQueryService().search_venues(
            params['lat'],
            params['lng'],
            params['radius_km'],
            params.get('status') or VenueStatus.ACTIVE,
        )
        serializer = VenueSearchResultSerializer(results, many=True)
        return Response({
            'count': len(results),
            'results': serializer.data
        })

    @action(detail=True, methods=['get'])
    def distance(self, request, pk=None):
        """
        Distance from a venue to another location.

        Query parameters:
        - lat: float (required)
        - lng: float (required)
        """
        venue = VenueService.get_venue(pk)
        distance_km = GeoService.distance_km(venue, request.query_params.get('lat'), request.query_params.get('lng'))
        return Response({
            'venue_id': str(venue.id),
            'distance_km': str(distance_km),
        })

    @action(detail=True, methods=['put', 'patch'], permission_classes=[IsAuthenticated])
    def amenities(self, request, pk=None):
        """Create or update the amenity survey of a venue. Omitted fields keep their value."""
        payload = VenueAmenitiesSerializer(data=request.data, partial=True)
        payload.is_valid(raise_exception=True)

        amenities = VenueService.upsert_amenities(pk, **payload.validated_data)
        return Response(VenueAmenitiesSerializer(amenities).data)

    @action(detail=True, methods=['post'], url_path='status', permission_classes=[IsAdminUser])
    def set_status(self, request, pk=None):
        """
        Moderation: move a venue between active / pending / closed / archived.
        Admin/Staff only.
        """
        payload = VenueStatusSerializer(data=request.data)
        payload.is_valid(raise_exception=True)

        venue = VenueService.set_status(pk, payload.validated_data['status'])
        return Response(VenueSerializer(venue).data)

    @action(detail=True, methods=['delete'], url_path='remove', permission_classes=[IsAdminUser])
    def remove(self, request, pk=None):
        """Soft delete. Admin/Staff only."""
        VenueService.soft_delete(pk)
        return Response(status=status.HTTP_204_NO_CONTENT)
