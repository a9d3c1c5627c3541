"""
Views for the recommendations module.
"""
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import ValidationError
from recommendations.dtos import PointDTO
from recommendations.query_service import VenueQueryService
from recommendations.serializers import PointDTOSerializer, VenueRecommendationSerializer


class RecommendVenuesView(APIView):
    """
    API endpoint for personalized venue recommendations.

    GET /api/recommendations/venues/?user_id=<uuid>&lat=40.7128&lng=-74.0060&radius_km=5
    """

    def get(self, request):
        """Rank active venues around a point for a user"""
        params = request.query_params
        missing = [name for name in ('user_id', 'lat', 'lng', 'radius_km') if params.get(name) in (None, '')]
        if missing:
            raise ValidationError("missing query parameters", details={'fields': missing})

        recommendations = VenueQueryService().recommend_venues(
            params['user_id'],
            params['lat'],
            params['lng'],
            params['radius_km'],
        )
        center = PointDTO(latitude=float(params['lat']), longitude=float(params['lng']))

        return Response({
            'center': PointDTOSerializer(center).data,
            'count': len(recommendations),
            'recommendations': VenueRecommendationSerializer(recommendations, many=True).data,
        })
