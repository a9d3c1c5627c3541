"""
API views for reviews and helpfulness votes.

The acting user is always request.user.profile; services do the rest.
"""
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.exceptions import PermissionDeniedError, ValidationError
from .models import Review
from .serializers import ReviewSerializer, ReviewWriteSerializer, VoteSerializer, VoteWriteSerializer
from .services import ReviewService


class ReviewViewSet(mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    queryset = Review.objects.active().select_related('user', 'venue')
    serializer_class = ReviewSerializer
    permission_classes = [IsAuthenticated]
    lookup_value_regex = '[0-9a-fA-F-]{36}'

    def _profile(self):
        profile = getattr(self.request.user, 'profile', None)
        if profile is None:
            raise PermissionDeniedError("user has no profile")
        return profile

    def create(self, request):
        payload = ReviewWriteSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        data = dict(payload.validated_data)

        venue_id = data.pop('venue_id', None)
        overall_rating = data.pop('overall_rating', None)
        if venue_id is None or overall_rating is None:
            raise ValidationError(
                "venue_id and overall_rating are required",
                details={'fields': ['venue_id', 'overall_rating']},
            )

        review = ReviewService.submit_review(self._profile().pk, venue_id, overall_rating, **data)
        return Response(ReviewSerializer(review).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request, pk=None):
        payload = ReviewWriteSerializer(data=request.data, partial=True)
        payload.is_valid(raise_exception=True)
        data = dict(payload.validated_data)
        if 'venue_id' in data:
            raise ValidationError("a review cannot move to another venue", details={'field': 'venue_id'})

        review = ReviewService.update_review(pk, self._profile().pk, **data)
        return Response(ReviewSerializer(review).data)

    def destroy(self, request, pk=None):
        ReviewService.delete_review(pk, self._profile().pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['post', 'patch', 'delete'])
    def vote(self, request, pk=None):
        """
        POST casts a vote, PATCH flips it, DELETE retracts it.

        Body parameters (POST/PATCH):
        - is_helpful: bool (required)
        """
        user_id = self._profile().pk
        if request.method == 'DELETE':
            ReviewService.retract_vote(user_id, pk)
            return Response(status=status.HTTP_204_NO_CONTENT)

        payload = VoteWriteSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        is_helpful = payload.validated_data['is_helpful']

        if request.method == 'POST':
            vote = ReviewService.cast_vote(user_id, pk, is_helpful)
            return Response(VoteSerializer(vote).data, status=status.HTTP_201_CREATED)

        vote = ReviewService.change_vote(user_id, pk, is_helpful)
        return Response(VoteSerializer(vote).data)
