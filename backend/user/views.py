from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import PermissionDeniedError
from .serializers import PreferencesSerializer, UserProfileSerializer, UserStatsSerializer
from .services import PreferenceService


def _profile_of(request):
    profile = getattr(request.user, 'profile', None)
    if profile is None:
        raise PermissionDeniedError("user has no profile")
    return profile


class MeView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        serializer = UserProfileSerializer(_profile_of(request))
        return Response(serializer.data)


class PreferencesView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        profile = _profile_of(request)
        return Response(PreferencesSerializer(profile).data)

    def patch(self, request):
        profile = _profile_of(request)
        payload = PreferencesSerializer(data=request.data, partial=True)
        payload.is_valid(raise_exception=True)

        profile = PreferenceService.update_preferences(profile.pk, **payload.validated_data)
        return Response(PreferencesSerializer(profile).data)


class StatsView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        stats = PreferenceService.get_stats(_profile_of(request).pk)
        return Response(UserStatsSerializer(stats).data)
