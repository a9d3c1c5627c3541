"""
URL routing for locations app.
"""
from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import VenueViewSet

router = DefaultRouter()
router.register(r'venues', VenueViewSet, basename='venue')

app_name = 'locations'

urlpatterns = [
    path('', include(router.urls)),
]
