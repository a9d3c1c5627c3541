"""
URL configuration for the recommendations module.
"""
from django.urls import path
from recommendations.views import RecommendVenuesView

app_name = 'recommendations'

urlpatterns = [
    path('venues/', RecommendVenuesView.as_view(), name='recommend_venues'),
]
