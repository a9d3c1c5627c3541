from django.urls import path
from .views import MeView, PreferencesView, StatsView

app_name = 'user'

urlpatterns = [
    path("me/", MeView.as_view(), name="me"),
    path("me/preferences/", PreferencesView.as_view(), name="preferences"),
    path("me/stats/", StatsView.as_view(), name="stats"),
]
