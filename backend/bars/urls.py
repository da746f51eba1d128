from django.urls import path
from .views import (
    BarListView,
    BarDetailView,
    VenueLocationsView,
    PopularityView,
    RateBarView,
    CoverFeeView,
    TrafficReportView,
)

urlpatterns = [
    path("", BarListView.as_view(), name="bar-list"),
    path("locations/", VenueLocationsView.as_view(), name="bar-locations"),
    path("popularity/", PopularityView.as_view(), name="bar-popularity"),
    path("<int:bar_id>/", BarDetailView.as_view(), name="bar-detail"),
    path("<int:bar_id>/rate/", RateBarView.as_view(), name="bar-rate"),
    path("<int:bar_id>/cover/", CoverFeeView.as_view(), name="bar-cover"),
    path("<int:bar_id>/traffic/", TrafficReportView.as_view(), name="bar-traffic"),
]
