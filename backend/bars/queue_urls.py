from django.urls import path
from .views import QueueView

urlpatterns = [
    path("<int:bar_id>/", QueueView.as_view(), name="bar-queue"),
]
