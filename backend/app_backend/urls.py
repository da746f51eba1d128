from django.contrib import admin
from django.urls import path, include

from .views import health_check

urlpatterns = [
    path('admin/', admin.site.urls),
    path("health/", health_check), # Health check endpoint

    # Authentication endpoints (at /api/auth/)
    path('api/auth/', include('accounts.urls')),  # register, login, refresh, me

    # Venue APIs (list, detail, reports, locations, popularity)
    path('api/bars/', include('bars.urls')),

    # Virtual queue (at /api/queue/<bar_id>/)
    path('api/queue/', include('bars.queue_urls')),
]
