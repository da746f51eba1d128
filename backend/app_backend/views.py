import redis
from django.conf import settings
from django.utils import timezone
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework import status
from channels.layers import get_channel_layer

from app_backend.celery import app as celery_app
from bars.models import Bar
from bars.tasks import geocode_bar_task
from realtime.apps import get_occupancy_registry


def _check_database():
    Bar.objects.exists()


def _check_redis():
    redis.Redis.from_url(settings.REDIS_URL, socket_timeout=3).ping()


def _check_channel_layer():
    if get_channel_layer() is None:
        raise RuntimeError("no channel layer configured")


def _check_celery():
    if geocode_bar_task.name not in celery_app.tasks:
        raise RuntimeError("geocode_bar_task not registered")


SERVICE_CHECKS = {
    "database": _check_database,
    "redis": _check_redis,
    "channels": _check_channel_layer,
    "celery": _check_celery,
}


@api_view(["GET"])
@permission_classes([AllowAny])
def health_check(request):
    """Health check endpoint for monitoring; 503 when any backing service fails"""

    services = {}
    for name, check in SERVICE_CHECKS.items():
        try:
            check()
            services[name] = "healthy"
        except Exception as e:
            services[name] = f"unhealthy: {e}"

    healthy = all(result == "healthy" for result in services.values())
    snapshot = get_occupancy_registry().snapshot()

    return Response(
        {
            "status": "healthy" if healthy else "unhealthy",
            "timestamp": timezone.now().isoformat(),
            "services": services,
            # Live occupancy is informational only
            "occupancy": {
                "venues": len(snapshot),
                "present_users": sum(entry.count for entry in snapshot.values()),
            },
        },
        status=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
    )
