"""Celery tasks for venue background processing."""

from decimal import Decimal

from celery import shared_task
import logging

logger = logging.getLogger(__name__)


@shared_task
def geocode_bar_task(bar_id: int):
    """
    Fill in a bar's coordinates from its address.

    Scheduled when a bar is created without coordinates. A bar that cannot
    be geocoded keeps null coordinates and is skipped by proximity matching.
    """
    from bars.exceptions import GeocodingError
    from bars.geocoding import geocode_address
    from bars.models import Bar

    try:
        bar = Bar.objects.get(id=bar_id)
    except Bar.DoesNotExist:
        logger.warning("Bar %s not found for geocoding task", bar_id)
        return False

    if bar.has_coordinates:
        logger.info("Bar %s already has coordinates", bar_id)
        return True

    try:
        point = geocode_address(bar.address)
    except GeocodingError as e:
        logger.error("Error geocoding bar %s: %s", bar_id, e)
        return False

    if point is None:
        logger.info("No coordinates found for bar %s (%r)", bar_id, bar.address)
        return False

    bar.latitude = Decimal(f"{point.latitude:.6f}")
    bar.longitude = Decimal(f"{point.longitude:.6f}")
    bar.save(update_fields=["latitude", "longitude"])
    logger.info("Geocoded bar %s to %s, %s", bar_id, bar.latitude, bar.longitude)
    return True
