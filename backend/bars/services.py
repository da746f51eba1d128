"""
Venue business logic.

Views call these functions; they never touch realtime state directly.
Aggregate counts (queue length, rating average) are computed from rows,
never stored as separately maintained counters.
"""

import logging
from typing import List, Optional

from django.db import transaction
from django.db.models import Avg, Count

from common.utils.geo import VenueLocation

from .exceptions import BarNotFoundError
from .models import Bar, CoverFee, QueueEntry, Rating, TrafficReport

logger = logging.getLogger(__name__)


# BAR LOOKUP
def bars_with_stats():
    """Bars annotated with queue_count and average_rating."""
    return Bar.objects.annotate(
        queue_count=Count("queue_entries", distinct=True),
        average_rating=Avg("ratings__value"),
    )


def get_bar(bar_id) -> Bar:
    try:
        return bars_with_stats().get(pk=bar_id)
    except (Bar.DoesNotExist, ValueError):
        raise BarNotFoundError(f"Bar {bar_id} not found")


def create_bar(user, name: str, address: str, image: str = "", latitude=None, longitude=None) -> Bar:
    """
    Create a bar. Without coordinates, geocoding is queued after commit.
    """
    bar = Bar.objects.create(
        name=name,
        address=address,
        image=image or "",
        latitude=latitude,
        longitude=longitude,
        created_by=user if user and user.is_authenticated else None,
    )

    if not bar.has_coordinates:
        from .tasks import geocode_bar_task
        transaction.on_commit(lambda: geocode_bar_task.delay(bar.id))

    logger.info("Bar %s created by %s", bar.id, getattr(user, "pk", None))
    return bar


# VENUE LOCATIONS (proximity matching input)
def list_venue_locations() -> List[VenueLocation]:
    """All venues with known coordinates."""
    bars = Bar.objects.filter(latitude__isnull=False, longitude__isnull=False).order_by("pk")
    return [bar.venue_location() for bar in bars]


def get_venue_location(venue_id) -> Optional[VenueLocation]:
    """Location for one venue id, None if the id is unknown."""
    try:
        bar = Bar.objects.get(pk=venue_id)
    except (Bar.DoesNotExist, ValueError):
        return None
    return bar.venue_location()


# REPORTS
def rate_bar(bar: Bar, user, value: int) -> Rating:
    """Record a rating, replacing the user's previous one."""
    rating, _ = Rating.objects.update_or_create(
        bar=bar, user=user, defaults={"value": value}
    )
    return rating


def report_cover_fee(bar: Bar, user, amount) -> CoverFee:
    return CoverFee.objects.create(bar=bar, user=user, amount=amount)


def report_traffic(bar: Bar, user, level: str) -> TrafficReport:
    return TrafficReport.objects.create(bar=bar, user=user, level=level)


# VIRTUAL QUEUE
def join_queue(bar: Bar, user) -> bool:
    """Add user to the bar's queue. Returns False if already queued."""
    _, created = QueueEntry.objects.get_or_create(bar=bar, user=user)
    return created


def leave_queue(bar: Bar, user) -> bool:
    """Remove user from the bar's queue. Returns False if not queued."""
    deleted, _ = QueueEntry.objects.filter(bar=bar, user=user).delete()
    return deleted > 0


def is_in_queue(bar: Bar, user) -> bool:
    return QueueEntry.objects.filter(bar=bar, user=user).exists()


def queue_count(bar: Bar) -> int:
    return QueueEntry.objects.filter(bar=bar).count()
