import logging

import requests
from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from tracking.channel import SocketChannel, fetch_venue_locations
from tracking.exceptions import TrackingError
from tracking.loop import TrackingLoop
from tracking.sources import ReplayLocationSource

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Replay a recorded position track against a running server's popularity socket."

    def add_arguments(self, parser):
        parser.add_argument("path", help="JSON file of recorded positions.")
        parser.add_argument(
            "--base-url",
            default="http://127.0.0.1:8000",
            help="Server base URL (default: http://127.0.0.1:8000).",
        )
        parser.add_argument("--token", help="JWT access token for the tracked user.")
        parser.add_argument(
            "--user-id",
            help="User id to report (default: the id the server resolves from --token).",
        )
        parser.add_argument(
            "--interval",
            type=float,
            default=1.0,
            help="Seconds between replayed samples (default: 1.0).",
        )
        parser.add_argument(
            "--radius",
            type=float,
            default=None,
            help="Proximity radius in meters (default: PROXIMITY_RADIUS_METERS).",
        )

    def handle(self, *args, **options):
        base_url = options["base_url"]
        radius = options["radius"] or settings.PROXIMITY_RADIUS_METERS

        try:
            source = ReplayLocationSource.from_file(options["path"], interval=options["interval"])
        except (OSError, ValueError) as e:
            raise CommandError(f"Could not load track: {e}")

        try:
            venues = fetch_venue_locations(base_url)
        except requests.RequestException as e:
            raise CommandError(f"Could not fetch venue locations: {e}")

        channel = SocketChannel(base_url, token=options["token"])
        try:
            greeting = channel.connect()
            user_id = options["user_id"] or greeting.get("user_id")
            if not user_id:
                raise CommandError("No user id: pass --user-id or a valid --token.")

            loop = TrackingLoop(source, channel, user_id, venues=venues, max_radius_meters=radius)
            try:
                status = loop.run()
            finally:
                loop.stop()
        except TrackingError as e:
            raise CommandError(str(e))
        finally:
            channel.close()

        logger.info("Replay finished for user %s with status %s", user_id, status.value)
        self.stdout.write(
            self.style.SUCCESS(
                f"Replayed {len(source.points)} positions for user {user_id} against {len(venues)} venues ({status.value})."
            )
        )
