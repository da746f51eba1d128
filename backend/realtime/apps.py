"""Realtime app configuration."""

from django.apps import AppConfig, apps


class RealtimeConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'realtime'

    def ready(self):
        from .occupancy import OccupancyRegistry

        # Live occupancy is ephemeral; a restart starts from an empty registry
        self.registry = OccupancyRegistry()


def get_occupancy_registry():
    """Process-wide OccupancyRegistry owned by the realtime app."""
    return apps.get_app_config("realtime").registry
