from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from common.utils.geo import GeoPoint, VenueLocation


class Bar(models.Model):
    """A venue users can browse, queue for and be detected at"""

    name = models.CharField(max_length=120)
    address = models.TextField()

    # Null until geocoded; both set or both null
    latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)

    image = models.TextField(blank=True)  # URL or data URI from the object store
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='bars_added'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'bars'
        ordering = ['name']

    def __str__(self):
        return self.name

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def venue_location(self) -> VenueLocation:
        coordinates = None
        if self.has_coordinates:
            coordinates = GeoPoint(float(self.latitude), float(self.longitude))
        return VenueLocation(venue_id=str(self.pk), coordinates=coordinates)


class Rating(models.Model):
    """One star rating per user per bar; resubmitting replaces it"""

    bar = models.ForeignKey(Bar, on_delete=models.CASCADE, related_name='ratings')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='bar_ratings')
    value = models.PositiveSmallIntegerField(validators=[MinValueValidator(1), MaxValueValidator(5)])
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'bar_ratings'
        constraints = [
            models.UniqueConstraint(fields=['bar', 'user'], name='unique_bar_rating')
        ]

    def __str__(self):
        return f"{self.user} rated {self.bar}: {self.value}"


class CoverFee(models.Model):
    """User-reported cover charge"""

    bar = models.ForeignKey(Bar, on_delete=models.CASCADE, related_name='cover_fees')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='cover_fee_reports')
    amount = models.DecimalField(max_digits=8, decimal_places=2, validators=[MinValueValidator(0)])
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'bar_cover_fees'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.bar} cover {self.amount}"


class TrafficReport(models.Model):
    """User-reported crowd level"""

    LEVEL_CHOICES = [
        ('Empty', 'Empty'),
        ('Moderate', 'Moderate'),
        ('Busy', 'Busy'),
        ('Packed', 'Packed'),
    ]

    bar = models.ForeignKey(Bar, on_delete=models.CASCADE, related_name='traffic_reports')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='traffic_reports')
    level = models.CharField(max_length=10, choices=LEVEL_CHOICES)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'bar_traffic_reports'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.bar} {self.level}"


class QueueEntry(models.Model):
    """A user's place in a bar's virtual queue"""

    bar = models.ForeignKey(Bar, on_delete=models.CASCADE, related_name='queue_entries')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='queue_entries')
    joined_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'bar_queue_entries'
        ordering = ['joined_at']
        constraints = [
            models.UniqueConstraint(fields=['bar', 'user'], name='unique_queue_entry')
        ]

    def __str__(self):
        return f"{self.user} in queue for {self.bar}"
