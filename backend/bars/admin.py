from django.contrib import admin
from bars.models import Bar, CoverFee, QueueEntry, Rating, TrafficReport


@admin.register(Bar)
class BarAdmin(admin.ModelAdmin):
    """Admin panel for managing bars"""

    list_display = [
        "name",
        "address",
        "latitude",
        "longitude",
        "created_by",
        "created_at",
    ]

    search_fields = [
        "name",
        "address",
    ]

    readonly_fields = [
        "created_at",
    ]

    ordering = ("name",)


@admin.register(Rating)
class RatingAdmin(admin.ModelAdmin):
    list_display = ["bar", "user", "value", "updated_at"]
    list_filter = ["value"]
    search_fields = ["bar__name", "user__username"]


@admin.register(CoverFee)
class CoverFeeAdmin(admin.ModelAdmin):
    list_display = ["bar", "user", "amount", "created_at"]
    search_fields = ["bar__name", "user__username"]


@admin.register(TrafficReport)
class TrafficReportAdmin(admin.ModelAdmin):
    list_display = ["bar", "user", "level", "created_at"]
    list_filter = ["level"]
    search_fields = ["bar__name", "user__username"]


@admin.register(QueueEntry)
class QueueEntryAdmin(admin.ModelAdmin):
    list_display = ["bar", "user", "joined_at"]
    search_fields = ["bar__name", "user__username"]
