from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from accounts.models import User
from bars.models import QueueEntry


class QueueEntryInline(admin.TabularInline):
    model = QueueEntry
    extra = 0
    fields = ("bar", "joined_at")
    readonly_fields = ("joined_at",)


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Users with their display name and current virtual queue spots"""

    list_display = ["username", "display_name", "email", "queued_bars", "is_staff"]
    list_filter = ["is_staff", "is_active"]
    search_fields = ["username", "display_name", "email"]
    inlines = [QueueEntryInline]

    fieldsets = BaseUserAdmin.fieldsets + (
        ("BarScout", {"fields": ("display_name",)}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ("BarScout", {"fields": ("display_name",)}),
    )

    @admin.display(description="Queued at")
    def queued_bars(self, obj):
        return obj.queue_entries.count()
