from django.contrib import admin
from .models import Tariff, Subscription, Promocode, PromocodeUsage, SubscriptionLog

@admin.register(Tariff)
class TariffAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "is_active", "sort_order", "created_at")
    list_filter = ("is_active",)
    search_fields = ("name",)

@admin.register(Subscription)
class SubscriptionAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "tariff", "period_months", "status", "start_date", "end_date",
                    "discord_role_granted", "notion_access_granted", "google_drive_access_granted")
    list_filter = ("status", "period_months")
    search_fields = ("user__telegram_username", "user__telegram_id", "user__email")

@admin.register(Promocode)
class PromocodeAdmin(admin.ModelAdmin):
    list_display = ("code", "extra_days", "is_active", "created_at")
    list_filter = ("is_active",)
    search_fields = ("code",)

@admin.register(PromocodeUsage)
class PromocodeUsageAdmin(admin.ModelAdmin):
    list_display = ("promocode", "user", "subscription", "amount", "discount_amount", "used_at")

@admin.register(SubscriptionLog)
class SubscriptionLogAdmin(admin.ModelAdmin):
    list_display = ("created_at", "action", "user", "subscription")
    list_filter = ("action",)
    search_fields = ("user__telegram_id", "subscription__id")
    readonly_fields = ("user", "subscription", "action", "details", "created_at")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
