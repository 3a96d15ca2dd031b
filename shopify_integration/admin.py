from django.contrib import admin

from .models import ComplianceRecord, OAuthNegotiation, Shop, WebhookEvent


@admin.register(Shop)
class ShopAdmin(admin.ModelAdmin):
    list_display = (
        "shop_domain",
        "shop_name",
        "currency",
        "is_active",
        "installed_at",
        "uninstalled_at",
        "last_sync_at",
    )
    list_filter = ("is_active", "currency")
    search_fields = ("shop_domain", "shop_name", "shop_email")
    # The access token is a live credential and is never shown.
    exclude = ("access_token",)
    readonly_fields = ("created_at", "updated_at", "installed_at", "uninstalled_at")


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    list_display = (
        "webhook_id",
        "topic",
        "shop_domain",
        "status",
        "attempts",
        "processing_time_ms",
        "created_at",
    )
    list_filter = (
        "status",
        "topic",
    )
    search_fields = (
        "webhook_id",
        "shop_domain",
    )
    raw_id_fields = ("shop",)
    readonly_fields = ("payload_hash", "processing_time_ms", "attempts")
    date_hierarchy = "created_at"
    ordering = ("-created_at",)


@admin.register(ComplianceRecord)
class ComplianceRecordAdmin(admin.ModelAdmin):
    list_display = ("topic", "shop_domain", "created_at")
    list_filter = ("topic",)
    search_fields = ("shop_domain",)
    readonly_fields = ("shop_domain", "topic", "payload", "created_at")
    date_hierarchy = "created_at"


@admin.register(OAuthNegotiation)
class OAuthNegotiationAdmin(admin.ModelAdmin):
    list_display = ("shop_domain", "user", "created_at", "expires_at", "consumed_at")
    search_fields = ("shop_domain",)
    raw_id_fields = ("user",)
    # Nonces are bearer secrets while open.
    exclude = ("nonce",)
    readonly_fields = ("shop_domain", "created_at", "expires_at", "consumed_at")
