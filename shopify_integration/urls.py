from django.urls import path

from .views import (
    OAuthBeginView,
    OAuthCallbackView,
    RedactPiiCronView,
    ShopifyComplianceWebhookView,
    ShopifyWebhookView,
)

urlpatterns = [
    path(
        "auth/shopify/",
        OAuthBeginView.as_view(),
        name="shopify_oauth_begin",
    ),
    path(
        "auth/shopify/callback/",
        OAuthCallbackView.as_view(),
        name="shopify_oauth_callback",
    ),
    path(
        "webhooks/shopify/",
        ShopifyWebhookView.as_view(),
        name="shopify_webhook",
    ),
    path(
        "webhooks/shopify/compliance/",
        ShopifyComplianceWebhookView.as_view(),
        name="shopify_compliance_webhook",
    ),
    path(
        "cron/redact-pii/",
        RedactPiiCronView.as_view(),
        name="shopify_redact_pii",
    ),
]
