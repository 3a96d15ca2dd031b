"""Settings access for the Shopify integration app.

All values are read from ``django.conf.settings`` at call time so tests can
override them with ``settings`` fixtures.  Secrets (API secret, cron secret)
must never be logged.
"""

from django.conf import settings

DEFAULTS = {
    "SHOPIFY_API_KEY": "",
    "SHOPIFY_API_SECRET": "",
    "SHOPIFY_SCOPES": (
        "read_products,read_orders,read_customers,read_inventory,read_locations"
    ),
    "SHOPIFY_API_VERSION": "2024-10",
    "SHOPIFY_APP_URL": "",
    "SHOPIFY_DASHBOARD_URL": "/dashboard",
    "SHOPIFY_CONFIRM_URL": "/dashboard/connect/confirm",
    "SHOPIFY_OAUTH_STATE_TTL": 600,
    "SHOPIFY_CRON_SECRET": "",
    "SHOPIFY_INITIAL_SYNC_DAYS": 90,
    "SHOPIFY_HTTP_TIMEOUT": 30,
    "PII_RETENTION_WINDOW": 100,
    "PII_REDACTION_BATCH_SIZE": 200,
    "PII_REDACTION_MAX_WORKERS": 4,
}


def get(name):
    """Return the configured value for ``name``, falling back to the default."""
    return getattr(settings, name, DEFAULTS[name])


def admin_api_url(shop_domain, path):
    """Build a Shopify Admin REST API URL for ``shop_domain``."""
    return (
        f"https://{shop_domain}/admin/api/"
        f"{get('SHOPIFY_API_VERSION')}/{path}"
    )


def app_url(path):
    """Join the public application base URL with ``path``."""
    return f"{get('SHOPIFY_APP_URL').rstrip('/')}{path}"
