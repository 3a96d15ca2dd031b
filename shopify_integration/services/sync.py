"""Initial data import run once after a shop is linked.

Pulls customers, products and orders (last ``SHOPIFY_INITIAL_SYNC_DAYS``)
through the Admin REST API and stores them with the same upsert functions
the webhook handlers use.  Customers are imported before orders so order
rows can be linked to them.
"""

import logging
from datetime import timedelta

import requests
from django.utils import timezone

from .. import conf
from .customer_sync import upsert_customer
from .order_sync import upsert_order
from .product_sync import upsert_product

logger = logging.getLogger(__name__)

PAGE_SIZE = 250


def _fetch_pages(shop, path, resource_key, params):
    """Yield records from a paginated Admin API listing.

    Shopify paginates with cursor URLs in the ``Link`` header; ``requests``
    exposes them as ``response.links``.
    """
    url = conf.admin_api_url(shop.shop_domain, path)
    headers = {"X-Shopify-Access-Token": shop.access_token}
    while url:
        response = requests.get(
            url,
            headers=headers,
            params=params,
            timeout=conf.get("SHOPIFY_HTTP_TIMEOUT"),
        )
        response.raise_for_status()
        yield from response.json().get(resource_key, [])
        url = response.links.get("next", {}).get("url")
        # The cursor URL already carries every query parameter.
        params = None


def _sync_resource(shop, path, resource_key, params, upsert):
    count = 0
    try:
        for record in _fetch_pages(shop, path, resource_key, params):
            upsert(shop, record)
            count += 1
    except requests.HTTPError as exc:
        if exc.response is not None and exc.response.status_code == 403:
            logger.warning(
                "Skipping %s for %s: protected customer data access not granted",
                resource_key,
                shop.shop_domain,
            )
            return count
        raise
    logger.info("Synced %d %s for %s", count, resource_key, shop.shop_domain)
    return count


def sync_shop(shop):
    """Import recent customers, products and orders for ``shop``.

    Returns a dict of record counts per resource.
    """
    since = timezone.now() - timedelta(days=conf.get("SHOPIFY_INITIAL_SYNC_DAYS"))
    counts = {
        "customers": _sync_resource(
            shop, "customers.json", "customers", {"limit": PAGE_SIZE}, upsert_customer
        ),
        "products": _sync_resource(
            shop, "products.json", "products", {"limit": PAGE_SIZE}, upsert_product
        ),
        "orders": _sync_resource(
            shop,
            "orders.json",
            "orders",
            {
                "limit": PAGE_SIZE,
                "status": "any",
                "created_at_min": since.isoformat(),
            },
            upsert_order,
        ),
    }
    shop.last_sync_at = timezone.now()
    shop.save(update_fields=["last_sync_at", "updated_at"])
    return counts
