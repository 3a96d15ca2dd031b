"""Product sync service: maps Shopify product payloads onto :class:`Product`."""

import logging

from django.utils import timezone

from ..models import Product
from ..utils import parse_shopify_datetime, split_tags

logger = logging.getLogger(__name__)


def map_shopify_product(payload):
    """Map a Shopify product payload to Product field values (excluding shop)."""
    return {
        "title": payload.get("title") or "",
        "description": payload.get("body_html"),
        "vendor": payload.get("vendor"),
        "product_type": payload.get("product_type"),
        "handle": payload.get("handle"),
        "status": payload.get("status") or "active",
        "tags": split_tags(payload.get("tags")),
        "images": payload.get("images") or [],
        "options": payload.get("options") or [],
        "variants": payload.get("variants") or [],
        "created_at_shopify": parse_shopify_datetime(payload.get("created_at")),
        "updated_at_shopify": parse_shopify_datetime(payload.get("updated_at")),
        "synced_at": timezone.now(),
    }


def upsert_product(shop, payload):
    shopify_product_id = payload.get("id")
    if shopify_product_id is None:
        raise ValueError("Missing product ID in product payload")

    product, created = Product.objects.update_or_create(
        shop=shop,
        shopify_product_id=shopify_product_id,
        defaults=map_shopify_product(payload),
    )
    logger.info(
        "%s product %s (shop=%s)",
        "Created" if created else "Updated",
        product.title,
        shop.shop_domain,
    )
    return product


def delete_product(shop, shopify_product_id):
    deleted, _ = Product.objects.filter(
        shop=shop, shopify_product_id=shopify_product_id
    ).delete()
    return deleted
