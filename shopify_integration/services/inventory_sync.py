"""Inventory sync service: stores per-location stock from ``inventory_levels/*``.

Shopify's inventory level payload identifies stock by inventory item and
location::

    {
        "inventory_item_id": 808950810,
        "location_id": 905684977,
        "available": 6,
        "updated_at": "2024-01-01T00:00:00Z"
    }
"""

import logging

from django.utils import timezone

from ..models import InventoryItem, InventoryLevel

logger = logging.getLogger(__name__)


def _require_ids(payload):
    inventory_item_id = payload.get("inventory_item_id")
    location_id = payload.get("location_id")
    if inventory_item_id is None or location_id is None:
        raise ValueError(
            "Missing inventory_item_id or location_id in inventory level payload"
        )
    return inventory_item_id, location_id


def upsert_inventory_level(shop, payload):
    """Create the inventory item if needed and upsert its level at a location.

    ``available`` is null when tracking is disabled for the item; it is
    stored as 0.
    """
    inventory_item_id, location_id = _require_ids(payload)

    item, _ = InventoryItem.objects.get_or_create(
        shop=shop, shopify_inventory_item_id=inventory_item_id
    )
    level, _ = InventoryLevel.objects.update_or_create(
        shop=shop,
        shopify_inventory_item_id=inventory_item_id,
        shopify_location_id=location_id,
        defaults={
            "inventory_item": item,
            "available": payload.get("available") or 0,
            "synced_at": timezone.now(),
        },
    )
    logger.info(
        "Stock for inventory item %s at location %s is %d (shop=%s)",
        inventory_item_id,
        location_id,
        level.available,
        shop.shop_domain,
    )
    return level


def disconnect_inventory_level(shop, payload):
    """Remove the level for an item that was disconnected from a location."""
    inventory_item_id, location_id = _require_ids(payload)
    deleted, _ = InventoryLevel.objects.filter(
        shop=shop,
        shopify_inventory_item_id=inventory_item_id,
        shopify_location_id=location_id,
    ).delete()
    return deleted
