import logging

from ..router import register_handler
from ..services.inventory_sync import (
    disconnect_inventory_level,
    upsert_inventory_level,
)

logger = logging.getLogger(__name__)


def handle_inventory_level_update(event, payload):
    """Handle inventory_levels/update and inventory_levels/connect.

    Both fire when stock at a location changes independently of product
    updates, and both carry the full level.
    """
    upsert_inventory_level(event.shop, payload)


def handle_inventory_level_disconnect(event, payload):
    """Handle inventory_levels/disconnect: the item left the location."""
    if not disconnect_inventory_level(event.shop, payload):
        logger.info(
            "No stored level for inventory item %s at location %s (shop=%s)",
            payload.get("inventory_item_id"),
            payload.get("location_id"),
            event.shop_domain,
        )


# ---------------------------------------------------------------------------
# Handler registration: called when this module is imported via apps.ready()
# ---------------------------------------------------------------------------
register_handler("inventory_levels/update", handle_inventory_level_update)
register_handler("inventory_levels/connect", handle_inventory_level_update)
register_handler("inventory_levels/disconnect", handle_inventory_level_disconnect)
