import logging

from ..router import register_handler
from ..services.product_sync import delete_product, upsert_product

logger = logging.getLogger(__name__)


def handle_product_upsert(event, payload):
    """Handle products/create and products/update."""
    upsert_product(event.shop, payload)


def handle_product_delete(event, payload):
    """Handle products/delete: Shopify only sends ``{"id": <product_id>}``."""
    product_id = payload.get("id")
    if product_id is None:
        raise ValueError("Missing product ID in delete webhook payload")
    if not delete_product(event.shop, product_id):
        logger.warning(
            "Deleted product %s not found (shop=%s)",
            product_id,
            event.shop_domain,
        )


# ---------------------------------------------------------------------------
# Handler registration: called when this module is imported via apps.ready()
# ---------------------------------------------------------------------------
register_handler("products/create", handle_product_upsert)
register_handler("products/update", handle_product_upsert)
register_handler("products/delete", handle_product_delete)
