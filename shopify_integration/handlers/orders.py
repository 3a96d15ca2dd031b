import logging

from ..router import ORDER_TOPICS, register_handler
from ..services.order_sync import upsert_order

logger = logging.getLogger(__name__)


def handle_order_event(event, payload):
    """Handle orders/create, updated, paid, cancelled and fulfilled.

    All five topics carry the full order, so each is an idempotent upsert
    by Shopify order id.
    """
    upsert_order(event.shop, payload)


# ---------------------------------------------------------------------------
# Handler registration: called when this module is imported via apps.ready()
# ---------------------------------------------------------------------------
for _topic in ORDER_TOPICS:
    register_handler(_topic, handle_order_event)
