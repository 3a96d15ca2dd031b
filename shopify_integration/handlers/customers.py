import logging

from ..router import register_handler
from ..services.customer_sync import delete_customer, upsert_customer

logger = logging.getLogger(__name__)


def handle_customer_upsert(event, payload):
    """Handle customers/create and customers/update."""
    upsert_customer(event.shop, payload)


def handle_customer_delete(event, payload):
    customer_id = payload.get("id")
    if customer_id is None:
        raise ValueError("Missing customer ID in delete webhook payload")
    delete_customer(event.shop, customer_id)


# ---------------------------------------------------------------------------
# Handler registration: called when this module is imported via apps.ready()
# ---------------------------------------------------------------------------
register_handler("customers/create", handle_customer_upsert)
register_handler("customers/update", handle_customer_upsert)
register_handler("customers/delete", handle_customer_delete)
