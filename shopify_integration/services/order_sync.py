"""Order sync service: maps Shopify order payloads onto :class:`Order`.

Used by the ``orders/*`` webhook handlers and by the initial sync.  Upserts
are keyed by ``(shop, shopify_order_id)`` so repeated or interleaved
deliveries of the same order converge on one row.
"""

import logging

from django.utils import timezone

from ..models import Customer, Order
from ..utils import (
    parse_coordinate,
    parse_money,
    parse_shopify_datetime,
    split_tags,
)

logger = logging.getLogger(__name__)

# Fields that are never written back once an order has been redacted.
ORDER_PII_FIELDS = ("email", "shipping_address", "billing_address", "note")


def map_shopify_order(payload):
    """Map a Shopify order payload to Order field values (excluding shop)."""
    shipping_address = payload.get("shipping_address")
    customer = payload.get("customer") or {}
    return {
        "order_number": payload.get("order_number"),
        "name": payload.get("name") or "",
        "email": payload.get("email"),
        "shopify_customer_id": customer.get("id"),
        "financial_status": payload.get("financial_status"),
        "fulfillment_status": payload.get("fulfillment_status"),
        "total_price": parse_money(payload.get("total_price")),
        "subtotal_price": parse_money(payload.get("subtotal_price")),
        "total_tax": parse_money(payload.get("total_tax")),
        "total_discounts": parse_money(payload.get("total_discounts")),
        "currency": payload.get("currency"),
        "line_items": payload.get("line_items") or [],
        "shipping_address": shipping_address,
        "billing_address": payload.get("billing_address"),
        "shipping_latitude": parse_coordinate(
            (shipping_address or {}).get("latitude")
        ),
        "shipping_longitude": parse_coordinate(
            (shipping_address or {}).get("longitude")
        ),
        "discount_codes": payload.get("discount_codes") or [],
        "note": payload.get("note"),
        "tags": split_tags(payload.get("tags")),
        "cancelled_at": parse_shopify_datetime(payload.get("cancelled_at")),
        "closed_at": parse_shopify_datetime(payload.get("closed_at")),
        "created_at_shopify": parse_shopify_datetime(payload.get("created_at")),
        "updated_at_shopify": parse_shopify_datetime(payload.get("updated_at")),
        "synced_at": timezone.now(),
    }


def upsert_order(shop, payload):
    """Create or update an order from a Shopify payload.

    Non-personal fields are upserted first; PII and the customer link are
    then written with an UPDATE conditioned on ``pii_redacted=False``, so a
    late ``orders/updated`` delivery, or one racing a redaction pass, cannot
    bring personal data back.  The customer link is resolved from
    ``customer.id`` when the customer is already known for this shop.
    """
    shopify_order_id = payload.get("id")
    if shopify_order_id is None:
        raise ValueError("Missing order ID in order payload")

    values = map_shopify_order(payload)
    pii_values = {field: values.pop(field) for field in ORDER_PII_FIELDS}
    pii_values["shopify_customer_id"] = values.pop("shopify_customer_id")
    if pii_values["shopify_customer_id"]:
        pii_values["customer"] = Customer.objects.filter(
            shop=shop, shopify_customer_id=pii_values["shopify_customer_id"]
        ).first()

    order, created = Order.objects.update_or_create(
        shop=shop, shopify_order_id=shopify_order_id, defaults=values
    )
    if Order.objects.filter(pk=order.pk, pii_redacted=False).update(**pii_values):
        for field, value in pii_values.items():
            setattr(order, field, value)
    else:
        order.refresh_from_db()

    logger.info(
        "%s order %s (shop=%s, redacted=%s)",
        "Created" if created else "Updated",
        order.name or shopify_order_id,
        shop.shop_domain,
        order.pii_redacted,
    )
    return order
