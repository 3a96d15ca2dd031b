"""Customer sync service: maps Shopify customer payloads onto :class:`Customer`."""

import logging

from django.utils import timezone

from ..models import Customer, Order
from ..utils import parse_money, parse_shopify_datetime, split_tags

logger = logging.getLogger(__name__)

CUSTOMER_PII_FIELDS = (
    "email",
    "first_name",
    "last_name",
    "phone",
    "default_address",
    "addresses",
)


def map_shopify_customer(payload):
    """Map a Shopify customer payload to Customer field values (excluding shop)."""
    return {
        "email": payload.get("email"),
        "first_name": payload.get("first_name"),
        "last_name": payload.get("last_name"),
        "phone": payload.get("phone"),
        "orders_count": payload.get("orders_count") or 0,
        "total_spent": parse_money(payload.get("total_spent")),
        "currency": payload.get("currency"),
        "tags": split_tags(payload.get("tags")),
        "accepts_marketing": bool(payload.get("accepts_marketing")),
        "default_address": payload.get("default_address"),
        "addresses": payload.get("addresses") or [],
        "created_at_shopify": parse_shopify_datetime(payload.get("created_at")),
        "updated_at_shopify": parse_shopify_datetime(payload.get("updated_at")),
        "synced_at": timezone.now(),
    }


def upsert_customer(shop, payload):
    """Create or update a customer; PII stays scrubbed on redacted customers.

    Orders that arrived before the customer and carry its Shopify id are
    linked to the new row.
    """
    shopify_customer_id = payload.get("id")
    if shopify_customer_id is None:
        raise ValueError("Missing customer ID in customer payload")

    values = map_shopify_customer(payload)
    pii_values = {field: values.pop(field) for field in CUSTOMER_PII_FIELDS}

    customer, created = Customer.objects.update_or_create(
        shop=shop, shopify_customer_id=shopify_customer_id, defaults=values
    )
    if Customer.objects.filter(pk=customer.pk, pii_redacted=False).update(
        **pii_values
    ):
        for field, value in pii_values.items():
            setattr(customer, field, value)
    else:
        customer.refresh_from_db()
    if created:
        Order.objects.filter(
            shop=shop,
            shopify_customer_id=shopify_customer_id,
            customer__isnull=True,
        ).update(customer=customer)

    logger.info(
        "%s customer %s (shop=%s)",
        "Created" if created else "Updated",
        shopify_customer_id,
        shop.shop_domain,
    )
    return customer


def delete_customer(shop, shopify_customer_id):
    """Delete the customer with ``shopify_customer_id``. Returns rows deleted."""
    deleted, _ = Customer.objects.filter(
        shop=shop, shopify_customer_id=shopify_customer_id
    ).delete()
    return deleted
