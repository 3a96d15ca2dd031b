"""Mandatory compliance (data-subject rights) webhooks.

- ``customers/data_request``: recorded for manual follow-up.  The app keeps
  order analytics and minimal PII, not enough to build an export.
- ``customers/redact``: delete the customer's record and scrub the orders
  Shopify lists in ``orders_to_redact``.
- ``shop/redact``: sent 48 hours after uninstall; delete everything stored
  for the shop.

Every request leaves a :class:`~shopify_integration.models.ComplianceRecord`,
whether or not anything matched.  Payload shapes::

    {
        "shop_id": 954889,
        "shop_domain": "shop.myshopify.com",
        "customer": {"id": 191167, "email": "john@example.com"},
        "orders_to_redact": [299938, 280263]
    }
"""

import logging

from django.db import transaction
from django.utils import timezone

from ..models import (
    ComplianceRecord,
    Customer,
    InventoryItem,
    InventoryLevel,
    Order,
    Product,
    Shop,
    ShopUser,
    WebhookEvent,
)
from ..router import register_handler

logger = logging.getLogger(__name__)

DATA_REQUEST_NOTE = (
    "Customer data request received. App stores order analytics and minimal "
    "PII; fulfil manually."
)


def _shop_domain(event, payload):
    return payload.get("shop_domain") or event.shop_domain


def handle_customers_data_request(event, payload):
    shop_domain = _shop_domain(event, payload)
    customer = payload.get("customer") or {}
    logger.info(
        "Customer data request for customer %s (shop=%s)",
        customer.get("id"),
        shop_domain,
    )
    return ComplianceRecord.objects.create(
        shop_domain=shop_domain,
        topic="customers/data_request",
        payload={
            "shop_id": payload.get("shop_id"),
            "customer_id": customer.get("id"),
            "customer_email": customer.get("email"),
            "orders_requested": payload.get("orders_requested") or [],
            "data_request_id": (payload.get("data_request") or {}).get("id"),
            "requested_at": timezone.now().isoformat(),
            "note": DATA_REQUEST_NOTE,
        },
    )


def handle_customers_redact(event, payload):
    shop_domain = _shop_domain(event, payload)
    customer = payload.get("customer") or {}
    customer_id = customer.get("id")
    orders_to_redact = payload.get("orders_to_redact") or []

    customers_deleted = 0
    orders_redacted = 0
    shop = Shop.objects.filter(shop_domain=shop_domain).first()
    if shop is not None and customer_id:
        with transaction.atomic():
            customers_deleted, _ = Customer.objects.filter(
                shop=shop, shopify_customer_id=customer_id
            ).delete()
            for order in Order.objects.filter(
                shop=shop, shopify_order_id__in=orders_to_redact, pii_redacted=False
            ):
                order.save(update_fields=order.redact_pii())
                orders_redacted += 1
        logger.info(
            "Erased customer %s: %d customer rows deleted, %d orders redacted "
            "(shop=%s)",
            customer_id,
            customers_deleted,
            orders_redacted,
            shop_domain,
        )
    else:
        logger.info(
            "Customer erasure for %s matched no stored shop or customer id",
            shop_domain,
        )

    return ComplianceRecord.objects.create(
        shop_domain=shop_domain,
        topic="customers/redact",
        payload={
            "shop_id": payload.get("shop_id"),
            "customer_id": customer_id,
            "orders_to_redact": orders_to_redact,
            "customers_deleted": customers_deleted,
            "orders_redacted": orders_redacted,
            "redacted_at": timezone.now().isoformat(),
        },
    )


def erase_shop(shop):
    """Delete every record stored for ``shop``, children first.

    The shop row is deleted last because every earlier delete filters on it.
    Returns a dict of deleted row counts per model.
    """
    counts = {}
    with transaction.atomic():
        for label, queryset in (
            ("orders", Order.objects.filter(shop=shop)),
            ("customers", Customer.objects.filter(shop=shop)),
            ("products", Product.objects.filter(shop=shop)),
            ("inventory_levels", InventoryLevel.objects.filter(shop=shop)),
            ("inventory_items", InventoryItem.objects.filter(shop=shop)),
            ("shop_users", ShopUser.objects.filter(shop=shop)),
            (
                "webhook_events",
                WebhookEvent.objects.filter(shop_domain=shop.shop_domain),
            ),
        ):
            counts[label], _ = queryset.delete()
        Shop.objects.filter(pk=shop.pk).delete()
    return counts


def handle_shop_redact(event, payload):
    shop_domain = _shop_domain(event, payload)
    shop = Shop.objects.filter(shop_domain=shop_domain).first()
    counts = {}
    if shop is not None:
        counts = erase_shop(shop)
        logger.info("All data deleted for shop %s: %s", shop_domain, counts)
    else:
        logger.info("Shop erasure for %s: nothing stored", shop_domain)

    return ComplianceRecord.objects.create(
        shop_domain=shop_domain,
        topic="shop/redact",
        payload={
            "shop_id": payload.get("shop_id"),
            "deleted": counts,
            "redacted_at": timezone.now().isoformat(),
        },
    )


# ---------------------------------------------------------------------------
# Handler registration: called when this module is imported via apps.ready()
# ---------------------------------------------------------------------------
register_handler(
    "customers/data_request", handle_customers_data_request, requires_shop=False
)
register_handler("customers/redact", handle_customers_redact, requires_shop=False)
register_handler("shop/redact", handle_shop_redact, requires_shop=False)
