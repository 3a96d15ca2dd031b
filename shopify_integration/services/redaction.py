"""PII retention: keep personal data only on the latest orders of each shop.

Each pass, per active shop:

1. The cutoff is the ``created_at_shopify`` of the N-th most recent order
   (N = ``PII_RETENTION_WINDOW``).  Shops with fewer than N orders are
   skipped.
2. Up to ``PII_REDACTION_BATCH_SIZE`` unredacted orders strictly older than
   the cutoff are fetched, oldest first.
3. Each order loses its email, billing address and note; its shipping
   address is reduced to city/province/country (see
   :func:`~shopify_integration.models.redact_shipping_address`).
4. Customers touched by the batch are redacted once none of their orders in
   the shop still carries PII.

What is preserved: order number and name, Shopify ids, statuses, totals,
currency, line items, coordinates, timestamps, tags and discount codes.

Runs are idempotent: redacted rows are excluded by the ``pii_redacted``
filter, so a failed record is simply picked up by the next run.  Shops are
independent and are spread over a bounded thread pool; a single shop's pass
always runs on one worker from start to finish.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field

from datadog import statsd
from django.db import connections

from .. import conf
from ..models import Customer, Order, Shop

logger = logging.getLogger(__name__)


@dataclass
class ShopRedactionResult:
    shop_domain: str
    skipped: bool = False
    orders_redacted: int = 0
    customers_redacted: int = 0
    errors: list = field(default_factory=list)


@dataclass
class RedactionResult:
    shops_processed: int = 0
    orders_redacted: int = 0
    customers_redacted: int = 0
    errors: list = field(default_factory=list)
    shops: list = field(default_factory=list)

    def add(self, shop_result):
        self.shops_processed += 1
        self.orders_redacted += shop_result.orders_redacted
        self.customers_redacted += shop_result.customers_redacted
        self.errors.extend(shop_result.errors)
        self.shops.append(shop_result)

    def as_dict(self):
        return asdict(self)


class RedactionEngine:
    """Enforces the PII retention window over orders and customers."""

    def __init__(
        self, retention_window=None, batch_size=None, max_workers=None, log=None
    ):
        if retention_window is None:
            retention_window = conf.get("PII_RETENTION_WINDOW")
        if batch_size is None:
            batch_size = conf.get("PII_REDACTION_BATCH_SIZE")
        if max_workers is None:
            max_workers = conf.get("PII_REDACTION_MAX_WORKERS")
        for name, value in (
            ("retention_window", retention_window),
            ("batch_size", batch_size),
            ("max_workers", max_workers),
        ):
            if value < 1:
                raise ValueError(f"{name} must be at least 1, got {value}")
        self.retention_window = retention_window
        self.batch_size = batch_size
        self.max_workers = max_workers
        self.log = log or logger

    # ------------------------------------------------------------------
    # Cross-shop driver
    # ------------------------------------------------------------------

    def run(self, shops=None):
        """Run one pass over ``shops`` (default: every active shop)."""
        if shops is None:
            shops = list(Shop.objects.filter(is_active=True).order_by("id"))
        result = RedactionResult()
        self.log.info(
            "Starting PII redaction for %d shops (window=%d, batch=%d)",
            len(shops),
            self.retention_window,
            self.batch_size,
        )

        if self.max_workers <= 1 or len(shops) <= 1:
            for shop in shops:
                result.add(self._redact_shop_safely(shop))
        else:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                for shop_result in pool.map(self._redact_shop_in_worker, shops):
                    result.add(shop_result)

        self.log.info(
            "PII redaction complete: %d shops, %d orders, %d customers, %d errors",
            result.shops_processed,
            result.orders_redacted,
            result.customers_redacted,
            len(result.errors),
        )
        return result

    def _redact_shop_in_worker(self, shop):
        try:
            return self._redact_shop_safely(shop)
        finally:
            # Worker threads open their own database connections.
            connections.close_all()

    def _redact_shop_safely(self, shop):
        try:
            return self.redact_shop(shop)
        except Exception as exc:
            self.log.exception("PII redaction failed for shop %s", shop.shop_domain)
            return ShopRedactionResult(
                shop_domain=shop.shop_domain,
                errors=[f"{shop.shop_domain}: {exc}"],
            )

    # ------------------------------------------------------------------
    # Single shop
    # ------------------------------------------------------------------

    def find_cutoff(self, shop):
        """Return the creation time of the N-th most recent order, or None."""
        index = self.retention_window - 1
        cutoff = (
            Order.objects.filter(shop=shop, created_at_shopify__isnull=False)
            .order_by("-created_at_shopify")
            .values_list("created_at_shopify", flat=True)[index : index + 1]
        )
        return next(iter(cutoff), None)

    def redact_shop(self, shop):
        result = ShopRedactionResult(shop_domain=shop.shop_domain)

        cutoff = self.find_cutoff(shop)
        if cutoff is None:
            self.log.info(
                "Shop %s has fewer than %d orders, skipping",
                shop.shop_domain,
                self.retention_window,
            )
            result.skipped = True
            return result

        stale_orders = list(
            Order.objects.filter(
                shop=shop, pii_redacted=False, created_at_shopify__lt=cutoff
            ).order_by("created_at_shopify", "id")[: self.batch_size]
        )
        if not stale_orders:
            self.log.info(
                "Shop %s: no unredacted orders beyond the latest %d",
                shop.shop_domain,
                self.retention_window,
            )
            return result

        customer_ids = set()
        for order in stale_orders:
            if order.customer_id:
                customer_ids.add(order.customer_id)
            try:
                update_fields = order.redact_pii()
                order.save(update_fields=update_fields)
            except Exception as exc:
                self.log.warning("Failed to redact order %s: %s", order.pk, exc)
                result.errors.append(f"Order {order.pk}: {exc}")
            else:
                result.orders_redacted += 1

        for customer_id in sorted(customer_ids):
            try:
                if self.redact_customer_if_unreferenced(shop, customer_id):
                    result.customers_redacted += 1
            except Exception as exc:
                self.log.warning("Failed to redact customer %s: %s", customer_id, exc)
                result.errors.append(f"Customer {customer_id}: {exc}")

        tags = [f"shop_domain:{shop.shop_domain}"]
        statsd.increment(
            "shopify.pii.orders_redacted", result.orders_redacted, tags=tags
        )
        statsd.increment(
            "shopify.pii.customers_redacted", result.customers_redacted, tags=tags
        )
        self.log.info(
            "Shop %s: redacted %d orders, %d of %d customers",
            shop.shop_domain,
            result.orders_redacted,
            result.customers_redacted,
            len(customer_ids),
        )
        return result

    def redact_customer_if_unreferenced(self, shop, customer_id):
        """Redact the customer if none of its orders still carries PII.

        The update is guarded on ``pii_redacted=False`` so an already
        redacted customer is never rewritten.  Returns True if redacted.
        """
        has_retained_orders = Order.objects.filter(
            shop=shop, customer_id=customer_id, pii_redacted=False
        ).exists()
        if has_retained_orders:
            return False
        updated = Customer.objects.filter(
            pk=customer_id, shop=shop, pii_redacted=False
        ).update(**Customer.redacted_values())
        return updated == 1


def run_pii_redaction(shops=None, **engine_options):
    """Run one redaction pass with settings-driven defaults."""
    return RedactionEngine(**engine_options).run(shops=shops)
