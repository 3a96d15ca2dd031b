"""Tests for the PII retention engine."""

import logging
from datetime import timedelta

import pytest
from django.utils import timezone

from shopify_integration.models import Customer, Order, Shop
from shopify_integration.services.redaction import (
    RedactionEngine,
    ShopRedactionResult,
    run_pii_redaction,
)

pytestmark = pytest.mark.django_db

ADDRESS = {
    "first_name": "Jane",
    "address1": "1 Main St",
    "zip": "K1A 0B1",
    "city": "Ottawa",
    "province": "Ontario",
    "province_code": "ON",
    "country": "Canada",
    "country_code": "CA",
}


def _make_orders(shop, count, customer_for=lambda rank: None, start=None):
    """Create ``count`` orders; rank 1 is the newest.

    Returns a dict mapping rank to order.
    """
    start = start or timezone.now()
    orders = {}
    for rank in range(1, count + 1):
        orders[rank] = Order.objects.create(
            shop=shop,
            shopify_order_id=rank,
            name=f"#{rank}",
            email=f"buyer{rank}@example.com",
            note="call me",
            billing_address=ADDRESS,
            shipping_address=ADDRESS,
            customer=customer_for(rank),
            total_price="10.00",
            created_at_shopify=start - timedelta(minutes=rank),
        )
    return orders


def _customer(shop, shopify_id):
    return Customer.objects.create(
        shop=shop,
        shopify_customer_id=shopify_id,
        email=f"c{shopify_id}@example.com",
        first_name="Pat",
        last_name="Doe",
        phone="555",
        default_address=ADDRESS,
        addresses=[ADDRESS],
    )


class TestEngineOptions:
    def test_defaults_come_from_settings(self, settings):
        settings.PII_RETENTION_WINDOW = 7
        settings.PII_REDACTION_BATCH_SIZE = 3
        settings.PII_REDACTION_MAX_WORKERS = 2
        engine = RedactionEngine()
        assert engine.retention_window == 7
        assert engine.batch_size == 3
        assert engine.max_workers == 2

    @pytest.mark.parametrize("option", ["retention_window", "batch_size", "max_workers"])
    def test_zero_is_rejected_not_defaulted(self, option):
        with pytest.raises(ValueError, match=option):
            RedactionEngine(**{option: 0})


class TestRetentionWindow:
    def test_redacts_only_orders_beyond_window(self, shop):
        orders = _make_orders(shop, 150)

        result = RedactionEngine(retention_window=100, batch_size=200, max_workers=1).run()

        assert result.orders_redacted == 50
        assert result.errors == []
        for rank, order in orders.items():
            order.refresh_from_db()
            if rank <= 100:
                assert order.pii_redacted is False, rank
                assert order.email == f"buyer{rank}@example.com"
            else:
                assert order.pii_redacted is True, rank
                assert order.email is None
                assert order.note is None
                assert order.billing_address is None
                assert order.shipping_address == {
                    "city": "Ottawa",
                    "province": "Ontario",
                    "province_code": "ON",
                    "country": "Canada",
                    "country_code": "CA",
                }
                assert str(order.total_price) == "10.00"
                assert order.name == f"#{rank}"

    def test_second_run_is_noop(self, shop):
        _make_orders(shop, 150)
        engine = RedactionEngine(retention_window=100, batch_size=200, max_workers=1)
        engine.run()

        second = engine.run()

        assert second.orders_redacted == 0
        assert second.customers_redacted == 0
        assert Order.objects.filter(pii_redacted=True).count() == 50

    def test_shop_with_fewer_orders_than_window_skipped(self, shop):
        _make_orders(shop, 99)
        result = RedactionEngine(retention_window=100, max_workers=1).run()
        assert result.orders_redacted == 0
        assert result.shops[0].skipped is True

    def test_exactly_window_orders_redacts_nothing(self, shop):
        _make_orders(shop, 100)
        result = RedactionEngine(retention_window=100, max_workers=1).run()
        assert result.orders_redacted == 0
        assert result.shops[0].skipped is False

    def test_batch_size_bounds_each_pass_oldest_first(self, shop):
        orders = _make_orders(shop, 150)
        engine = RedactionEngine(retention_window=100, batch_size=20, max_workers=1)

        first = engine.run()

        assert first.orders_redacted == 20
        redacted_ranks = {
            rank for rank, order in orders.items()
            if Order.objects.get(pk=order.pk).pii_redacted
        }
        assert redacted_ranks == set(range(131, 151))

        engine.run()
        engine.run()
        assert Order.objects.filter(pii_redacted=True).count() == 50

    def test_orders_without_timestamp_ignored(self, shop):
        _make_orders(shop, 3)
        undated = Order.objects.create(shop=shop, shopify_order_id=999, email="x@example.com")
        RedactionEngine(retention_window=2, max_workers=1).run()
        undated.refresh_from_db()
        assert undated.pii_redacted is False
        assert Order.objects.filter(pii_redacted=True).count() == 1

    def test_inactive_shops_not_processed(self, shop):
        _make_orders(shop, 5)
        shop.is_active = False
        shop.save()
        result = RedactionEngine(retention_window=2, max_workers=1).run()
        assert result.shops_processed == 0
        assert Order.objects.filter(pii_redacted=True).count() == 0


class TestCustomerRedaction:
    def test_customer_with_only_stale_orders_redacted(self, shop):
        stale_customer = _customer(shop, 1)
        retained_customer = _customer(shop, 2)

        def customer_for(rank):
            if rank > 100:
                return stale_customer
            if rank == 1:
                return retained_customer
            return None

        _make_orders(shop, 150, customer_for=customer_for)
        result = RedactionEngine(retention_window=100, max_workers=1).run()

        stale_customer.refresh_from_db()
        assert stale_customer.pii_redacted is True
        assert stale_customer.email is None
        assert stale_customer.first_name is None
        assert stale_customer.phone is None
        assert stale_customer.default_address is None
        assert stale_customer.addresses == []
        retained_customer.refresh_from_db()
        assert retained_customer.pii_redacted is False
        assert result.customers_redacted == 1

    def test_customer_with_a_retained_order_never_redacted(self, shop):
        customer = _customer(shop, 1)

        def customer_for(rank):
            return customer if rank in (50, 120, 140) else None

        _make_orders(shop, 150, customer_for=customer_for)
        RedactionEngine(retention_window=100, max_workers=1).run()
        RedactionEngine(retention_window=100, max_workers=1).run()

        customer.refresh_from_db()
        assert customer.pii_redacted is False
        assert customer.email == "c1@example.com"

    def test_already_redacted_customer_not_rewritten(self, shop):
        customer = Customer.objects.create(
            shop=shop, shopify_customer_id=1, **Customer.redacted_values()
        )
        engine = RedactionEngine(retention_window=1, max_workers=1)
        assert engine.redact_customer_if_unreferenced(shop, customer.pk) is False


class TestFailuresAndConcurrency:
    def test_record_failure_does_not_stop_batch(self, shop, mocker):
        _make_orders(shop, 10)
        original_save = Order.save

        def flaky_save(order, *args, **kwargs):
            if order.shopify_order_id == 8:
                raise RuntimeError("disk full")
            return original_save(order, *args, **kwargs)

        mocker.patch.object(Order, "save", flaky_save)
        result = RedactionEngine(retention_window=5, max_workers=1).run()

        assert result.orders_redacted == 4
        assert len(result.errors) == 1
        assert "disk full" in result.errors[0]
        assert not Order.objects.get(shopify_order_id=8).pii_redacted

        mocker.stopall()
        retry = RedactionEngine(retention_window=5, max_workers=1).run()
        assert retry.orders_redacted == 1

    def test_shop_failure_does_not_stop_other_shops(self, shop, mocker):
        other = Shop.objects.create(shop_domain="other.myshopify.com", access_token="t")
        _make_orders(shop, 5)
        _make_orders(other, 5)
        engine = RedactionEngine(retention_window=2, max_workers=1)
        original = engine.redact_shop

        def failing_for_first(target):
            if target.pk == shop.pk:
                raise RuntimeError("boom")
            return original(target)

        mocker.patch.object(engine, "redact_shop", side_effect=failing_for_first)
        result = engine.run()

        assert result.shops_processed == 2
        assert result.orders_redacted == 3
        assert any("boom" in error for error in result.errors)

    def test_worker_pool_runs_every_shop(self, shop, mocker):
        other = Shop.objects.create(shop_domain="other.myshopify.com", access_token="t")
        engine = RedactionEngine(retention_window=2, max_workers=4)
        # Worker threads must not touch the test database connection.
        mocker.patch("shopify_integration.services.redaction.connections")
        mocker.patch.object(
            engine,
            "redact_shop",
            side_effect=lambda target: ShopRedactionResult(
                shop_domain=target.shop_domain, orders_redacted=1
            ),
        )

        result = engine.run(shops=[shop, other])

        assert result.shops_processed == 2
        assert result.orders_redacted == 2
        assert {r.shop_domain for r in result.shops} == {
            shop.shop_domain,
            other.shop_domain,
        }

    def test_injected_logger_receives_events(self, shop, caplog):
        _make_orders(shop, 3)
        log = logging.getLogger("redaction-test")
        with caplog.at_level(logging.INFO, logger="redaction-test"):
            RedactionEngine(retention_window=2, max_workers=1, log=log).run()
        messages = [r.getMessage() for r in caplog.records if r.name == "redaction-test"]
        assert any("redacted 1 orders" in message for message in messages)

    def test_run_pii_redaction_uses_settings(self, shop, settings):
        settings.PII_RETENTION_WINDOW = 2
        _make_orders(shop, 4)
        result = run_pii_redaction()
        assert result.orders_redacted == 2
        assert result.as_dict()["shops"][0]["shop_domain"] == shop.shop_domain
