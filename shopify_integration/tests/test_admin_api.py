"""Tests for outbound Admin API calls: webhook subscriptions and initial sync."""

from io import StringIO
from unittest.mock import MagicMock

import pytest
import requests
from django.core.management import call_command
from django.core.management.base import CommandError

from shopify_integration.models import Customer, Order, Product
from shopify_integration.services import sync as sync_service
from shopify_integration.services.webhooks import (
    FAILED,
    PROTECTED,
    PROTECTED_WEBHOOK_TOPICS,
    REGISTERED,
    WEBHOOK_TOPICS,
    register_webhook,
    register_webhooks,
    webhook_address,
)

pytestmark = pytest.mark.django_db


def _response(status_code=200, json_data=None, text="", links=None):
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.text = text
    response.json.return_value = json_data or {}
    response.links = links or {}
    if response.ok:
        response.raise_for_status.return_value = None
    else:
        response.raise_for_status.side_effect = requests.HTTPError(response=response)
    return response


class TestRegisterWebhook:
    def test_address_uses_app_url(self):
        assert webhook_address() == "https://app.example.com/webhooks/shopify/"

    def test_created(self, shop, mocker):
        mock_post = mocker.patch(
            "shopify_integration.services.webhooks.requests.post",
            return_value=_response(201, {"webhook": {"id": 1}}),
        )
        assert register_webhook(shop, "products/create", webhook_address()) == REGISTERED

        args, kwargs = mock_post.call_args
        assert args[0] == (
            "https://test-shop.myshopify.com/admin/api/2024-10/webhooks.json"
        )
        assert kwargs["json"]["webhook"]["topic"] == "products/create"
        assert kwargs["headers"]["X-Shopify-Access-Token"] == "shpat_test"
        assert kwargs["timeout"] == 30

    def test_already_taken_counts_as_registered(self, shop, mocker):
        mocker.patch(
            "shopify_integration.services.webhooks.requests.post",
            return_value=_response(422, text='{"errors":{"address":["for this topic has already been taken"]}}'),
        )
        assert register_webhook(shop, "products/create", "https://x") == REGISTERED

    def test_protected_data_refusal(self, shop, mocker):
        mocker.patch(
            "shopify_integration.services.webhooks.requests.post",
            return_value=_response(
                403,
                text="This app is not approved to subscribe to webhook topics "
                "containing protected customer data.",
            ),
        )
        assert register_webhook(shop, "orders/create", "https://x") == PROTECTED

    def test_transport_error(self, shop, mocker):
        mocker.patch(
            "shopify_integration.services.webhooks.requests.post",
            side_effect=requests.ConnectionError("down"),
        )
        assert register_webhook(shop, "products/create", "https://x") == FAILED


class TestRegisterWebhooks:
    def test_outcome_split(self, shop, mocker):
        def fake_post(url, json, headers, timeout):
            if json["webhook"]["topic"] in PROTECTED_WEBHOOK_TOPICS:
                return _response(403, text="requires protected customer data access")
            return _response(201)

        mocker.patch(
            "shopify_integration.services.webhooks.requests.post", side_effect=fake_post
        )
        outcome = register_webhooks(shop)

        assert outcome["registered"] == WEBHOOK_TOPICS
        assert outcome["protected_skipped"] == PROTECTED_WEBHOOK_TOPICS
        assert outcome["failed"] == []

    def test_without_app_url_everything_fails(self, shop, settings, mocker):
        settings.SHOPIFY_APP_URL = ""
        mock_post = mocker.patch("shopify_integration.services.webhooks.requests.post")
        outcome = register_webhooks(shop)
        assert outcome["registered"] == []
        assert len(outcome["failed"]) == len(WEBHOOK_TOPICS + PROTECTED_WEBHOOK_TOPICS)
        mock_post.assert_not_called()


class TestRegisterCommand:
    def test_unknown_shop(self):
        with pytest.raises(CommandError):
            call_command("register_shopify_webhooks", "--shop", "nope.myshopify.com")

    def test_list(self, shop, mocker):
        mocker.patch(
            "shopify_integration.services.webhooks.requests.get",
            return_value=_response(
                200,
                {"webhooks": [{"id": 11, "topic": "app/uninstalled", "address": "https://x"}]},
            ),
        )
        out = StringIO()
        call_command(
            "register_shopify_webhooks", "--shop", shop.shop_domain, "--list", stdout=out
        )
        assert "app/uninstalled" in out.getvalue()
        assert "Total: 1" in out.getvalue()

    def test_delete_all(self, shop, mocker):
        mocker.patch(
            "shopify_integration.services.webhooks.requests.get",
            return_value=_response(
                200,
                {"webhooks": [{"id": 11, "topic": "a"}, {"id": 12, "topic": "b"}]},
            ),
        )
        mock_delete = mocker.patch(
            "shopify_integration.services.webhooks.requests.delete",
            return_value=_response(200),
        )
        out = StringIO()
        call_command(
            "register_shopify_webhooks", "--shop", shop.shop_domain, "--delete-all",
            stdout=out,
        )
        assert mock_delete.call_count == 2
        assert "Deleted 2/2 webhooks" in out.getvalue()

    def test_register(self, shop, mocker):
        mocker.patch(
            "shopify_integration.services.webhooks.requests.post",
            return_value=_response(201),
        )
        out = StringIO()
        call_command("register_shopify_webhooks", "--shop", shop.shop_domain, stdout=out)
        expected = len(WEBHOOK_TOPICS + PROTECTED_WEBHOOK_TOPICS)
        assert f"Done: {expected} registered" in out.getvalue()


class TestInitialSync:
    def test_imports_all_resources_with_pagination(self, shop, mocker):
        next_page = "https://test-shop.myshopify.com/admin/api/2024-10/orders.json?page_info=abc"

        def fake_get(url, headers, params, timeout):
            if "customers.json" in url:
                return _response(200, {"customers": [{"id": 1, "email": "a@example.com"}]})
            if "products.json" in url:
                return _response(200, {"products": [{"id": 2, "title": "Mug"}]})
            if url == next_page:
                assert params is None
                return _response(200, {"orders": [{"id": 4, "customer": {"id": 1}}]})
            return _response(
                200,
                {"orders": [{"id": 3, "customer": {"id": 1}}]},
                links={"next": {"url": next_page}},
            )

        mock_get = mocker.patch(
            "shopify_integration.services.sync.requests.get", side_effect=fake_get
        )
        counts = sync_service.sync_shop(shop)

        assert counts == {"customers": 1, "products": 1, "orders": 2}
        customer = Customer.objects.get(shop=shop, shopify_customer_id=1)
        assert set(
            Order.objects.filter(shop=shop).values_list("customer", flat=True)
        ) == {customer.pk}
        assert Product.objects.filter(shop=shop, shopify_product_id=2).exists()
        first_order_call = [
            c for c in mock_get.call_args_list if "orders.json" in c.args[0]
        ][0]
        assert first_order_call.kwargs["params"]["status"] == "any"
        assert "created_at_min" in first_order_call.kwargs["params"]
        shop.refresh_from_db()
        assert shop.last_sync_at is not None

    def test_protected_resource_skipped(self, shop, mocker):
        def fake_get(url, headers, params, timeout):
            if "customers.json" in url:
                return _response(403)
            return _response(200, {})

        mocker.patch("shopify_integration.services.sync.requests.get", side_effect=fake_get)
        counts = sync_service.sync_shop(shop)
        assert counts == {"customers": 0, "products": 0, "orders": 0}

    def test_server_error_propagates(self, shop, mocker):
        mocker.patch(
            "shopify_integration.services.sync.requests.get",
            return_value=_response(502),
        )
        with pytest.raises(requests.HTTPError):
            sync_service.sync_shop(shop)
