"""Tests for Shopify webhook views: security, idempotency, and routing."""

import base64
import hashlib
import hmac as hmac_mod
import json
import uuid

import pytest
from rest_framework.test import APIClient

from shopify_integration.models import ComplianceRecord, Order, Product, WebhookEvent

pytestmark = pytest.mark.django_db

API_SECRET = "test-api-secret"
SHOP_DOMAIN = "test-shop.myshopify.com"
WEBHOOK_URL = "/webhooks/shopify/"
COMPLIANCE_URL = "/webhooks/shopify/compliance/"
CRON_URL = "/cron/redact-pii/"


def _hmac_header(body: bytes, secret: str = API_SECRET) -> str:
    """Compute a valid HMAC-SHA256 header value."""
    return base64.b64encode(
        hmac_mod.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    ).decode("utf-8")


def _post_webhook(client, url, payload, topic="products/create",
                  shop_domain=SHOP_DOMAIN, webhook_id=None, secret=API_SECRET):
    """Helper to POST a webhook with correct Shopify headers."""
    body = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
    if webhook_id is None:
        webhook_id = f"wh_{uuid.uuid4().hex[:12]}"
    headers = {
        "HTTP_X_SHOPIFY_HMAC_SHA256": _hmac_header(body, secret),
        "HTTP_X_SHOPIFY_WEBHOOK_ID": webhook_id,
    }
    if topic:
        headers["HTTP_X_SHOPIFY_TOPIC"] = topic
    if shop_domain:
        headers["HTTP_X_SHOPIFY_SHOP_DOMAIN"] = shop_domain
    return client.post(url, data=body, content_type="application/json", **headers)


PRODUCT_PAYLOAD = {"id": 7524702552295, "title": "Test Product", "status": "active"}


class TestWebhookViewSecurity:
    """Security-critical tests for the webhook endpoint."""

    def setup_method(self):
        self.client = APIClient()

    def test_invalid_hmac_returns_401(self, shop):
        body = json.dumps({"id": 1}).encode("utf-8")
        response = self.client.post(
            WEBHOOK_URL,
            data=body,
            content_type="application/json",
            HTTP_X_SHOPIFY_SHOP_DOMAIN=SHOP_DOMAIN,
            HTTP_X_SHOPIFY_HMAC_SHA256="invalid-hmac-value",
            HTTP_X_SHOPIFY_TOPIC="products/create",
            HTTP_X_SHOPIFY_WEBHOOK_ID="wh_test",
        )
        assert response.status_code == 401
        assert WebhookEvent.objects.count() == 0

    def test_missing_hmac_returns_401(self, shop):
        response = self.client.post(
            WEBHOOK_URL,
            data=b'{"id": 1}',
            content_type="application/json",
            HTTP_X_SHOPIFY_SHOP_DOMAIN=SHOP_DOMAIN,
            HTTP_X_SHOPIFY_TOPIC="products/create",
        )
        assert response.status_code == 401

    def test_wrong_secret_hmac_returns_401(self, shop):
        response = _post_webhook(self.client, WEBHOOK_URL, {"id": 1}, secret="wrong-secret")
        assert response.status_code == 401
        assert WebhookEvent.objects.count() == 0

    def test_signature_checked_before_headers(self):
        response = _post_webhook(
            self.client, WEBHOOK_URL, {"id": 1}, topic=None, secret="wrong-secret"
        )
        assert response.status_code == 401

    def test_missing_topic_returns_400(self, shop):
        response = _post_webhook(self.client, WEBHOOK_URL, {"id": 1}, topic=None)
        assert response.status_code == 400
        assert WebhookEvent.objects.count() == 0

    def test_missing_shop_domain_returns_400(self, shop):
        response = _post_webhook(self.client, WEBHOOK_URL, {"id": 1}, shop_domain=None)
        assert response.status_code == 400
        assert WebhookEvent.objects.count() == 0

    def test_invalid_json_returns_400(self, shop):
        response = _post_webhook(self.client, WEBHOOK_URL, b"not json")
        assert response.status_code == 400

    def test_non_object_json_returns_400(self, shop):
        response = _post_webhook(self.client, WEBHOOK_URL, b"[1, 2, 3]")
        assert response.status_code == 400


class TestWebhookIdempotency:
    """Tests for duplicate webhook rejection."""

    def setup_method(self):
        self.client = APIClient()

    def test_valid_webhook_creates_event(self, shop):
        response = _post_webhook(self.client, WEBHOOK_URL, PRODUCT_PAYLOAD, webhook_id="wh_1")
        assert response.status_code == 200

        event = WebhookEvent.objects.get(webhook_id="wh_1")
        assert event.topic == "products/create"
        assert event.shop_domain == SHOP_DOMAIN
        assert event.shop == shop
        assert event.payload == PRODUCT_PAYLOAD
        assert event.payload_hash == hashlib.sha256(
            json.dumps(PRODUCT_PAYLOAD).encode("utf-8")
        ).hexdigest()
        assert event.status == WebhookEvent.Status.SUCCESS
        assert event.processed is True
        assert event.attempts == 1
        assert Product.objects.filter(shop=shop, shopify_product_id=7524702552295).exists()

    def test_duplicate_webhook_is_acknowledged_without_processing(self, shop, mocker):
        _post_webhook(self.client, WEBHOOK_URL, PRODUCT_PAYLOAD, webhook_id="wh_dup")
        mock_process = mocker.patch("shopify_integration.views.process_webhook_event")

        response = _post_webhook(
            self.client, WEBHOOK_URL, PRODUCT_PAYLOAD, webhook_id="wh_dup"
        )

        assert response.status_code == 200
        assert WebhookEvent.objects.filter(webhook_id="wh_dup").count() == 1
        mock_process.assert_not_called()

    def test_different_webhook_ids_both_recorded(self, shop):
        _post_webhook(self.client, WEBHOOK_URL, PRODUCT_PAYLOAD, webhook_id="wh_a")
        _post_webhook(self.client, WEBHOOK_URL, PRODUCT_PAYLOAD, webhook_id="wh_b")
        assert WebhookEvent.objects.count() == 2


class TestWebhookRouting:
    """Dispatch outcomes are stored, and Shopify always gets a 200."""

    def setup_method(self):
        self.client = APIClient()

    def test_unrecognized_topic_acknowledged_and_recorded(self, shop):
        response = _post_webhook(
            self.client, WEBHOOK_URL, {"id": 1}, topic="carts/update", webhook_id="wh_cart"
        )
        assert response.status_code == 200
        event = WebhookEvent.objects.get(webhook_id="wh_cart")
        assert event.status == WebhookEvent.Status.IGNORED
        assert event.processed is False
        assert Product.objects.count() == 0
        assert Order.objects.count() == 0

    def test_unknown_shop_acknowledged_without_dispatch(self):
        response = _post_webhook(
            self.client,
            WEBHOOK_URL,
            PRODUCT_PAYLOAD,
            shop_domain="stranger.myshopify.com",
            webhook_id="wh_stranger",
        )
        assert response.status_code == 200
        event = WebhookEvent.objects.get(webhook_id="wh_stranger")
        assert event.status == WebhookEvent.Status.IGNORED
        assert "Unknown shop" in event.error_message
        assert Product.objects.count() == 0

    def test_inactive_shop_treated_as_unknown(self, shop):
        shop.is_active = False
        shop.save()
        _post_webhook(self.client, WEBHOOK_URL, PRODUCT_PAYLOAD, webhook_id="wh_inactive")
        event = WebhookEvent.objects.get(webhook_id="wh_inactive")
        assert event.status == WebhookEvent.Status.IGNORED
        assert Product.objects.count() == 0

    def test_uninstall_dispatched_for_inactive_shop(self, shop):
        shop.is_active = False
        shop.save()
        response = _post_webhook(
            self.client, WEBHOOK_URL, {"id": 1}, topic="app/uninstalled", webhook_id="wh_un"
        )
        assert response.status_code == 200
        event = WebhookEvent.objects.get(webhook_id="wh_un")
        assert event.status == WebhookEvent.Status.SUCCESS
        shop.refresh_from_db()
        assert shop.uninstalled_at is not None

    def test_handler_failure_still_returns_200(self, shop):
        response = _post_webhook(
            self.client, WEBHOOK_URL, {"title": "no id"}, topic="orders/create",
            webhook_id="wh_bad",
        )
        assert response.status_code == 200
        event = WebhookEvent.objects.get(webhook_id="wh_bad")
        assert event.status == WebhookEvent.Status.FAILED
        assert "Missing order ID" in event.error_message
        assert event.processed is False

    def test_compliance_topic_accepted_on_main_endpoint(self, shop):
        payload = {"shop_id": 1, "shop_domain": SHOP_DOMAIN, "customer": {"id": 5}}
        response = _post_webhook(
            self.client, WEBHOOK_URL, payload, topic="customers/data_request"
        )
        assert response.status_code == 200
        assert ComplianceRecord.objects.filter(topic="customers/data_request").count() == 1


class TestComplianceWebhookView:
    def setup_method(self):
        self.client = APIClient()

    def test_invalid_hmac_returns_401(self, shop):
        response = _post_webhook(
            self.client, COMPLIANCE_URL, {"shop_domain": SHOP_DOMAIN},
            topic="shop/redact", secret="wrong-secret",
        )
        assert response.status_code == 401
        assert ComplianceRecord.objects.count() == 0

    def test_non_compliance_topic_rejected(self, shop):
        response = _post_webhook(
            self.client, COMPLIANCE_URL, PRODUCT_PAYLOAD, topic="products/create"
        )
        assert response.status_code == 400

    def test_shop_domain_from_body(self):
        payload = {"shop_id": 1, "shop_domain": SHOP_DOMAIN, "customer": {"id": 5}}
        response = _post_webhook(
            self.client, COMPLIANCE_URL, payload,
            topic="customers/data_request", shop_domain=None,
        )
        assert response.status_code == 200
        record = ComplianceRecord.objects.get()
        assert record.shop_domain == SHOP_DOMAIN

    def test_shop_domain_from_header(self):
        response = _post_webhook(
            self.client, COMPLIANCE_URL, {"shop_id": 1}, topic="shop/redact"
        )
        assert response.status_code == 200
        assert ComplianceRecord.objects.get().shop_domain == SHOP_DOMAIN

    def test_missing_shop_domain_returns_400(self):
        response = _post_webhook(
            self.client, COMPLIANCE_URL, {"shop_id": 1},
            topic="shop/redact", shop_domain=None,
        )
        assert response.status_code == 400

    def test_shop_redact_via_endpoint_erases_shop(self, shop):
        response = _post_webhook(
            self.client, COMPLIANCE_URL, {"shop_id": 1, "shop_domain": SHOP_DOMAIN},
            topic="shop/redact",
        )
        assert response.status_code == 200
        assert not type(shop).objects.filter(pk=shop.pk).exists()
        # The delivery record for the domain went with the shop.
        assert WebhookEvent.objects.filter(shop_domain=SHOP_DOMAIN).count() == 0
        assert ComplianceRecord.objects.filter(topic="shop/redact").count() == 1


class TestRedactPiiCronView:
    def setup_method(self):
        self.client = APIClient()

    def test_missing_secret_configuration_returns_500(self, settings):
        settings.SHOPIFY_CRON_SECRET = ""
        response = self.client.get(CRON_URL, HTTP_AUTHORIZATION="Bearer anything")
        assert response.status_code == 500

    def test_missing_authorization_returns_401(self):
        response = self.client.get(CRON_URL)
        assert response.status_code == 401

    def test_wrong_secret_returns_401(self):
        response = self.client.get(CRON_URL, HTTP_AUTHORIZATION="Bearer wrong")
        assert response.status_code == 401

    def test_valid_secret_runs_redaction(self, shop):
        response = self.client.get(
            CRON_URL, HTTP_AUTHORIZATION="Bearer test-cron-secret"
        )
        assert response.status_code == 200
        body = response.json()
        assert body["shops_processed"] == 1
        assert body["orders_redacted"] == 0
        assert body["errors"] == []
