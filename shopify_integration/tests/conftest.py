import pytest
from django.contrib.auth import get_user_model
from django.utils import timezone

from shopify_integration.models import Shop, WebhookEvent

SHOP_DOMAIN = "test-shop.myshopify.com"


@pytest.fixture
def shop(db):
    return Shop.objects.create(
        shop_domain=SHOP_DOMAIN,
        access_token="shpat_test",
        scope="read_products,read_orders",
        shop_name="Test Shop",
        is_active=True,
        installed_at=timezone.now(),
    )


@pytest.fixture
def user(db):
    return get_user_model().objects.create_user(
        username="merchant", email="merchant@example.com", password="pw"
    )


@pytest.fixture
def make_event(db):
    def _make_event(topic, payload=None, shop_domain=SHOP_DOMAIN, **overrides):
        defaults = {
            "topic": topic,
            "shop_domain": shop_domain,
            "status": WebhookEvent.Status.RECEIVED,
            "payload": payload or {},
            "payload_hash": "a" * 64,
        }
        defaults.update(overrides)
        return WebhookEvent.objects.create(**defaults)

    return _make_event
