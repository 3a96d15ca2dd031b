"""Webhook subscription management against the Shopify Admin REST API."""

import logging

import requests
from django.urls import reverse

from .. import conf

logger = logging.getLogger(__name__)

# Topics that do not need protected customer data access.
WEBHOOK_TOPICS = [
    "app/uninstalled",
    "products/create",
    "products/update",
    "products/delete",
    "inventory_levels/update",
    "inventory_levels/connect",
    "inventory_levels/disconnect",
]

# Topics Shopify refuses until the app is granted protected customer data.
PROTECTED_WEBHOOK_TOPICS = [
    "orders/create",
    "orders/updated",
    "orders/paid",
    "orders/cancelled",
    "orders/fulfilled",
    "customers/create",
    "customers/update",
    "customers/delete",
]

REGISTERED = "registered"
PROTECTED = "protected_data"
FAILED = "failed"


def _api_headers(access_token):
    """Return headers for authenticated Shopify Admin API requests."""
    return {
        "X-Shopify-Access-Token": access_token,
        "Content-Type": "application/json",
    }


def webhook_address():
    return conf.app_url(reverse("shopify_webhook"))


def register_webhook(shop, topic, address):
    """Register one topic. Returns REGISTERED, PROTECTED or FAILED."""
    try:
        response = requests.post(
            conf.admin_api_url(shop.shop_domain, "webhooks.json"),
            json={"webhook": {"topic": topic, "address": address, "format": "json"}},
            headers=_api_headers(shop.access_token),
            timeout=conf.get("SHOPIFY_HTTP_TIMEOUT"),
        )
    except requests.RequestException as exc:
        logger.error("Error registering webhook %s for %s: %s", topic, shop.shop_domain, exc)
        return FAILED

    if response.ok:
        logger.info("Registered webhook %s for %s", topic, shop.shop_domain)
        return REGISTERED

    body = response.text
    # Shopify returns 422 when the subscription already exists.
    if response.status_code == 422 and "already been taken" in body:
        logger.info("Webhook %s already exists for %s", topic, shop.shop_domain)
        return REGISTERED
    if "protected customer data" in body or "do not have permission" in body:
        logger.info(
            "Webhook %s requires protected customer data access (%s)",
            topic,
            shop.shop_domain,
        )
        return PROTECTED

    logger.error(
        "Failed to register webhook %s for %s (HTTP %s)",
        topic,
        shop.shop_domain,
        response.status_code,
    )
    return FAILED


def register_webhooks(shop):
    """Register every topic the app handles for ``shop``.

    Returns a dict with ``registered``, ``failed`` and ``protected_skipped``
    topic lists.  Topics refused for lack of protected customer data access
    are reported separately and do not count as failures.
    """
    if not conf.get("SHOPIFY_APP_URL"):
        logger.error("SHOPIFY_APP_URL is not set; cannot register webhooks")
        topics = WEBHOOK_TOPICS + PROTECTED_WEBHOOK_TOPICS
        return {"registered": [], "failed": topics, "protected_skipped": []}

    address = webhook_address()
    outcome = {"registered": [], "failed": [], "protected_skipped": []}
    for topic in WEBHOOK_TOPICS + PROTECTED_WEBHOOK_TOPICS:
        status = register_webhook(shop, topic, address)
        if status == REGISTERED:
            outcome["registered"].append(topic)
        elif status == PROTECTED:
            outcome["protected_skipped"].append(topic)
        else:
            outcome["failed"].append(topic)

    if outcome["protected_skipped"]:
        logger.info(
            "Skipped %d webhooks for %s pending protected customer data access",
            len(outcome["protected_skipped"]),
            shop.shop_domain,
        )
    return outcome


def list_webhooks(shop):
    """List webhook subscriptions. Raises ``requests.HTTPError`` on failure."""
    response = requests.get(
        conf.admin_api_url(shop.shop_domain, "webhooks.json"),
        headers=_api_headers(shop.access_token),
        timeout=conf.get("SHOPIFY_HTTP_TIMEOUT"),
    )
    response.raise_for_status()
    return response.json().get("webhooks", [])


def delete_webhook(shop, webhook_id):
    response = requests.delete(
        conf.admin_api_url(shop.shop_domain, f"webhooks/{webhook_id}.json"),
        headers=_api_headers(shop.access_token),
        timeout=conf.get("SHOPIFY_HTTP_TIMEOUT"),
    )
    return response.ok
