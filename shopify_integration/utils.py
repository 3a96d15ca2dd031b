"""Utility helpers for mapping Shopify payload values onto model fields."""

import re
from decimal import Decimal, InvalidOperation

from django.utils.dateparse import parse_datetime

SHOP_DOMAIN_RE = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9-]*\.myshopify\.com$")


def is_valid_shop_domain(shop_domain):
    """Return True if ``shop_domain`` looks like ``<store>.myshopify.com``.

    Examples::

        >>> is_valid_shop_domain("my-store.myshopify.com")
        True
        >>> is_valid_shop_domain("-bad.myshopify.com")
        False
        >>> is_valid_shop_domain("evil.com/.myshopify.com")
        False
    """
    return bool(shop_domain) and SHOP_DOMAIN_RE.fullmatch(shop_domain) is not None


def parse_shopify_datetime(value):
    """Parse an ISO-8601 timestamp from a Shopify payload, or return None."""
    if not value:
        return None
    if not isinstance(value, str):
        return value
    return parse_datetime(value)


def parse_money(value, default="0"):
    """Convert a Shopify money string (e.g. ``"22.50"``) to a Decimal."""
    if value in (None, ""):
        value = default
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return Decimal(default)


def parse_coordinate(value):
    """Convert a latitude/longitude value to a Decimal rounded to 7 places."""
    if value in (None, ""):
        return None
    try:
        return round(Decimal(str(value)), 7)
    except InvalidOperation:
        return None


def split_tags(tags):
    """Split Shopify's comma-separated tag string into a list.

    Examples::

        >>> split_tags("vip, wholesale")
        ['vip', 'wholesale']
        >>> split_tags(None)
        []
    """
    if not tags:
        return []
    if isinstance(tags, list):
        return [tag for tag in tags if tag]
    return [tag.strip() for tag in tags.split(",") if tag.strip()]
