"""Shop persistence helpers used by the OAuth flow and lifecycle webhooks."""

import logging

from django.db import transaction
from django.utils import timezone

from ..models import Shop, ShopUser

logger = logging.getLogger(__name__)

SHOP_METADATA_FIELDS = (
    "shopify_shop_id",
    "shop_name",
    "shop_email",
    "currency",
    "timezone",
)


def get_active_shop(shop_domain):
    """Return the active Shop for ``shop_domain``, or None."""
    return Shop.objects.filter(shop_domain=shop_domain, is_active=True).first()


def store_shop_session(shop_domain, access_token, scope, metadata=None):
    """Create or refresh the Shop for ``shop_domain`` after a successful install.

    A reinstall starts a new install cycle: the access token and scope are
    replaced, the shop is reactivated and ``uninstalled_at`` is cleared.
    Metadata keys not present in ``metadata`` keep their stored values.
    """
    defaults = {
        "access_token": access_token,
        "scope": scope or "",
        "is_active": True,
        "installed_at": timezone.now(),
        "uninstalled_at": None,
    }
    for field in SHOP_METADATA_FIELDS:
        value = (metadata or {}).get(field)
        if value is not None:
            defaults[field] = value

    shop, created = Shop.objects.update_or_create(
        shop_domain=shop_domain, defaults=defaults
    )
    logger.info(
        "%s shop session for %s (scope=%s)",
        "Created" if created else "Updated",
        shop_domain,
        shop.scope,
    )
    return shop


def link_user_to_shop(user, shop, role=ShopUser.Role.OWNER, is_default=True):
    """Give ``user`` access to ``shop``. A new default replaces older defaults."""
    with transaction.atomic():
        if is_default:
            ShopUser.objects.filter(user=user).exclude(shop=shop).update(
                is_default=False
            )
        link, _ = ShopUser.objects.update_or_create(
            user=user,
            shop=shop,
            defaults={"role": role, "is_default": is_default},
        )
    return link


def is_user_linked(user, shop):
    return ShopUser.objects.filter(user=user, shop=shop).exists()


def mark_shop_uninstalled(shop_domain):
    """Deactivate the shop. Returns the number of shops updated (0 or 1)."""
    updated = Shop.objects.filter(shop_domain=shop_domain).update(
        is_active=False,
        uninstalled_at=timezone.now(),
        updated_at=timezone.now(),
    )
    if updated:
        logger.info("Marked shop %s as uninstalled", shop_domain)
    else:
        logger.warning("Uninstall received for unknown shop %s", shop_domain)
    return updated
