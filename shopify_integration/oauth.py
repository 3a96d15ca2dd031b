"""Shopify OAuth install flow.

Begin (``OAuthBeginView``) issues a single-use nonce, binds it to the shop
domain with two signed cookies and redirects to Shopify's authorize page.
The callback (``OAuthCallbackView``) is driven by :class:`CallbackFlow`::

    init -> pending_callback -> validating -> exchanging -> linked
                         \\            \\            \\
                          +------------+------------+--> failed(reason)

Every failure is an :class:`OAuthError` carrying one of the reason codes in
``FAILURE_MESSAGES``; the view turns it into a dashboard redirect.
"""

import enum
import logging
from urllib.parse import urlencode

import requests
from django.urls import reverse

from . import conf
from .middleware import verify_callback_hmac
from .models import OAuthNegotiation
from .services.shops import (
    get_active_shop,
    is_user_linked,
    link_user_to_shop,
    store_shop_session,
)
from .services.webhooks import register_webhooks
from .tasks import sync_shop_initial_data

logger = logging.getLogger(__name__)

STATE_COOKIE = "shopify_oauth_state"
SHOP_COOKIE = "shopify_oauth_shop"
COOKIE_SALT = "shopify_integration.oauth"

REQUIRED_CALLBACK_PARAMS = ("code", "state", "shop", "hmac")


class FlowState(str, enum.Enum):
    INIT = "init"
    PENDING_CALLBACK = "pending_callback"
    VALIDATING = "validating"
    EXCHANGING = "exchanging"
    LINKED = "linked"
    FAILED = "failed"


FAILURE_MESSAGES = {
    "missing_params": "Missing OAuth parameters",
    "invalid_state": "Invalid OAuth state",
    "shop_mismatch": "Shop domain mismatch",
    "invalid_hmac": "Invalid HMAC signature",
    "state_reused": "OAuth state already used or expired",
    "token_exchange": "Failed to get access token",
    "callback_error": "OAuth callback failed",
}


class OAuthError(Exception):
    """A callback rejected with a reason code.

    ``message`` is safe to show to the user; internal details only go to
    the log.
    """

    def __init__(self, reason, message=None):
        self.reason = reason
        self.message = message or FAILURE_MESSAGES[reason]
        super().__init__(f"{reason}: {self.message}")


def callback_url():
    return conf.app_url(reverse("shopify_oauth_callback"))


def build_authorize_url(shop_domain, nonce):
    query = urlencode(
        {
            "client_id": conf.get("SHOPIFY_API_KEY"),
            "scope": conf.get("SHOPIFY_SCOPES"),
            "redirect_uri": callback_url(),
            "state": nonce,
        }
    )
    return f"https://{shop_domain}/admin/oauth/authorize?{query}"


def confirmation_url(user, shop_domain, confirmed=False):
    """Return the confirmation page URL if linking needs explicit consent.

    An active shop that the user is not yet linked to holds another
    account's data; the user must confirm before it is re-authorized.
    Returns None when the install can proceed.
    """
    if confirmed:
        return None
    shop = get_active_shop(shop_domain)
    if shop is None or is_user_linked(user, shop):
        return None
    params = {"shop": shop_domain}
    if shop.shop_name:
        params["name"] = shop.shop_name
    return f"{conf.get('SHOPIFY_CONFIRM_URL')}?{urlencode(params)}"


def begin(user, shop_domain):
    """Issue a negotiation for ``shop_domain``. Returns (negotiation, url).

    Consumed and expired negotiations are pruned first.
    """
    pruned = OAuthNegotiation.prune()
    if pruned:
        logger.debug("Pruned %d stale OAuth negotiations", pruned)
    negotiation = OAuthNegotiation.issue(
        shop_domain, user=user, ttl_seconds=conf.get("SHOPIFY_OAUTH_STATE_TTL")
    )
    logger.info("Starting OAuth install for %s", shop_domain)
    return negotiation, build_authorize_url(shop_domain, negotiation.nonce)


def dashboard_url(**params):
    return f"{conf.get('SHOPIFY_DASHBOARD_URL')}?{urlencode(params)}"


class CallbackFlow:
    """One OAuth callback, from validation to a linked shop.

    ``params`` are the callback query parameters (a ``QueryDict`` or dict);
    ``stored_state`` and ``stored_shop`` come from the negotiation cookies.
    """

    def __init__(self, params, stored_state, stored_shop, user=None):
        self.params = params
        self.stored_state = stored_state
        self.stored_shop = stored_shop
        self.user = user
        self.state = FlowState.PENDING_CALLBACK
        self.shop = None

    def run(self):
        """Run the flow. Returns the linked Shop or raises OAuthError."""
        try:
            self.validate()
            access_token, scope = self.exchange_code()
            metadata = self.fetch_shop_metadata(access_token)
            self.shop = self.link(access_token, scope, metadata)
        except OAuthError as exc:
            self.state = FlowState.FAILED
            logger.warning(
                "OAuth callback rejected for %s: %s",
                self.params.get("shop"),
                exc.reason,
            )
            raise
        except Exception as exc:
            self.state = FlowState.FAILED
            logger.exception("OAuth callback failed for %s", self.params.get("shop"))
            raise OAuthError("callback_error") from exc
        self.after_link()
        return self.shop

    def validate(self):
        self.state = FlowState.VALIDATING
        if any(not self.params.get(name) for name in REQUIRED_CALLBACK_PARAMS):
            raise OAuthError("missing_params")
        if not self.stored_state or self.params["state"] != self.stored_state:
            raise OAuthError("invalid_state")
        if not self.stored_shop or self.params["shop"] != self.stored_shop:
            raise OAuthError("shop_mismatch")
        if not verify_callback_hmac(self.params):
            raise OAuthError("invalid_hmac")
        if not OAuthNegotiation.consume(self.params["state"], self.params["shop"]):
            raise OAuthError("state_reused")

    def exchange_code(self):
        """Trade the one-time code for an offline access token."""
        self.state = FlowState.EXCHANGING
        shop_domain = self.params["shop"]
        try:
            response = requests.post(
                f"https://{shop_domain}/admin/oauth/access_token",
                json={
                    "client_id": conf.get("SHOPIFY_API_KEY"),
                    "client_secret": conf.get("SHOPIFY_API_SECRET"),
                    "code": self.params["code"],
                },
                timeout=conf.get("SHOPIFY_HTTP_TIMEOUT"),
            )
        except requests.RequestException as exc:
            logger.error("Token exchange request failed for %s: %s", shop_domain, exc)
            raise OAuthError("token_exchange") from exc

        if not response.ok:
            logger.error(
                "Token exchange failed for %s (HTTP %s)",
                shop_domain,
                response.status_code,
            )
            raise OAuthError("token_exchange")

        try:
            data = response.json()
        except ValueError as exc:
            raise OAuthError("token_exchange") from exc
        access_token = data.get("access_token")
        if not access_token:
            logger.error("Token exchange for %s returned no access token", shop_domain)
            raise OAuthError("token_exchange")
        return access_token, data.get("scope", "")

    def fetch_shop_metadata(self, access_token):
        """Fetch shop name, email, currency and timezone. Best effort."""
        shop_domain = self.params["shop"]
        try:
            response = requests.get(
                conf.admin_api_url(shop_domain, "shop.json"),
                headers={"X-Shopify-Access-Token": access_token},
                timeout=conf.get("SHOPIFY_HTTP_TIMEOUT"),
            )
            response.raise_for_status()
            shop_data = response.json().get("shop") or {}
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Could not fetch shop metadata for %s: %s", shop_domain, exc)
            return {}
        return {
            "shopify_shop_id": shop_data.get("id"),
            "shop_name": shop_data.get("name"),
            "shop_email": shop_data.get("email"),
            "currency": shop_data.get("currency"),
            "timezone": shop_data.get("iana_timezone"),
        }

    def link(self, access_token, scope, metadata):
        shop = store_shop_session(self.params["shop"], access_token, scope, metadata)
        if self.user is not None:
            link_user_to_shop(self.user, shop)
        self.state = FlowState.LINKED
        return shop

    def after_link(self):
        """Side effects that must not fail an install that already succeeded."""
        try:
            outcome = register_webhooks(self.shop)
            logger.info(
                "Webhooks for %s: %d registered, %d failed, %d need protected data",
                self.shop.shop_domain,
                len(outcome["registered"]),
                len(outcome["failed"]),
                len(outcome["protected_skipped"]),
            )
        except Exception:
            logger.exception("Failed to register webhooks for %s", self.shop.shop_domain)

        try:
            sync_shop_initial_data.send(self.shop.id)
        except Exception:
            logger.exception(
                "Failed to enqueue initial sync for %s", self.shop.shop_domain
            )
