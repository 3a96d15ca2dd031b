import hashlib
import hmac
import json
import logging

from django.contrib.auth.views import redirect_to_login
from django.db import IntegrityError, transaction
from django.http import HttpResponseRedirect
from rest_framework import status
from rest_framework.authentication import SessionAuthentication
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from . import conf, oauth
from .middleware import verify_shopify_hmac
from .models import WebhookEvent
from .router import COMPLIANCE_TOPICS
from .services.redaction import run_pii_redaction
from .tasks import process_webhook_event
from .utils import is_valid_shop_domain

logger = logging.getLogger(__name__)


class BaseShopifyWebhookView(APIView):
    """Base view for Shopify webhook endpoints.

    Handles HMAC verification, idempotency, and event recording, then
    processes the event synchronously.  Once the signature has been
    verified the response is always 200, including when the handler
    fails; failures are kept on the WebhookEvent for reconciliation.
    Concrete subclasses may restrict ``allowed_topics``.
    """

    authentication_classes = []
    permission_classes = [AllowAny]
    allowed_topics = None

    def get_shop_domain(self, request, payload):
        return request.META.get("HTTP_X_SHOPIFY_SHOP_DOMAIN", "")

    def post(self, request):
        # 1. Verify HMAC over the raw body before touching anything else
        raw_body = request.body
        hmac_header = request.META.get("HTTP_X_SHOPIFY_HMAC_SHA256", "")
        if not verify_shopify_hmac(raw_body, hmac_header):
            logger.warning(
                "HMAC verification failed for webhook from %s",
                request.META.get("HTTP_X_SHOPIFY_SHOP_DOMAIN", "<unknown>"),
            )
            return Response(status=status.HTTP_401_UNAUTHORIZED)

        # 2. Parse the verified body
        try:
            payload = json.loads(raw_body)
        except ValueError:
            return Response(
                {"error": "Invalid JSON body"}, status=status.HTTP_400_BAD_REQUEST
            )
        if not isinstance(payload, dict):
            return Response(
                {"error": "Expected a JSON object"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        # 3. Require topic and shop domain
        topic = request.META.get("HTTP_X_SHOPIFY_TOPIC", "")
        shop_domain = self.get_shop_domain(request, payload)
        if not topic or not shop_domain:
            return Response(
                {"error": "Missing X-Shopify-Topic or shop domain"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        if self.allowed_topics is not None and topic not in self.allowed_topics:
            logger.warning(
                "Topic %s not allowed for %s", topic, self.__class__.__name__
            )
            return Response(
                {"error": f"Topic '{topic}' not handled by this endpoint"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        # 4. Idempotency: Shopify retries with the same webhook id
        webhook_id = request.META.get("HTTP_X_SHOPIFY_WEBHOOK_ID", "")
        if webhook_id and WebhookEvent.objects.filter(webhook_id=webhook_id).exists():
            logger.info("Duplicate webhook %s (%s) ignored", webhook_id, topic)
            return Response(status=status.HTTP_200_OK)

        # 5. Record the delivery before dispatch
        try:
            with transaction.atomic():
                event = WebhookEvent.objects.create(
                    webhook_id=webhook_id,
                    topic=topic,
                    shop_domain=shop_domain,
                    status=WebhookEvent.Status.RECEIVED,
                    payload=payload,
                    payload_hash=hashlib.sha256(raw_body).hexdigest(),
                )
        except IntegrityError:
            logger.info("Concurrent duplicate webhook %s (%s) ignored", webhook_id, topic)
            return Response(status=status.HTTP_200_OK)

        logger.info(
            "Recorded webhook event: topic=%s, webhook_id=%s, shop=%s",
            topic,
            webhook_id,
            shop_domain,
        )

        # 6. Dispatch; the outcome is stored on the event, not returned
        process_webhook_event(event, payload)
        return Response(status=status.HTTP_200_OK)


class ShopifyWebhookView(BaseShopifyWebhookView):
    """Single endpoint for every subscribed topic, compliance topics included."""


class ShopifyComplianceWebhookView(BaseShopifyWebhookView):
    """Handles customers/data_request, customers/redact and shop/redact.

    The shop domain is taken from the body when present, falling back to
    the X-Shopify-Shop-Domain header.
    """

    allowed_topics = COMPLIANCE_TOPICS

    def get_shop_domain(self, request, payload):
        return payload.get("shop_domain") or super().get_shop_domain(
            request, payload
        )


class OAuthBeginView(APIView):
    """GET ?shop=<domain>[&confirmed=true] starts an install."""

    authentication_classes = [SessionAuthentication]
    permission_classes = [AllowAny]

    def get(self, request):
        if not request.user.is_authenticated:
            return redirect_to_login(request.get_full_path())

        shop_domain = request.query_params.get("shop", "")
        if not shop_domain:
            return Response(
                {"error": "Missing shop parameter. Use ?shop=your-store.myshopify.com"},
                status=status.HTTP_400_BAD_REQUEST,
            )
        if not is_valid_shop_domain(shop_domain):
            return Response(
                {"error": "Invalid shop domain format. Expected: your-store.myshopify.com"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        confirmed = request.query_params.get("confirmed") == "true"
        confirm_url = oauth.confirmation_url(request.user, shop_domain, confirmed)
        if confirm_url:
            return HttpResponseRedirect(confirm_url)

        negotiation, authorize_url = oauth.begin(request.user, shop_domain)
        response = HttpResponseRedirect(authorize_url)
        max_age = conf.get("SHOPIFY_OAUTH_STATE_TTL")
        for name, value in (
            (oauth.STATE_COOKIE, negotiation.nonce),
            (oauth.SHOP_COOKIE, shop_domain),
        ):
            response.set_signed_cookie(
                name,
                value,
                salt=oauth.COOKIE_SALT,
                max_age=max_age,
                path="/",
                secure=request.is_secure(),
                httponly=True,
                samesite="Lax",
            )
        return response


class OAuthCallbackView(APIView):
    """GET ?code&state&shop&hmac completes an install."""

    authentication_classes = [SessionAuthentication]
    permission_classes = [AllowAny]

    def _cookie(self, request, name):
        return request.get_signed_cookie(
            name,
            default=None,
            salt=oauth.COOKIE_SALT,
            max_age=conf.get("SHOPIFY_OAUTH_STATE_TTL"),
        )

    def get(self, request):
        user = request.user if request.user.is_authenticated else None
        flow = oauth.CallbackFlow(
            request.query_params,
            stored_state=self._cookie(request, oauth.STATE_COOKIE),
            stored_shop=self._cookie(request, oauth.SHOP_COOKIE),
            user=user,
        )
        try:
            shop = flow.run()
        except oauth.OAuthError as exc:
            return HttpResponseRedirect(
                oauth.dashboard_url(error=exc.reason, message=exc.message)
            )

        response = HttpResponseRedirect(
            oauth.dashboard_url(success="true", shop=shop.shop_domain)
        )
        response.delete_cookie(oauth.STATE_COOKIE, path="/")
        response.delete_cookie(oauth.SHOP_COOKIE, path="/")
        return response


class RedactPiiCronView(APIView):
    """Scheduled PII redaction pass, authorised by ``Bearer <SHOPIFY_CRON_SECRET>``."""

    authentication_classes = []
    permission_classes = [AllowAny]

    def get(self, request):
        cron_secret = conf.get("SHOPIFY_CRON_SECRET")
        if not cron_secret:
            logger.error("SHOPIFY_CRON_SECRET is not set")
            return Response(
                {"error": "Server misconfiguration"},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        auth_header = request.META.get("HTTP_AUTHORIZATION", "")
        expected = f"Bearer {cron_secret}"
        if not hmac.compare_digest(
            auth_header.encode("utf-8"), expected.encode("utf-8")
        ):
            return Response(
                {"error": "Unauthorized"}, status=status.HTTP_401_UNAUTHORIZED
            )

        result = run_pii_redaction()
        return Response(result.as_dict(), status=status.HTTP_200_OK)
