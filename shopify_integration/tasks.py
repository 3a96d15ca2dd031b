import logging
import time
from datetime import timedelta

import dramatiq
from datadog import statsd
from django.db import transaction
from django.db.models import F
from django.utils import timezone
from requests.exceptions import ConnectionError, Timeout

from .models import Shop, WebhookEvent
from .router import get_route
from .services.shops import get_active_shop
from .services.sync import sync_shop

logger = logging.getLogger(__name__)

SHOPIFY_QUEUE = "shopify_integration"

# Delivery records in these states have not been handled successfully.
PENDING_STATUSES = (
    WebhookEvent.Status.RECEIVED,
    WebhookEvent.Status.PROCESSING,
    WebhookEvent.Status.FAILED,
)


def should_retry(retries_so_far, exception):
    """Return True for transient errors, False for permanent ones.

    Transient (retry): ConnectionError, Timeout, HTTP 5xx, HTTP 429.
    Permanent (fail):  ValueError, KeyError, HTTP 4xx (except 429), etc.
    """
    # requests exceptions subclass OSError, so the HTTP status decides first.
    response = getattr(exception, "response", None)
    if response is not None:
        status_code = response.status_code
        return status_code == 429 or 500 <= status_code < 600
    return isinstance(exception, (ConnectionError, Timeout))


def _finish(event, status, error_message, elapsed_ms):
    """Persist the outcome without resurrecting a record deleted by shop/redact."""
    event.status = status
    event.error_message = error_message
    event.processing_time_ms = elapsed_ms
    WebhookEvent.objects.filter(pk=event.pk).update(
        status=status,
        error_message=error_message,
        processing_time_ms=elapsed_ms,
        shop=event.shop if event.shop and event.shop.pk else None,
        updated_at=timezone.now(),
    )


def process_webhook_event(event, payload=None, raise_errors=False):
    """Dispatch a recorded webhook to its topic handler and record the outcome.

    Unknown topics, and topics that need a shop when no active shop exists
    for the domain, are marked ``ignored`` without side effects.  Handler
    exceptions mark the record ``failed`` with the error message; they are
    re-raised only when ``raise_errors`` is set (Dramatiq retries).

    Returns the event's final status.
    """
    if payload is None:
        payload = event.payload or {}

    WebhookEvent.objects.filter(pk=event.pk).update(
        status=WebhookEvent.Status.PROCESSING,
        attempts=F("attempts") + 1,
        updated_at=timezone.now(),
    )
    tags = [f"topic:{event.topic}", f"shop_domain:{event.shop_domain}"]
    statsd.increment("shopify.webhook.received", tags=tags)

    start = time.monotonic()
    status = WebhookEvent.Status.SUCCESS
    error_message = ""
    try:
        route = get_route(event.topic)
        event.shop = get_active_shop(event.shop_domain)
        if route is None:
            logger.info("Unhandled webhook topic: %s", event.topic)
            status = WebhookEvent.Status.IGNORED
            error_message = f"No handler for topic: {event.topic}"
        elif route.requires_shop and event.shop is None:
            logger.warning(
                "Received %s for unknown shop: %s", event.topic, event.shop_domain
            )
            status = WebhookEvent.Status.IGNORED
            error_message = f"Unknown shop: {event.shop_domain}"
        else:
            with transaction.atomic():
                route.handler(event, payload)
    except Exception as exc:
        status = WebhookEvent.Status.FAILED
        error_message = str(exc)[:2000]
        logger.exception(
            "Failed to process webhook event %s (topic=%s)", event.pk, event.topic
        )
        if raise_errors:
            raise
    finally:
        elapsed_ms = int((time.monotonic() - start) * 1000)
        _finish(event, status, error_message, elapsed_ms)
        result_tags = tags + [f"status:{status}"]
        if status == WebhookEvent.Status.SUCCESS:
            statsd.increment("shopify.webhook.processed", tags=result_tags)
        elif status == WebhookEvent.Status.FAILED:
            statsd.increment("shopify.webhook.failed", tags=result_tags)
        else:
            statsd.increment("shopify.webhook.ignored", tags=result_tags)
        statsd.histogram(
            "shopify.webhook.processing_time_ms", elapsed_ms, tags=result_tags
        )
    return status


def pending_webhook_events(older_than=timedelta(minutes=5), limit=100):
    """Delivery records that were never processed successfully.

    ``older_than`` leaves in-flight deliveries alone.
    """
    cutoff = timezone.now() - older_than
    return WebhookEvent.objects.filter(
        status__in=PENDING_STATUSES, updated_at__lt=cutoff
    ).order_by("created_at")[:limit]


@dramatiq.actor(
    queue_name=SHOPIFY_QUEUE,
    max_retries=5,
    min_backoff=30_000,
    max_backoff=600_000,
    retry_when=should_retry,
)
def reprocess_webhook_event(webhook_event_id):
    """Re-run a stored webhook whose first processing did not succeed."""
    try:
        event = WebhookEvent.objects.get(id=webhook_event_id)
    except WebhookEvent.DoesNotExist:
        logger.error("WebhookEvent %s not found", webhook_event_id)
        return
    if event.processed:
        logger.info("WebhookEvent %s already processed", webhook_event_id)
        return
    process_webhook_event(event, raise_errors=True)


@dramatiq.actor(queue_name=SHOPIFY_QUEUE, max_retries=3, retry_when=should_retry)
def sync_shop_initial_data(shop_id):
    """Import recent shop data after install. Enqueued by the OAuth callback."""
    try:
        shop = Shop.objects.get(id=shop_id, is_active=True)
    except Shop.DoesNotExist:
        logger.error("Active shop %s not found for initial sync", shop_id)
        return
    counts = sync_shop(shop)
    logger.info("Initial sync completed for %s: %s", shop.shop_domain, counts)
