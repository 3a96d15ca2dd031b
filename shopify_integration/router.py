import logging
from collections import namedtuple

logger = logging.getLogger(__name__)

APP_TOPICS = frozenset({"app/uninstalled"})

ORDER_TOPICS = frozenset(
    {
        "orders/create",
        "orders/updated",
        "orders/paid",
        "orders/cancelled",
        "orders/fulfilled",
    }
)

PRODUCT_TOPICS = frozenset(
    {
        "products/create",
        "products/update",
        "products/delete",
    }
)

CUSTOMER_TOPICS = frozenset(
    {
        "customers/create",
        "customers/update",
        "customers/delete",
    }
)

INVENTORY_TOPICS = frozenset(
    {
        "inventory_levels/update",
        "inventory_levels/connect",
        "inventory_levels/disconnect",
    }
)

# Mandatory data-subject-rights topics. Also accepted on the dedicated
# compliance endpoint.
COMPLIANCE_TOPICS = frozenset(
    {
        "customers/data_request",
        "customers/redact",
        "shop/redact",
    }
)

Route = namedtuple("Route", ["handler", "requires_shop"])

# Registry mapping Shopify topic strings to handler routes.
# Handlers are registered by handler modules during Django app ready().
_topic_handlers = {}


def register_handler(topic, handler, requires_shop=True):
    """Register a handler callable for a Shopify webhook topic.

    Handlers are called as ``handler(event, payload)``.  When
    ``requires_shop`` is True the event is only dispatched if an active
    shop exists for its domain; ``event.shop`` is then guaranteed set.
    """
    _topic_handlers[topic] = Route(handler, requires_shop)
    logger.debug("Registered handler for topic: %s", topic)


def get_route(topic):
    """Return the Route for the given topic, or None."""
    return _topic_handlers.get(topic)


def get_handler(topic):
    """Return the handler callable for the given topic, or None."""
    route = get_route(topic)
    return route.handler if route else None


def registered_topics():
    return frozenset(_topic_handlers)
