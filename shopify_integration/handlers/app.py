from ..router import register_handler
from ..services.shops import mark_shop_uninstalled


def handle_app_uninstalled(event, payload):
    """Handle app/uninstalled: deactivate the shop, keep its data.

    Data is only deleted later by ``shop/redact``.  Runs even when the shop
    is already inactive or unknown.
    """
    mark_shop_uninstalled(event.shop_domain)


register_handler("app/uninstalled", handle_app_uninstalled, requires_shop=False)
