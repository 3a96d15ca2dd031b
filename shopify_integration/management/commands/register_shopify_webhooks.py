"""
Register Shopify webhook subscriptions for a shop.

Usage:
    python manage.py register_shopify_webhooks --shop my-store.myshopify.com

    # List current registrations
    python manage.py register_shopify_webhooks --shop my-store.myshopify.com --list

    # Remove all webhooks
    python manage.py register_shopify_webhooks --shop my-store.myshopify.com --delete-all

Callbacks are registered at SHOPIFY_APP_URL + /webhooks/shopify/.
"""

import requests
from django.core.management.base import BaseCommand, CommandError

from shopify_integration.services.shops import get_active_shop
from shopify_integration.services.webhooks import (
    delete_webhook,
    list_webhooks,
    register_webhooks,
    webhook_address,
)


class Command(BaseCommand):
    help = "Register Shopify webhook subscriptions for a shop"

    def add_arguments(self, parser):
        parser.add_argument(
            "--shop",
            type=str,
            required=True,
            help="The shop domain (e.g. my-store.myshopify.com).",
        )
        parser.add_argument(
            "--list",
            action="store_true",
            dest="list_webhooks",
            help="List currently registered webhooks for this shop.",
        )
        parser.add_argument(
            "--delete-all",
            action="store_true",
            help="Delete all registered webhooks for this shop.",
        )

    def handle(self, *args, **options):
        shop = get_active_shop(options["shop"])
        if shop is None:
            raise CommandError(f"No active shop for domain={options['shop']}")

        if options["list_webhooks"]:
            self._list_webhooks(shop)
            return

        if options["delete_all"]:
            self._delete_all_webhooks(shop)
            return

        self._register_webhooks(shop)

    def _fetch(self, shop):
        try:
            return list_webhooks(shop)
        except requests.RequestException as exc:
            raise CommandError(f"Failed to list webhooks: {exc}") from exc

    def _list_webhooks(self, shop):
        webhooks = self._fetch(shop)
        if not webhooks:
            self.stdout.write(f"No webhooks registered for {shop.shop_domain}")
            return

        self.stdout.write(f"Webhooks for {shop.shop_domain}:")
        self.stdout.write(f"{'ID':<15} {'Topic':<30} {'Address'}")
        self.stdout.write("-" * 80)
        for wh in webhooks:
            self.stdout.write(
                f"{wh['id']:<15} {wh['topic']:<30} {wh.get('address', '')}"
            )
        self.stdout.write(f"\nTotal: {len(webhooks)}")

    def _delete_all_webhooks(self, shop):
        webhooks = self._fetch(shop)
        if not webhooks:
            self.stdout.write(f"No webhooks to delete for {shop.shop_domain}")
            return

        deleted = 0
        for wh in webhooks:
            if delete_webhook(shop, wh["id"]):
                self.stdout.write(f"  Deleted webhook {wh['id']} ({wh['topic']})")
                deleted += 1
            else:
                self.stderr.write(f"  FAILED to delete webhook {wh['id']} ({wh['topic']})")

        self.stdout.write(f"\nDeleted {deleted}/{len(webhooks)} webhooks")

    def _register_webhooks(self, shop):
        outcome = register_webhooks(shop)
        for topic in outcome["registered"]:
            self.stdout.write(f"  SUCCESS: {topic}")
        for topic in outcome["protected_skipped"]:
            self.stdout.write(f"  SKIP: {topic} (protected customer data access required)")
        for topic in outcome["failed"]:
            self.stderr.write(f"  FAILED: {topic}")

        self.stdout.write(
            f"\nDone: {len(outcome['registered'])} registered, "
            f"{len(outcome['protected_skipped'])} skipped, "
            f"{len(outcome['failed'])} failed "
            f"(domain={shop.shop_domain}, address={webhook_address()})"
        )
