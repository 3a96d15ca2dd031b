"""
Run one PII retention pass.

Usage:
    python manage.py redact_pii
    python manage.py redact_pii --retention 100 --batch-size 200 --workers 4
    python manage.py redact_pii --shop my-store.myshopify.com
"""

import json

from django.core.management.base import BaseCommand, CommandError

from shopify_integration.models import Shop
from shopify_integration.services.redaction import run_pii_redaction


class Command(BaseCommand):
    help = "Redact PII from orders beyond the retention window of each active shop"

    def add_arguments(self, parser):
        parser.add_argument(
            "--retention",
            type=int,
            default=None,
            help="Number of most recent orders per shop that keep PII.",
        )
        parser.add_argument(
            "--batch-size",
            type=int,
            default=None,
            help="Maximum orders redacted per shop in this pass.",
        )
        parser.add_argument(
            "--workers",
            type=int,
            default=None,
            help="Shops processed in parallel (1 = sequential).",
        )
        parser.add_argument(
            "--shop",
            type=str,
            default=None,
            help="Only process this shop domain.",
        )

    def handle(self, *args, **options):
        for name in ("retention", "batch_size", "workers"):
            if options[name] is not None and options[name] < 1:
                raise CommandError(f"--{name.replace('_', '-')} must be at least 1")

        shops = None
        if options["shop"]:
            shops = list(Shop.objects.filter(shop_domain=options["shop"], is_active=True))
            if not shops:
                raise CommandError(f"No active shop for domain={options['shop']}")

        result = run_pii_redaction(
            shops=shops,
            retention_window=options["retention"],
            batch_size=options["batch_size"],
            max_workers=options["workers"],
        )
        self.stdout.write(json.dumps(result.as_dict(), indent=2))
        if result.errors:
            self.stderr.write(f"{len(result.errors)} errors during redaction")
