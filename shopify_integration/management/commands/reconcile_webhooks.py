"""
Retry webhook deliveries that were acknowledged but never processed.

Shopify is always answered 200 once a webhook is authenticated, so a
handler failure is only visible on the WebhookEvent row.  This command
re-runs those rows.

Usage:
    python manage.py reconcile_webhooks
    python manage.py reconcile_webhooks --older-than 15 --limit 500 --enqueue
"""

from datetime import timedelta

from django.core.management.base import BaseCommand

from shopify_integration.tasks import (
    pending_webhook_events,
    process_webhook_event,
    reprocess_webhook_event,
)


class Command(BaseCommand):
    help = "Reprocess received or failed Shopify webhook events"

    def add_arguments(self, parser):
        parser.add_argument(
            "--older-than",
            type=int,
            default=5,
            help="Only events last touched at least this many minutes ago.",
        )
        parser.add_argument(
            "--limit",
            type=int,
            default=100,
            help="Maximum number of events to reprocess.",
        )
        parser.add_argument(
            "--enqueue",
            action="store_true",
            help="Send events to the Dramatiq worker instead of running inline.",
        )

    def handle(self, *args, **options):
        events = list(
            pending_webhook_events(
                older_than=timedelta(minutes=options["older_than"]),
                limit=options["limit"],
            )
        )
        if not events:
            self.stdout.write("No webhook events to reconcile")
            return

        if options["enqueue"]:
            for event in events:
                reprocess_webhook_event.send(event.id)
            self.stdout.write(f"Enqueued {len(events)} webhook events")
            return

        outcomes = {}
        for event in events:
            status = process_webhook_event(event)
            outcomes[status] = outcomes.get(status, 0) + 1
        summary = ", ".join(f"{count} {status}" for status, count in sorted(outcomes.items()))
        self.stdout.write(f"Reprocessed {len(events)} webhook events: {summary}")
