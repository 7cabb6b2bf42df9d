"""
Management command to compare remittance quotes from the configured providers.

Example:
    python manage.py remittance_quotes --amount 1000 --from USD --to PHP \
        --sender-country US --dest-country PH --max-fee 10
"""
import json
from decimal import Decimal, InvalidOperation

from django.core.management.base import BaseCommand, CommandError
from tabulate import tabulate

from apps.aggregator.configurator import build_hub
from apps.aggregator.filters import create_custom_filter
from apps.providers.models import Address, Currency, Recipient, TransactionRequest


class Command(BaseCommand):
    help = "Fetch quotes from every configured provider for one corridor and rank them by total cost"

    def add_arguments(self, parser):
        parser.add_argument("--amount", required=True, help="Amount to send in the source currency")
        parser.add_argument("--from", dest="from_currency", required=True, help="Source currency code")
        parser.add_argument("--to", dest="to_currency", required=True, help="Destination currency code")
        parser.add_argument("--sender-country", required=True, help="Sender country code (e.g., US)")
        parser.add_argument("--dest-country", required=True, help="Recipient country code (e.g., PH)")
        parser.add_argument("--max-fee", help="Drop quotes with a higher fee")
        parser.add_argument("--exclude", nargs="*", default=[], help="Provider names to leave out")
        parser.add_argument("--timeout", type=float, help="Override the quote deadline in seconds")
        parser.add_argument("--format", choices=["table", "json"], default="table", help="Output format")

    def handle(self, *args, **options):
        try:
            amount = Decimal(options["amount"])
            request = TransactionRequest(
                sender_id="cli",
                sender_country=options["sender_country"],
                recipient=Recipient(
                    id="cli-recipient",
                    name="CLI Recipient",
                    address=Address(country_code=options["dest_country"]),
                ),
                amount=amount,
                from_currency=Currency(options["from_currency"].upper()),
                to_currency=Currency(options["to_currency"].upper()),
            )
            filter_fn = create_custom_filter(
                max_fee=options.get("max_fee"),
                exclude_providers=options.get("exclude"),
                unexpired=True,
            )
        except (InvalidOperation, ValueError) as e:
            raise CommandError(f"Invalid request: {e}")

        hub_config = {"QUOTE_TIMEOUT": options["timeout"]} if options.get("timeout") else None
        hub = build_hub(hub_config=hub_config)
        try:
            result = hub.collect_quotes(request, filter_fn=filter_fn)
        finally:
            hub.close()

        if options["format"] == "json":
            self.stdout.write(json.dumps(result.to_dict(), indent=2))
            return

        if not result.quotes:
            self.stdout.write(self.style.WARNING(f"No quotes available for {request.corridor}"))
        else:
            self._output_table(result.quotes)

        self.stdout.write(
            f"\nProviders called: {result.providers_called}, "
            f"answered: {result.successful_providers}, "
            f"time: {result.execution_time:.2f}s"
        )
        if result.failed_providers:
            self.stdout.write(self.style.WARNING(f"Failed: {', '.join(result.failed_providers)}"))

    def _output_table(self, quotes):
        headers = ["#", "Provider", "Fee", "Total Cost", "Rate", "Recipient Gets", "Delivery", "Valid Until"]
        rows = []
        for position, quote in enumerate(quotes, 1):
            rows.append([
                position,
                quote.provider,
                quote.fee,
                quote.total_cost,
                quote.exchange_rate,
                quote.received_amount,
                quote.estimated_time,
                quote.valid_until.strftime("%Y-%m-%d %H:%M"),
            ])
        self.stdout.write(tabulate(rows, headers, tablefmt="pretty"))
