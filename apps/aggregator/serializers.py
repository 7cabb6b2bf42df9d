"""
Serializers for the remittance API.

Request bodies are validated here and turned into the immutable
TransactionRequest that the hub and the providers work with.
"""
from decimal import Decimal

from rest_framework import serializers

from apps.aggregator.filters import create_custom_filter
from apps.providers.models import (
    Address,
    Currency,
    PaymentMethod,
    Recipient,
    TransactionRequest,
)

CURRENCY_CHOICES = [currency.value for currency in Currency]
PAYMENT_METHOD_CHOICES = [method.value for method in PaymentMethod]


class AddressSerializer(serializers.Serializer):
    country_code = serializers.CharField(min_length=2, max_length=3)
    street = serializers.CharField(required=False, allow_blank=True, default="")
    city = serializers.CharField(required=False, allow_blank=True, default="")
    state = serializers.CharField(required=False, allow_blank=True, default="")
    postal_code = serializers.CharField(required=False, allow_blank=True, default="")
    country = serializers.CharField(required=False, allow_blank=True, default="")


class RecipientSerializer(serializers.Serializer):
    id = serializers.CharField()
    name = serializers.CharField()
    email = serializers.EmailField(required=False, allow_blank=True, default="")
    phone = serializers.CharField(required=False, allow_blank=True, default="")
    address = AddressSerializer()
    bank_details = serializers.DictField(child=serializers.CharField(), required=False, default=dict)


class QuoteFilterSerializer(serializers.Serializer):
    """Optional narrowing applied to the quotes before ranking."""

    max_fee = serializers.DecimalField(max_digits=18, decimal_places=4, required=False)
    max_total_cost = serializers.DecimalField(max_digits=18, decimal_places=4, required=False)
    min_received_amount = serializers.DecimalField(max_digits=18, decimal_places=4, required=False)
    include_providers = serializers.ListField(child=serializers.CharField(), required=False)
    exclude_providers = serializers.ListField(child=serializers.CharField(), required=False)
    unexpired = serializers.BooleanField(required=False, default=False)


class TransactionRequestSerializer(serializers.Serializer):
    sender_id = serializers.CharField()
    sender_country = serializers.CharField(min_length=2, max_length=3)
    recipient = RecipientSerializer()
    amount = serializers.DecimalField(max_digits=18, decimal_places=4, min_value=Decimal("0.01"))
    from_currency = serializers.ChoiceField(choices=CURRENCY_CHOICES)
    to_currency = serializers.ChoiceField(choices=CURRENCY_CHOICES)
    payment_method = serializers.ChoiceField(
        choices=PAYMENT_METHOD_CHOICES, required=False, default=PaymentMethod.BANK_TRANSFER.value
    )
    purpose = serializers.CharField(required=False, allow_blank=True, default="")
    reference = serializers.CharField(required=False, allow_blank=True, default="")
    filters = QuoteFilterSerializer(required=False)

    def to_transaction_request(self) -> TransactionRequest:
        data = self.validated_data
        recipient_data = dict(data["recipient"])
        address = Address(**recipient_data.pop("address"))
        try:
            return TransactionRequest(
                sender_id=data["sender_id"],
                sender_country=data["sender_country"],
                recipient=Recipient(address=address, **recipient_data),
                amount=data["amount"],
                from_currency=data["from_currency"],
                to_currency=data["to_currency"],
                payment_method=data["payment_method"],
                purpose=data["purpose"],
                reference=data["reference"],
            )
        except ValueError as e:
            raise serializers.ValidationError({"non_field_errors": [str(e)]})

    def build_filter(self):
        """Return the quote filter described by ``filters``, or None when absent."""
        criteria = self.validated_data.get("filters")
        if not criteria:
            return None
        return create_custom_filter(**criteria)


class SendMoneySerializer(TransactionRequestSerializer):
    provider = serializers.CharField()


class ExchangeRateQuerySerializer(serializers.Serializer):
    """Query string of the rate lookup: ?from=USD&to=PHP"""

    from_currency = serializers.ChoiceField(choices=CURRENCY_CHOICES)
    to_currency = serializers.ChoiceField(choices=CURRENCY_CHOICES)

    @classmethod
    def from_query_params(cls, query_params):
        return cls(data={
            "from_currency": (query_params.get("from") or "").upper(),
            "to_currency": (query_params.get("to") or "").upper(),
        })
