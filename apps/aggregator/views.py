import logging

from drf_spectacular.utils import OpenApiExample, OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView, exception_handler

from apps.aggregator.configurator import get_service
from apps.aggregator.exceptions import (
    AggregationCancelledError,
    NoQuotesAvailableError,
    ProviderNotFoundError,
)
from apps.aggregator.serializers import (
    ExchangeRateQuerySerializer,
    SendMoneySerializer,
    TransactionRequestSerializer,
)
from apps.providers.base.exceptions import CallAbortedError, CallCancelledError, ProviderError

logger = logging.getLogger(__name__)

EXAMPLE_REQUEST = {
    "sender_id": "user-123",
    "sender_country": "US",
    "recipient": {
        "id": "rcp-1",
        "name": "Maria Santos",
        "address": {"country_code": "PH", "city": "Manila"},
        "bank_details": {"account_number": "1234567890", "bank_code": "BDO"},
    },
    "amount": "1000.00",
    "from_currency": "USD",
    "to_currency": "PHP",
    "payment_method": "BANK_TRANSFER",
    "reference": "wallet-tx-42",
}


def remittance_exception_handler(exc, context):
    """
    Map hub and provider failures onto HTTP responses.

    Anything else falls through to the default DRF handler.
    """
    if isinstance(exc, NoQuotesAvailableError):
        return Response(
            {"error": exc.message, "code": "NO_QUOTES_AVAILABLE", "details": exc.details},
            status=status.HTTP_404_NOT_FOUND,
        )
    if isinstance(exc, ProviderNotFoundError):
        return Response(
            {"error": exc.message, "code": "PROVIDER_NOT_FOUND"},
            status=status.HTTP_404_NOT_FOUND,
        )
    if isinstance(exc, (AggregationCancelledError, CallCancelledError)):
        return Response(
            {"error": str(exc), "code": "CANCELLED"},
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
        )
    if isinstance(exc, CallAbortedError):
        return Response(
            {"error": str(exc), "code": "DEADLINE_EXCEEDED"},
            status=status.HTTP_504_GATEWAY_TIMEOUT,
        )
    if isinstance(exc, ProviderError):
        logger.warning(f"Provider call failed: {exc}")
        return Response(
            {"error": exc.message, "code": exc.error_code or "PROVIDER_ERROR", "provider": exc.provider},
            status=status.HTTP_502_BAD_GATEWAY,
        )
    return exception_handler(exc, context)


class RemittanceOptionsView(APIView):
    """
    Ranked quotes from every provider that serves the corridor.
    """
    permission_classes = [AllowAny]

    @extend_schema(
        summary="Compare remittance options",
        description=(
            "Asks every eligible provider for a quote in parallel and returns the answers "
            "ranked by total cost (amount + fee), cheapest first. Providers that fail or "
            "time out are left out; an empty list is a valid answer."
        ),
        request=TransactionRequestSerializer,
        examples=[OpenApiExample("USD to PHP", value=EXAMPLE_REQUEST, request_only=True)],
        responses={200: OpenApiResponse(description="Ranked quotes"), 400: OpenApiResponse(description="Invalid request")},
    )
    def post(self, request, *args, **kwargs):
        serializer = TransactionRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        transaction_request = serializer.to_transaction_request()

        quotes = get_service().get_remittance_options(
            transaction_request, filter_fn=serializer.build_filter()
        )
        return Response({
            "request": transaction_request.corridor.to_dict(),
            "amount": str(transaction_request.amount),
            "count": len(quotes),
            "quotes": [quote.to_dict() for quote in quotes],
        })


class BestRemittanceOptionView(APIView):
    """
    The single cheapest quote for the corridor.
    """
    permission_classes = [AllowAny]

    @extend_schema(
        summary="Best remittance option",
        request=TransactionRequestSerializer,
        examples=[OpenApiExample("USD to PHP", value=EXAMPLE_REQUEST, request_only=True)],
        responses={
            200: OpenApiResponse(description="Cheapest quote"),
            404: OpenApiResponse(description="No provider could quote this corridor"),
        },
    )
    def post(self, request, *args, **kwargs):
        serializer = TransactionRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        quote = get_service().get_best_option(
            serializer.to_transaction_request(), filter_fn=serializer.build_filter()
        )
        return Response({"quote": quote.to_dict()})


class SendRemittanceView(APIView):
    permission_classes = [AllowAny]

    @extend_schema(
        summary="Send money with a named provider",
        description=(
            "Initiates a transfer through exactly the provider given in 'provider'. "
            "There is no fallback to other providers. Sends are not idempotent: "
            "use 'reference' to detect duplicates."
        ),
        request=SendMoneySerializer,
        examples=[OpenApiExample("Send via Wise", value={**EXAMPLE_REQUEST, "provider": "Wise"}, request_only=True)],
        responses={
            201: OpenApiResponse(description="Transfer created"),
            404: OpenApiResponse(description="Unknown provider"),
            502: OpenApiResponse(description="Provider rejected or failed the transfer"),
        },
    )
    def post(self, request, *args, **kwargs):
        serializer = SendMoneySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        provider_name = serializer.validated_data["provider"]

        response = get_service().send_remittance(provider_name, serializer.to_transaction_request())
        logger.info(
            f"Transfer {response.transaction_id} created with {provider_name} "
            f"(request {getattr(request, 'request_id', 'N/A')})"
        )
        return Response(response.to_dict(), status=status.HTTP_201_CREATED)


class TransferStatusView(APIView):
    permission_classes = [AllowAny]

    @extend_schema(summary="Transfer status", responses={200: OpenApiResponse(description="Current status")})
    def get(self, request, provider_name, transaction_id, *args, **kwargs):
        response = get_service().get_transfer_status(provider_name, transaction_id)
        return Response(response.to_dict())


class ExchangeRateView(APIView):
    permission_classes = [AllowAny]

    @extend_schema(
        summary="Provider exchange rate",
        parameters=[
            OpenApiParameter(name="from", type=str, location=OpenApiParameter.QUERY, required=True,
                             description="Source currency code (e.g., USD)"),
            OpenApiParameter(name="to", type=str, location=OpenApiParameter.QUERY, required=True,
                             description="Destination currency code (e.g., PHP)"),
        ],
        responses={200: OpenApiResponse(description="Rate and fee with validity")},
    )
    def get(self, request, provider_name, *args, **kwargs):
        serializer = ExchangeRateQuerySerializer.from_query_params(request.query_params)
        serializer.is_valid(raise_exception=True)

        rate = get_service().get_exchange_rate(
            provider_name,
            serializer.validated_data["from_currency"],
            serializer.validated_data["to_currency"],
        )
        return Response({"provider": provider_name, **rate.to_dict()})


class ProviderListView(APIView):
    permission_classes = [AllowAny]

    @extend_schema(summary="Registered providers", responses={200: OpenApiResponse(description="Provider coverage")})
    def get(self, request, *args, **kwargs):
        providers = get_service().hub.providers
        return Response({
            "count": len(providers),
            "providers": [
                {
                    "name": provider.name,
                    "currencies": sorted(str(c) for c in provider.get_supported_currencies()),
                    "countries": sorted(provider.get_supported_countries()),
                }
                for provider in providers
            ],
        })
