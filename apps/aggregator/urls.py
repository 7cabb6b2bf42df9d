"""
URL patterns for the remittance API.
"""
from django.urls import path

from .views import (
    BestRemittanceOptionView,
    ExchangeRateView,
    ProviderListView,
    RemittanceOptionsView,
    SendRemittanceView,
    TransferStatusView,
)

app_name = "remittance"

urlpatterns = [
    path("options/", RemittanceOptionsView.as_view(), name="options"),
    path("best/", BestRemittanceOptionView.as_view(), name="best"),
    path("send/", SendRemittanceView.as_view(), name="send"),
    path("providers/", ProviderListView.as_view(), name="providers"),
    path(
        "providers/<str:provider_name>/transfers/<str:transaction_id>/",
        TransferStatusView.as_view(),
        name="transfer-status",
    ),
    path("providers/<str:provider_name>/rates/", ExchangeRateView.as_view(), name="exchange-rate"),
]
