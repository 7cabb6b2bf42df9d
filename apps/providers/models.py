"""
Normalized data model shared by every remittance provider.

Adapters translate backend-specific payloads into these value types so the
aggregator can compare offers across providers. All amounts are Decimals and
every amount travels with exactly one currency; nothing here converts
between currencies.
"""
import enum
from dataclasses import dataclass, field
from datetime import datetime, UTC
from decimal import Decimal, InvalidOperation
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from apps.providers.utils.country_currency_standards import normalize_country_code


class Currency(str, enum.Enum):
    """ISO-4217 currency codes understood by the hub."""

    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"
    CAD = "CAD"
    AUD = "AUD"
    INR = "INR"
    PHP = "PHP"
    MXN = "MXN"
    KES = "KES"
    GHS = "GHS"
    NGN = "NGN"

    def __str__(self) -> str:
        return self.value


class TransactionStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self is not TransactionStatus.PENDING

    def __str__(self) -> str:
        return self.value


class PaymentMethod(str, enum.Enum):
    BANK_TRANSFER = "BANK_TRANSFER"
    CARD = "CARD"
    WALLET = "WALLET"
    CASH = "CASH"

    def __str__(self) -> str:
        return self.value


def _as_decimal(value: Any, field_name: str) -> Decimal:
    if not isinstance(value, Decimal):
        if isinstance(value, float):
            value = str(value)
        try:
            value = Decimal(value)
        except (InvalidOperation, TypeError, ValueError):
            raise ValueError(f"{field_name} must be a decimal amount, got {value!r}")
    if not value.is_finite():
        raise ValueError(f"{field_name} must be a finite amount, got {value!r}")
    return value


def _optional_decimal(value: Any, field_name: str) -> Optional[Decimal]:
    return None if value is None else _as_decimal(value, field_name)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class Address:
    country_code: str
    street: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = ""

    def __post_init__(self):
        object.__setattr__(self, "country_code", normalize_country_code(self.country_code))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "street": self.street,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "country": self.country,
            "country_code": self.country_code,
        }


@dataclass(frozen=True)
class Recipient:
    id: str
    name: str
    address: Address
    email: str = ""
    phone: str = ""
    bank_details: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        # Recipients are shared by every adapter in a fan-out, so nobody may edit them
        object.__setattr__(self, "bank_details", MappingProxyType(dict(self.bank_details)))

    @property
    def country_code(self) -> str:
        return self.address.country_code

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address.to_dict(),
            "bank_details": dict(self.bank_details),
        }


@dataclass(frozen=True)
class Corridor:
    """A (source country, destination country, source currency, destination currency) route."""

    source_country: str
    dest_country: str
    source_currency: Currency
    dest_currency: Currency

    def __str__(self) -> str:
        return (
            f"{self.source_country}->{self.dest_country} "
            f"({self.source_currency}->{self.dest_currency})"
        )

    def to_dict(self) -> Dict[str, str]:
        return {
            "source_country": self.source_country,
            "dest_country": self.dest_country,
            "source_currency": str(self.source_currency),
            "dest_currency": str(self.dest_currency),
        }


@dataclass(frozen=True)
class TransactionRequest:
    """
    One customer transfer request.

    Built fresh per operation and never modified afterwards; every adapter in
    a fan-out receives the same instance. ``reference`` is opaque to the hub
    and passed through unchanged so callers can deduplicate sends.
    """

    sender_id: str
    sender_country: str
    recipient: Recipient
    amount: Decimal
    from_currency: Currency
    to_currency: Currency
    payment_method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    purpose: str = ""
    reference: str = ""

    def __post_init__(self):
        amount = _as_decimal(self.amount, "amount")
        if amount <= 0:
            raise ValueError("amount must be positive")
        if not self.sender_country:
            raise ValueError("sender_country is required")
        object.__setattr__(self, "amount", amount)
        object.__setattr__(self, "sender_country", normalize_country_code(self.sender_country))
        object.__setattr__(self, "from_currency", Currency(self.from_currency))
        object.__setattr__(self, "to_currency", Currency(self.to_currency))
        object.__setattr__(self, "payment_method", PaymentMethod(self.payment_method))

    @property
    def corridor(self) -> Corridor:
        return Corridor(
            source_country=self.sender_country,
            dest_country=self.recipient.country_code,
            source_currency=self.from_currency,
            dest_currency=self.to_currency,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sender_id": self.sender_id,
            "sender_country": self.sender_country,
            "recipient": self.recipient.to_dict(),
            "amount": str(self.amount),
            "from_currency": str(self.from_currency),
            "to_currency": str(self.to_currency),
            "payment_method": str(self.payment_method),
            "purpose": self.purpose,
            "reference": self.reference,
        }


@dataclass(frozen=True)
class RemittanceQuote:
    """
    A priced, time-bounded offer from one provider.

    ``total_cost`` is always derived from amount and fee. The quote must not
    be trusted for sending after ``valid_until``; checking that is left to
    the caller.
    """

    provider: str
    amount: Decimal
    fee: Decimal
    exchange_rate: Decimal
    received_amount: Decimal
    estimated_time: str
    valid_until: datetime
    from_currency: Optional[Currency] = None
    to_currency: Optional[Currency] = None

    def __post_init__(self):
        for name in ("amount", "fee", "exchange_rate", "received_amount"):
            object.__setattr__(self, name, _as_decimal(getattr(self, name), name))

    @property
    def total_cost(self) -> Decimal:
        return self.amount + self.fee

    def is_expired(self, at: Optional[datetime] = None) -> bool:
        return (at or _now()) >= self.valid_until

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "amount": str(self.amount),
            "fee": str(self.fee),
            "exchange_rate": str(self.exchange_rate),
            "total_cost": str(self.total_cost),
            "received_amount": str(self.received_amount),
            "estimated_time": self.estimated_time,
            "valid_until": _iso(self.valid_until),
            "from_currency": str(self.from_currency) if self.from_currency else None,
            "to_currency": str(self.to_currency) if self.to_currency else None,
        }


@dataclass(frozen=True)
class TransactionResponse:
    transaction_id: str
    status: TransactionStatus
    amount: Optional[Decimal] = None
    fee: Optional[Decimal] = None
    exchange_rate: Optional[Decimal] = None
    estimated_time: str = ""
    tracking_url: Optional[str] = None
    error: Optional[str] = None

    def __post_init__(self):
        if not self.transaction_id:
            raise ValueError("transaction_id is required")
        object.__setattr__(self, "status", TransactionStatus(self.status))
        for name in ("amount", "fee", "exchange_rate"):
            object.__setattr__(self, name, _optional_decimal(getattr(self, name), name))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transaction_id": self.transaction_id,
            "status": str(self.status),
            "amount": str(self.amount) if self.amount is not None else None,
            "fee": str(self.fee) if self.fee is not None else None,
            "exchange_rate": str(self.exchange_rate) if self.exchange_rate is not None else None,
            "estimated_time": self.estimated_time,
            "tracking_url": self.tracking_url,
            "error": self.error,
        }


@dataclass(frozen=True)
class ExchangeRate:
    """Standalone rate lookup result, independent of any quote."""

    from_currency: Currency
    to_currency: Currency
    rate: Decimal
    fee: Decimal
    valid_until: datetime

    def __post_init__(self):
        object.__setattr__(self, "from_currency", Currency(self.from_currency))
        object.__setattr__(self, "to_currency", Currency(self.to_currency))
        object.__setattr__(self, "rate", _as_decimal(self.rate, "rate"))
        object.__setattr__(self, "fee", _as_decimal(self.fee, "fee"))

    def is_expired(self, at: Optional[datetime] = None) -> bool:
        return (at or _now()) >= self.valid_until

    def seconds_until_expiry(self, at: Optional[datetime] = None) -> float:
        return (self.valid_until - (at or _now())).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": str(self.from_currency),
            "to": str(self.to_currency),
            "rate": str(self.rate),
            "fee": str(self.fee),
            "valid_until": _iso(self.valid_until),
        }
