"""Typed events the venue gateway delivers to the bot."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class GatewayConnected:
    login_id: str = ""


@dataclass(frozen=True)
class AccountBalance:
    amount: float
    currency: str = "USD"


@dataclass(frozen=True)
class HistoryLoaded:
    symbol: str
    candles: list = field(default_factory=list)


@dataclass(frozen=True)
class PeriodUpdate:
    """One rolling OHLC update, as received (``open_time``, ``epoch``,
    ``open``, ``high``, ``low``, ``close``). Parsed by the aggregator."""
    symbol: str
    ohlc: dict


@dataclass(frozen=True)
class SubscriptionFailed:
    reason: str


@dataclass(frozen=True)
class QuoteReady:
    request_id: int
    quote_id: str
    price: float


@dataclass(frozen=True)
class QuoteFailed:
    request_id: int
    reason: str
    code: str = ""


@dataclass(frozen=True)
class PurchaseConfirmed:
    request_id: int
    order_id: str
    details: dict = field(default_factory=dict)


@dataclass(frozen=True)
class PurchaseFailed:
    request_id: int
    reason: str
    code: str = ""


@dataclass(frozen=True)
class RequestAborted:
    """The connection dropped before the venue answered ``request_id``."""
    request_id: int
    reason: str


@dataclass(frozen=True)
class BalanceFailed:
    reason: str
    code: str = ""
