from dataclasses import dataclass, field
from typing import Optional

from ..constants import Direction, TradeState

@dataclass(frozen=True)
class TradeRequest:
    direction: Direction
    symbol: str
    stake: float
    duration: int = 5                       # contract length
    duration_unit: str = "t"                # "t" = ticks
    currency: str = "USD"
    basis: str = "stake"

@dataclass
class TradeRecord:
    id: str                                 # local id, stable across the lifecycle
    request: TradeRequest
    started_at: int                         # candle event time
    state: TradeState = TradeState.AWAITING_QUOTE
    quote_id: Optional[str] = None
    price: Optional[float] = None           # quoted ask price
    order_id: Optional[str] = None          # venue contract id once bought
    details: dict = field(default_factory=dict)
    error: Optional[str] = None
    finished_at: Optional[float] = None     # wall clock
