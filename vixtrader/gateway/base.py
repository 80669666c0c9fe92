from abc import ABC, abstractmethod
from typing import Callable, Optional

from ..trading.trade import TradeRequest


class VenueGateway(ABC):
    """Outbound side of the venue connection.

    Every request is fire-and-forget: it returns the request id right away
    and the reply arrives later as an event passed to the handler. A
    request that cannot be sent raises TransportError.
    """

    def __init__(self):
        self._handler: Optional[Callable] = None

    def set_handler(self, handler: Callable):
        self._handler = handler

    def emit(self, event):
        if self._handler is not None:
            self._handler(event)

    @abstractmethod
    def request_balance(self) -> int: ...

    @abstractmethod
    def request_history(self, symbol: str, granularity: int, count: int) -> int: ...

    @abstractmethod
    def subscribe(self, symbol: str, granularity: int) -> int: ...

    @abstractmethod
    def request_quote(self, request: TradeRequest) -> int: ...

    @abstractmethod
    def confirm_purchase(self, quote_id: str, price: float) -> int: ...

    @abstractmethod
    async def run(self):
        """Connect and deliver events until closed."""

    @abstractmethod
    async def close(self): ...
