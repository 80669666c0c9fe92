import pytest

from vixtrader.config import BotConfig
from vixtrader.errors import TransportError
from vixtrader.gateway.base import VenueGateway


class FakeGateway(VenueGateway):
    """Records every outbound request instead of sending it."""

    def __init__(self):
        super().__init__()
        self.sent: list[tuple] = []
        self.down = False
        self._next_id = 0

    def _record(self, *call) -> int:
        if self.down:
            raise TransportError("websocket not open")
        self._next_id += 1
        self.sent.append((self._next_id, *call))
        return self._next_id

    def calls(self, name: str) -> list[tuple]:
        return [c for c in self.sent if c[1] == name]

    def last_id(self, name: str) -> int:
        return self.calls(name)[-1][0]

    def request_balance(self):
        return self._record("balance")

    def request_history(self, symbol, granularity, count):
        return self._record("history", symbol, granularity, count)

    def subscribe(self, symbol, granularity):
        return self._record("subscribe", symbol, granularity)

    def request_quote(self, request):
        return self._record("quote", request)

    def confirm_purchase(self, quote_id, price):
        return self._record("buy", quote_id, price)

    async def run(self):
        pass

    async def close(self):
        pass


def ohlc(open_time, o, h, l, c, epoch=None, symbol="R_75", granularity=60):
    """A rolling update shaped like the venue's ``ohlc`` frame."""
    return {
        "symbol": symbol,
        "granularity": granularity,
        "open_time": open_time,
        "epoch": epoch if epoch is not None else open_time + 1,
        "open": str(o),
        "high": str(h),
        "low": str(l),
        "close": str(c),
    }


def hist(epoch, o, h, l, c):
    """A history candle as returned by ``ticks_history``."""
    return {"epoch": epoch, "open": o, "high": h, "low": l, "close": c}


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def cfg():
    return BotConfig(app_id="1", api_token="x", db_path="", cooldown_seconds=300)
