import math
from dataclasses import dataclass

from ..errors import DataError

@dataclass(frozen=True)
class Candle:
    open_time: int          # period start, epoch seconds
    open: float
    high: float
    low: float
    close: float
    last_epoch: int = 0     # epoch of the latest update merged in

    @property
    def is_bullish(self) -> bool:
        return self.close > self.open

    @property
    def is_bearish(self) -> bool:
        return self.open > self.close


_PRICE_FIELDS = ("open", "high", "low", "close")


def _number(raw, name: str) -> float:
    if raw is None or raw == "":
        raise DataError(f"missing field '{name}'")
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise DataError(f"field '{name}' is not numeric: {raw!r}") from None
    if not math.isfinite(value):
        raise DataError(f"field '{name}' is not finite: {raw!r}")
    return value


def _epoch(raw, name: str) -> int:
    value = _number(raw, name)
    if value <= 0:
        raise DataError(f"field '{name}' is not a valid epoch: {raw!r}")
    return int(value)


def parse_candle(raw) -> Candle:
    """Flexible candle parser — handles the venue's history candles,
    rolling ``ohlc`` updates, lists and plain objects.

    A rolling update carries both ``open_time`` (period start) and
    ``epoch`` (time of the update); a history candle only has ``epoch``,
    which is its period start.
    """
    if isinstance(raw, dict):
        get = raw.get
    elif isinstance(raw, (list, tuple)):
        if len(raw) < 5:
            raise DataError(f"candle row too short: {raw!r}")
        keys = ("open_time", *_PRICE_FIELDS, "epoch") if len(raw) > 5 else ("epoch", *_PRICE_FIELDS)
        get = dict(zip(keys, raw)).get
    else:
        get = lambda key: getattr(raw, key, None)  # noqa: E731

    if get("open_time") is not None:
        open_time = _epoch(get("open_time"), "open_time")
        last_epoch = _epoch(get("epoch"), "epoch")
    else:
        stamp = get("epoch")
        if stamp is None:
            stamp = get("time") if get("time") is not None else get("timestamp")
        open_time = _epoch(stamp, "epoch")
        last_epoch = open_time

    o, h, l, c = (_number(get(f), f) for f in _PRICE_FIELDS)
    if h < max(o, c) or l > min(o, c):
        raise DataError(f"inconsistent OHLC: open={o} high={h} low={l} close={c}")

    return Candle(open_time=open_time, open=o, high=h, low=l, close=c, last_epoch=last_epoch)
