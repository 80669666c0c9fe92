from collections import deque
from typing import Callable, Iterable, Optional

from ..errors import DataError
from ..utils.candle import Candle, parse_candle
from ..utils.logger import log


class CandleSeries:
    """Closed candles, oldest first, strictly increasing ``open_time``.

    Holds at most ``capacity`` candles; appending to a full series drops
    the oldest one.
    """

    def __init__(self, capacity: int = 100):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._candles: deque[Candle] = deque(maxlen=capacity)

    def __len__(self):
        return len(self._candles)

    def __iter__(self):
        return iter(self._candles)

    def __getitem__(self, idx):
        return self._candles[idx]

    @property
    def last(self) -> Optional[Candle]:
        return self._candles[-1] if self._candles else None

    def tail(self, n: int) -> list[Candle]:
        if n <= 0:
            return []
        return list(self._candles)[-n:]

    def append(self, candle: Candle) -> Optional[Candle]:
        """Append a closed candle; returns the evicted candle, if any."""
        if self._candles and candle.open_time <= self._candles[-1].open_time:
            raise ValueError(
                f"out-of-order close: {candle.open_time} <= {self._candles[-1].open_time}"
            )
        evicted = self._candles[0] if len(self._candles) == self.capacity else None
        self._candles.append(candle)
        return evicted

    def pop(self) -> Candle:
        return self._candles.pop()

    def replace(self, candles: Iterable[Candle]):
        self._candles = deque(candles, maxlen=self.capacity)


class CandleAggregator:
    """Turns a stream of partial-period updates into closed candles.

    Updates may arrive repeated or out of order. A period is closed the
    first time an update for a later period shows up; updates for an
    earlier period are dropped and never touch a closed candle.
    """

    def __init__(self, capacity: int = 100, on_close: Optional[Callable[[Candle], None]] = None):
        self.series = CandleSeries(capacity)
        self.current: Optional[Candle] = None
        self.on_close = on_close
        self.stale_dropped = 0

    # ------------------------------------------------------------------
    def ingest_history(self, raw_candles: Iterable) -> int:
        """Seed the series from a history batch. Malformed entries are
        skipped; returns how many candles were kept."""
        by_time: dict[int, Candle] = {}
        skipped = 0
        for raw in raw_candles:
            try:
                c = parse_candle(raw)
            except DataError as e:
                skipped += 1
                log.warning("Skipping malformed history candle: %s", e)
                continue
            by_time[c.open_time] = c  # later duplicate wins

        ordered = [by_time[t] for t in sorted(by_time)]
        self.series.replace(ordered[-self.series.capacity:])
        self.current = None
        log.info("History loaded: %d candles kept (%d skipped)", len(self.series), skipped)
        return len(self.series)

    # ------------------------------------------------------------------
    def ingest_update(self, raw) -> Optional[Candle]:
        """Apply one rolling update. Returns the candle it closed, if any.

        Raises DataError (with no state change) if the update is malformed.
        """
        update = parse_candle(raw)
        cur = self.current

        if cur is None:
            last = self.series.last
            if last is not None and update.open_time < last.open_time:
                self.stale_dropped += 1
                return None
            if last is not None and update.open_time == last.open_time:
                # history ends with the period still forming; live data takes over
                self.series.pop()
            self.current = update
            return None

        if update.open_time > cur.open_time:
            self.series.append(cur)
            self.current = update
            log.debug("Candle closed @%d  O=%.2f H=%.2f L=%.2f C=%.2f",
                      cur.open_time, cur.open, cur.high, cur.low, cur.close)
            if self.on_close is not None:
                self.on_close(cur)
            return cur

        if update.open_time == cur.open_time:
            self.current = Candle(
                open_time=cur.open_time,
                open=cur.open,
                high=max(cur.high, update.high),
                low=min(cur.low, update.low),
                close=update.close,
                last_epoch=update.last_epoch,
            )
            return None

        self.stale_dropped += 1
        log.debug("Dropping stale update for period %d (current %d)",
                  update.open_time, cur.open_time)
        return None
