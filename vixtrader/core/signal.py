from typing import Optional, Sequence

from ..constants import Direction
from ..utils.candle import Candle


class SignalDetector:
    """Two-candle engulfing pattern on the latest closed candles."""

    @staticmethod
    def detect(candles: Sequence[Candle]) -> Optional[Direction]:
        """Returns CALL on a bullish engulfing, PUT on a bearish one,
        None otherwise (including with fewer than two candles)."""
        if len(candles) < 2:
            return None

        prev, last = candles[-2], candles[-1]

        if (
            prev.is_bearish
            and last.is_bullish
            and last.close > prev.open
            and last.open < prev.close
        ):
            return Direction.CALL

        if (
            prev.is_bullish
            and last.is_bearish
            and last.open > prev.close
            and last.close < prev.open
        ):
            return Direction.PUT

        return None
