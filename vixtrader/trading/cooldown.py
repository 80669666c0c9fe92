from typing import Optional


class TradeCooldown:
    """At most one signal-driven trade per window, measured in candle
    event time rather than wall-clock time."""

    def __init__(self, window_seconds: int = 300):
        self.window_seconds = window_seconds
        self.last_trade_time: Optional[int] = None

    def ready(self, event_time: int) -> bool:
        return (
            self.last_trade_time is None
            or event_time - self.last_trade_time >= self.window_seconds
        )

    def remaining(self, event_time: int) -> int:
        if self.last_trade_time is None:
            return 0
        return max(0, self.window_seconds - (event_time - self.last_trade_time))

    def try_acquire(self, event_time: int) -> bool:
        """Check and record in one step."""
        if not self.ready(event_time):
            return False
        self.last_trade_time = event_time
        return True
