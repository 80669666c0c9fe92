"""Error kinds raised by the trading core and the venue gateway."""


class BotError(Exception):
    """Base class for every bot error."""


class DataError(BotError):
    """Malformed market data. The offending event is skipped."""


class VenueError(BotError):
    """The venue rejected a quote or purchase."""

    def __init__(self, message: str, code: str = ""):
        super().__init__(message)
        self.message = message
        self.code = code

    def __str__(self):
        return f"{self.code}: {self.message}" if self.code else self.message


class TransportError(BotError):
    """The gateway could not send a request."""


class ConcurrentTradeError(BotError):
    """A trade was started while another one is still in flight."""


class InsufficientBalanceError(BotError):
    """Account balance is below the configured floor."""

    def __init__(self, balance: float, floor: float):
        super().__init__(
            f"Insufficient balance for trading: {balance:.2f} < {floor:.2f}. "
            f"Reset demo account to at least ${floor:.2f}."
        )
        self.balance = balance
        self.floor = floor
