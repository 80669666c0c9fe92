from enum import Enum

class Direction(Enum):
    CALL = "call"
    PUT = "put"

    @property
    def contract_type(self) -> str:
        return self.value.upper()

class TradeState(Enum):
    IDLE = "idle"
    AWAITING_QUOTE = "awaiting_quote"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (TradeState.IDLE, TradeState.COMPLETED, TradeState.FAILED)
