"""
Quote → confirm trade lifecycle.

    IDLE ──start──> AWAITING_QUOTE ──quote──> AWAITING_CONFIRMATION ──buy──> COMPLETED
                         │                            │
                         └──── error / timeout ───────┴──────────────────> FAILED

One trade at a time: ``start`` while a trade is in flight raises
ConcurrentTradeError and leaves that trade alone. Replies are matched on
the gateway request id, so a late reply for an abandoned trade is ignored.
"""

import itertools
import time
from typing import Callable, Optional

from ..constants import TradeState
from ..errors import ConcurrentTradeError, TransportError, VenueError
from ..utils.logger import log
from .trade import TradeRecord, TradeRequest

VALID_TRANSITIONS: dict[TradeState, tuple[TradeState, ...]] = {
    TradeState.IDLE: (TradeState.AWAITING_QUOTE, TradeState.FAILED),
    TradeState.AWAITING_QUOTE: (TradeState.AWAITING_CONFIRMATION, TradeState.FAILED),
    TradeState.AWAITING_CONFIRMATION: (TradeState.COMPLETED, TradeState.FAILED),
    TradeState.COMPLETED: (TradeState.AWAITING_QUOTE,),
    TradeState.FAILED: (TradeState.AWAITING_QUOTE,),
}

_ids = itertools.count(1)


class TradeLifecycle:
    def __init__(self, gateway, on_finish: Optional[Callable[[TradeRecord], None]] = None):
        self.gateway = gateway
        self.on_finish = on_finish
        self.state = TradeState.IDLE
        self.record: Optional[TradeRecord] = None
        self.error: Optional[Exception] = None
        self._pending_req: Optional[int] = None

    @property
    def in_flight(self) -> bool:
        return not self.state.terminal

    def _transition(self, new: TradeState):
        if new not in VALID_TRANSITIONS[self.state]:
            raise RuntimeError(f"invalid trade transition {self.state.value} → {new.value}")
        log.debug("Trade %s: %s → %s",
                  self.record.id if self.record else "-", self.state.value, new.value)
        self.state = new
        if self.record is not None:
            self.record.state = new

    # ------------------------------------------------------------------
    def start(self, request: TradeRequest, event_time: int) -> TradeRecord:
        """Ask the venue for a quote. A transport failure ends the trade
        as FAILED instead of raising."""
        if self.in_flight:
            raise ConcurrentTradeError(
                f"trade {self.record.id} is still {self.state.value}; "
                f"refusing to start {request.direction.value}"
            )

        self.record = TradeRecord(id=f"T{next(_ids)}", request=request, started_at=event_time)
        self.error = None
        self._pending_req = None
        self._transition(TradeState.AWAITING_QUOTE)

        try:
            self._pending_req = self.gateway.request_quote(request)
        except TransportError as e:
            self._fail(e)
        return self.record

    def on_quote_ready(self, request_id: int, quote_id: str, price: float) -> bool:
        if not self._expects(TradeState.AWAITING_QUOTE, request_id):
            return False
        rec = self.record
        rec.quote_id = quote_id
        rec.price = price
        log.info("Quote %s received: %s @ %.2f", quote_id, rec.request.direction.value, price)
        self._transition(TradeState.AWAITING_CONFIRMATION)
        try:
            self._pending_req = self.gateway.confirm_purchase(quote_id, price)
        except TransportError as e:
            self._fail(e)
        return True

    def on_quote_failed(self, request_id: int, message: str, code: str = "") -> bool:
        if not self._expects(TradeState.AWAITING_QUOTE, request_id):
            return False
        self._fail(VenueError(message, code))
        return True

    def on_purchase_confirmed(self, request_id: int, order_id: str, details: dict) -> bool:
        if not self._expects(TradeState.AWAITING_CONFIRMATION, request_id):
            return False
        rec = self.record
        rec.order_id = order_id
        rec.details = dict(details)
        rec.finished_at = time.time()
        self._pending_req = None
        self._transition(TradeState.COMPLETED)
        self._finish()
        return True

    def on_purchase_failed(self, request_id: int, message: str, code: str = "") -> bool:
        if not self._expects(TradeState.AWAITING_CONFIRMATION, request_id):
            return False
        self._fail(VenueError(message, code))
        return True

    def on_request_aborted(self, request_id: int, reason: str) -> bool:
        if not self.in_flight or request_id != self._pending_req:
            return False
        self._fail(TransportError(reason))
        return True

    def expire_if_stale(self, now: int, timeout: int) -> bool:
        """Fail a trade that has waited ``timeout`` event-seconds for a reply."""
        if timeout <= 0 or not self.in_flight:
            return False
        if now - self.record.started_at < timeout:
            return False
        self._fail(VenueError(f"no reply after {now - self.record.started_at}s", "timeout"))
        return True

    # ------------------------------------------------------------------
    def _expects(self, state: TradeState, request_id: int) -> bool:
        if self.state is not state or request_id != self._pending_req:
            log.debug("Ignoring reply for request %s (state=%s, pending=%s)",
                      request_id, self.state.value, self._pending_req)
            return False
        return True

    def _fail(self, err: Exception):
        self.error = err
        self.record.error = str(err)
        self.record.finished_at = time.time()
        self._pending_req = None
        self._transition(TradeState.FAILED)
        self._finish()

    def _finish(self):
        if self.on_finish is not None:
            self.on_finish(self.record)
