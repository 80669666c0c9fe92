"""
Vix75 engulfing bot.

Streams 1-minute candles from the venue, checks the last two closed
candles for an engulfing pattern on every close, and buys a short
tick contract (quote → confirm) when one shows up, at most once per
cooldown window and never with a trade already in flight.

USE ON DEMO FIRST.
"""

from typing import Optional

from .config import BotConfig
from .constants import Direction, TradeState
from .core.aggregator import CandleAggregator
from .core.signal import SignalDetector
from .errors import (
    ConcurrentTradeError,
    DataError,
    InsufficientBalanceError,
    TransportError,
    VenueError,
)
from .gateway.base import VenueGateway
from .gateway.events import (
    AccountBalance,
    BalanceFailed,
    GatewayConnected,
    HistoryLoaded,
    PeriodUpdate,
    PurchaseConfirmed,
    PurchaseFailed,
    QuoteFailed,
    QuoteReady,
    RequestAborted,
    SubscriptionFailed,
)
from .trading.cooldown import TradeCooldown
from .trading.journal import TradeJournal
from .trading.lifecycle import TradeLifecycle
from .trading.trade import TradeRecord, TradeRequest
from .utils.candle import Candle
from .utils.logger import log


class BotOrchestrator:
    def __init__(self, cfg: BotConfig, gateway: VenueGateway,
                 journal: Optional[TradeJournal] = None):
        self.cfg = cfg
        self.gateway = gateway
        self.aggregator = CandleAggregator(cfg.lookback, on_close=self._on_candle_closed)
        self.detector = SignalDetector()
        self.cooldown = TradeCooldown(cfg.cooldown_seconds)
        self.lifecycle = TradeLifecycle(gateway, on_finish=self._on_trade_finished)
        if journal is None and cfg.db_path:
            journal = TradeJournal(cfg.db_path)
        self.journal = journal

        self.balance: Optional[float] = None
        self._live = False              # history seeded and live stream requested
        self.candles_closed = 0
        self.data_errors = 0
        self.trades_started = 0
        self.trades_completed = 0
        self.trades_failed = 0

    # ------------------------------------------------------------------
    def handle(self, event):
        """Single entry point for gateway events. Each event is fully
        processed before the next one is delivered."""
        if isinstance(event, PeriodUpdate):
            self._on_period_update(event)
        elif isinstance(event, QuoteReady):
            self.lifecycle.on_quote_ready(event.request_id, event.quote_id, event.price)
        elif isinstance(event, QuoteFailed):
            self.lifecycle.on_quote_failed(event.request_id, event.reason, event.code)
        elif isinstance(event, PurchaseConfirmed):
            self.lifecycle.on_purchase_confirmed(event.request_id, event.order_id, event.details)
        elif isinstance(event, PurchaseFailed):
            self.lifecycle.on_purchase_failed(event.request_id, event.reason, event.code)
        elif isinstance(event, RequestAborted):
            self.lifecycle.on_request_aborted(event.request_id, event.reason)
        elif isinstance(event, AccountBalance):
            self._on_balance(event)
        elif isinstance(event, BalanceFailed):
            self._on_balance_failed(event)
        elif isinstance(event, HistoryLoaded):
            self._on_history(event)
        elif isinstance(event, GatewayConnected):
            self._on_connected(event)
        elif isinstance(event, SubscriptionFailed):
            log.error("Candle stream unavailable: %s", event.reason)
            raise TransportError(f"subscription failed: {event.reason}")
        else:
            log.debug("Unhandled event %r", event)

    # ------------------------------------------------------------------
    def _on_connected(self, event: GatewayConnected):
        # candle state is rebuilt from history on every fresh connection
        self._live = False
        self.gateway.request_balance()

    def _on_balance(self, event: AccountBalance):
        self.balance = event.amount
        if self.journal is not None:
            self.journal.save_balance(event.amount)

        if self._live:
            log.info("Balance: %.2f %s", event.amount, event.currency)
            return

        if event.amount < self.cfg.min_balance:
            log.error("Balance %.2f below floor %.2f — not trading.",
                      event.amount, self.cfg.min_balance)
            raise InsufficientBalanceError(event.amount, self.cfg.min_balance)

        log.info("Connected!  Balance: %.2f %s", event.amount, event.currency)
        log.info("Loading %d history candles for %s …", self.cfg.history_count, self.cfg.symbol)
        self.gateway.request_history(self.cfg.symbol, self.cfg.granularity, self.cfg.history_count)

    def _on_balance_failed(self, event: BalanceFailed):
        if self._live:
            log.warning("Balance refresh failed: %s", event.reason)
            return
        # the floor check cannot run without a balance
        log.error("Balance unavailable at startup: %s", event.reason)
        raise VenueError(event.reason, event.code)

    def _on_history(self, event: HistoryLoaded):
        if event.symbol != self.cfg.symbol or self._live:
            log.debug("Ignoring history for %s", event.symbol)
            return
        self.aggregator.ingest_history(event.candles)
        log.info("Subscribing to %ds candles for %s", self.cfg.granularity, self.cfg.symbol)
        self.gateway.subscribe(self.cfg.symbol, self.cfg.granularity)
        self._live = True

    def _on_period_update(self, event: PeriodUpdate):
        if event.symbol != self.cfg.symbol:
            return
        try:
            self.aggregator.ingest_update(event.ohlc)
        except DataError as e:
            self.data_errors += 1
            log.warning("Invalid ohlc data (%s): %s", e, event.ohlc)

    # ------------------------------------------------------------------
    def _on_candle_closed(self, candle: Candle):
        self.candles_closed += 1
        now = candle.last_epoch or candle.open_time

        if self.lifecycle.expire_if_stale(now, self.cfg.quote_timeout):
            log.warning("Trade timed out waiting for the venue")

        decision = self.detector.detect(self.aggregator.series.tail(2))
        if decision is None and self._force_due():
            log.warning("⚠ No trade after %d candles — forcing test CALL", self.candles_closed)
            decision = Direction.CALL

        log.debug("Candle closed → decision=%s  [%s]",
                  decision.value if decision else None, self.status_line())
        if decision is None:
            return

        log.info("📡 %s engulfing on candle @%d", decision.value.upper(), candle.open_time)

        if self.lifecycle.in_flight:
            log.info("⏸ Trade skipped: previous trade still %s", self.lifecycle.state.value)
            return
        if not self.cooldown.try_acquire(now):
            log.info("⏸ Trade skipped: cooldown (%ds left)", self.cooldown.remaining(now))
            return

        request = TradeRequest(
            direction=decision,
            symbol=self.cfg.symbol,
            stake=self.cfg.stake,
            duration=self.cfg.duration,
            duration_unit=self.cfg.duration_unit,
            currency=self.cfg.currency,
            basis=self.cfg.basis,
        )
        try:
            record = self.lifecycle.start(request, now)
        except ConcurrentTradeError as e:
            log.error("Trade rejected: %s", e)
            return

        self.trades_started += 1
        log.info("▶ TRADE  %s  $%.2f  %d%s  [%s]",
                 decision.value.upper(), request.stake,
                 request.duration, request.duration_unit, record.id)
        if self.journal is not None:
            self.journal.save_trade(record)

    def _force_due(self) -> bool:
        n = self.cfg.force_trade_after
        return n > 0 and self.trades_started == 0 and self.candles_closed >= n

    def _on_trade_finished(self, record: TradeRecord):
        if self.journal is not None:
            self.journal.save_trade(record)

        if record.state is TradeState.COMPLETED:
            self.trades_completed += 1
            log.info("✅ Trade placed: %s  contract=%s  price=%.2f",
                     record.request.direction.value.upper(), record.order_id, record.price)
            try:
                self.gateway.request_balance()
            except TransportError as e:
                log.warning("Balance refresh failed: %s", e)
        else:
            self.trades_failed += 1
            log.error("❌ Trade %s failed: %s", record.id, record.error)

    # ------------------------------------------------------------------
    def status_line(self) -> str:
        bal = f"{self.balance:.2f}" if self.balance is not None else "?"
        return (
            f"candles:{len(self.aggregator.series)} "
            f"trade:{self.lifecycle.state.value} "
            f"S:{self.trades_started} OK:{self.trades_completed} F:{self.trades_failed} "
            f"bal:{bal}"
        )

    async def start(self):
        """Main entry point."""
        log.info("═" * 60)
        log.info("  Vix75 ENGULFING BOT — Deriv")
        log.info("  Symbol: %s  |  Granularity: %ds  |  Stake: $%.2f",
                 self.cfg.symbol, self.cfg.granularity, self.cfg.stake)
        log.info("  Contract: %d%s  |  Cooldown: %ds",
                 self.cfg.duration, self.cfg.duration_unit, self.cfg.cooldown_seconds)
        log.info("═" * 60)

        self.gateway.set_handler(self.handle)
        await self.gateway.run()

    async def stop(self):
        await self.gateway.close()
        if self.journal is not None:
            self.journal.close()
        log.info("Bot stopped.  %s", self.status_line())
