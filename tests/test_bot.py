import pytest

from vixtrader.bot import BotOrchestrator
from vixtrader.constants import Direction, TradeState
from vixtrader.errors import InsufficientBalanceError, TransportError, VenueError
from vixtrader.gateway.events import (
    AccountBalance,
    BalanceFailed,
    GatewayConnected,
    HistoryLoaded,
    PeriodUpdate,
    PurchaseConfirmed,
    QuoteFailed,
    QuoteReady,
    RequestAborted,
    SubscriptionFailed,
)
from vixtrader.trading.journal import TradeJournal

from conftest import hist, ohlc

# three closed candles, the last one bearish (open 10 → close 8)
HISTORY = [
    hist(60, 9.0, 9.6, 8.9, 9.5),
    hist(120, 9.5, 10.2, 9.4, 10.0),
    hist(180, 10.0, 10.1, 7.9, 8.0),
]


def boot(bot, balance=100.0, history=HISTORY):
    bot.handle(GatewayConnected(login_id="VRTC1"))
    bot.handle(AccountBalance(amount=balance))
    bot.handle(HistoryLoaded(symbol="R_75", candles=list(history)))


def update(bot, *args, **kw):
    bot.handle(PeriodUpdate(symbol="R_75", ohlc=ohlc(*args, **kw)))


def bullish_engulf_at(bot, t):
    """Close a candle at ``t`` that engulfs a bearish 10 → 8 predecessor."""
    update(bot, t, 7.0, 11.2, 6.9, 11.0, epoch=t + 59)
    update(bot, t + 60, 11.0, 11.1, 10.9, 11.05, epoch=t + 61)


@pytest.fixture
def bot(cfg, gateway):
    b = BotOrchestrator(cfg, gateway)
    gateway.set_handler(b.handle)
    return b


class TestStartup:
    def test_connect_balance_history_subscribe(self, bot, gateway):
        boot(bot)
        assert [c[1] for c in gateway.sent] == ["balance", "history", "subscribe"]
        assert gateway.calls("history")[0][2:] == ("R_75", 60, 5000)
        assert len(bot.aggregator.series) == 3

    def test_low_balance_is_fatal_before_subscribing(self, bot, gateway):
        bot.handle(GatewayConnected())
        with pytest.raises(InsufficientBalanceError) as exc:
            bot.handle(AccountBalance(amount=5.0))
        assert exc.value.floor == 10.0
        assert gateway.calls("history") == []
        assert gateway.calls("subscribe") == []

    def test_balance_error_at_startup_is_fatal(self, bot, gateway):
        bot.handle(GatewayConnected())
        with pytest.raises(VenueError):
            bot.handle(BalanceFailed(reason="slow down", code="RateLimit"))
        assert gateway.calls("history") == []

    def test_subscription_failure_is_fatal(self, bot):
        boot(bot)
        with pytest.raises(TransportError):
            bot.handle(SubscriptionFailed(reason="InvalidSymbol"))

    def test_reconnect_rebuilds_from_history(self, bot, gateway):
        boot(bot)
        update(bot, 240, 8, 8.2, 7.9, 8.1)
        boot(bot, history=HISTORY[:2])
        assert len(bot.aggregator.series) == 2
        assert bot.aggregator.current is None
        assert len(gateway.calls("subscribe")) == 2


class TestSignalToTrade:
    def test_engulfing_close_issues_one_call_quote(self, bot, gateway):
        boot(bot)
        bullish_engulf_at(bot, 240)
        quotes = gateway.calls("quote")
        assert len(quotes) == 1
        request = quotes[0][2]
        assert request.direction is Direction.CALL
        assert request.symbol == "R_75"
        assert request.stake == 10.0
        assert (request.duration, request.duration_unit) == (5, "t")
        assert bot.cooldown.last_trade_time == 299

    def test_no_pattern_no_trade(self, bot, gateway):
        boot(bot)
        update(bot, 240, 8.0, 8.6, 7.9, 8.5)
        update(bot, 300, 8.5, 8.6, 8.4, 8.55)
        assert gateway.calls("quote") == []

    def test_full_trade_then_balance_refresh(self, bot, gateway):
        boot(bot)
        bullish_engulf_at(bot, 240)
        bot.handle(QuoteReady(request_id=gateway.last_id("quote"), quote_id="Q1", price=10.0))
        bot.handle(PurchaseConfirmed(request_id=gateway.last_id("buy"), order_id="555",
                                     details={"contract_id": 555}))
        assert bot.lifecycle.state is TradeState.COMPLETED
        assert bot.trades_completed == 1
        assert len(gateway.calls("balance")) == 2
        # mid-session balances are informational
        bot.handle(AccountBalance(amount=1.0))
        assert bot.balance == 1.0

    def test_balance_refresh_error_after_trade_is_not_fatal(self, bot, gateway):
        boot(bot)
        bullish_engulf_at(bot, 240)
        bot.handle(QuoteReady(request_id=gateway.last_id("quote"), quote_id="Q1", price=10.0))
        bot.handle(PurchaseConfirmed(request_id=gateway.last_id("buy"), order_id="555"))
        assert len(gateway.calls("balance")) == 2
        bot.handle(BalanceFailed(reason="slow down", code="RateLimit"))
        assert bot.balance == 100.0
        assert bot.trades_completed == 1

    def test_cooldown_blocks_second_signal(self, bot, gateway):
        boot(bot)
        bullish_engulf_at(bot, 240)
        bot.handle(QuoteFailed(request_id=gateway.last_id("quote"), reason="nope"))
        assert bot.trades_failed == 1
        # another bearish → bullish engulf inside the 300s window
        update(bot, 360, 10.0, 10.1, 7.9, 8.0, epoch=419)
        bullish_engulf_at(bot, 420)
        assert len(gateway.calls("quote")) == 1

    def test_in_flight_trade_blocks_new_start(self, bot, gateway):
        boot(bot)
        bullish_engulf_at(bot, 240)
        update(bot, 600, 10.0, 10.1, 7.9, 8.0, epoch=659)
        bullish_engulf_at(bot, 660)
        assert len(gateway.calls("quote")) == 1
        assert bot.lifecycle.state is TradeState.AWAITING_QUOTE
        # cooldown is not spent on a skipped signal
        assert bot.cooldown.last_trade_time == 299

    def test_new_trade_allowed_after_failure_and_window(self, bot, gateway):
        boot(bot)
        bullish_engulf_at(bot, 240)
        bot.handle(RequestAborted(request_id=gateway.last_id("quote"), reason="connection lost"))
        update(bot, 600, 10.0, 10.1, 7.9, 8.0, epoch=659)
        bullish_engulf_at(bot, 660)
        assert len(gateway.calls("quote")) == 2

    def test_transport_down_fails_trade(self, bot, gateway):
        boot(bot)
        gateway.down = True
        bullish_engulf_at(bot, 240)
        assert bot.lifecycle.state is TradeState.FAILED
        assert bot.trades_failed == 1


class TestRobustness:
    def test_malformed_update_is_skipped(self, bot, gateway):
        boot(bot)
        bad = ohlc(240, 7, 11, 6.9, 10)
        bad["open"] = None
        bot.handle(PeriodUpdate(symbol="R_75", ohlc=bad))
        assert bot.data_errors == 1
        assert bot.aggregator.current is None

    def test_other_symbol_ignored(self, bot):
        boot(bot)
        bot.handle(PeriodUpdate(symbol="R_100", ohlc=ohlc(240, 7, 11, 6.9, 10, symbol="R_100")))
        assert bot.aggregator.current is None

    def test_quote_timeout_frees_lifecycle(self, cfg, gateway):
        cfg.quote_timeout = 60
        cfg.cooldown_seconds = 0
        bot = BotOrchestrator(cfg, gateway)
        boot(bot)
        bullish_engulf_at(bot, 240)
        # checked on each close; 301 - 299 is still inside the timeout
        update(bot, 360, 10.0, 10.1, 7.9, 8.0, epoch=419)
        assert bot.lifecycle.state is TradeState.AWAITING_QUOTE
        bullish_engulf_at(bot, 420)
        assert bot.trades_failed == 1
        assert len(gateway.calls("quote")) == 2


class TestForcedTrade:
    def test_forces_call_after_quiet_candles(self, cfg, gateway):
        cfg.force_trade_after = 2
        bot = BotOrchestrator(cfg, gateway)
        boot(bot)
        update(bot, 240, 8.0, 8.6, 7.9, 8.5)
        update(bot, 300, 8.5, 8.6, 8.4, 8.55)
        assert gateway.calls("quote") == []
        update(bot, 360, 8.55, 8.6, 8.5, 8.56)
        quotes = gateway.calls("quote")
        assert len(quotes) == 1
        assert quotes[0][2].direction is Direction.CALL

    def test_disabled_by_default(self, bot, gateway):
        boot(bot)
        for t in range(240, 1200, 60):
            update(bot, t, 8.0, 8.6, 7.9, 8.5)
        assert gateway.calls("quote") == []


class TestJournal:
    def test_trades_and_balances_recorded(self, cfg, gateway):
        journal = TradeJournal(":memory:")
        bot = BotOrchestrator(cfg, gateway, journal=journal)
        boot(bot)
        bullish_engulf_at(bot, 240)
        bot.handle(QuoteReady(request_id=gateway.last_id("quote"), quote_id="Q1", price=10.0))
        bot.handle(PurchaseConfirmed(request_id=gateway.last_id("buy"), order_id="555"))
        assert journal.total_trades() == 1
        row = journal.recent_trades(1)[0]
        assert row["state"] == "completed"
        assert row["order_id"] == "555"
        assert journal.last_balance() == 100.0
