"""
Deriv websocket gateway.

One connection, one read loop. Every outbound request gets a ``req_id``
and an entry in ``_pending``; replies are dispatched by that id into
typed events. Rolling ``ohlc`` frames are dispatched by message type.
"""

import asyncio
import itertools
import json
import math
from typing import Optional

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from ..config import BotConfig
from ..errors import TransportError, VenueError
from ..trading.trade import TradeRequest
from ..utils.logger import log
from .base import VenueGateway
from .events import (
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

def _amount(raw) -> float:
    if raw is None or isinstance(raw, bool):
        raise ValueError(f"missing amount: {raw!r}")
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise ValueError(f"amount is not numeric: {raw!r}") from None
    if not math.isfinite(value):
        raise ValueError(f"amount is not finite: {raw!r}")
    return value


# request kinds whose loss must be reported to the trade lifecycle
_TRADE_KINDS = ("proposal", "buy")


class DerivGateway(VenueGateway):
    def __init__(self, cfg: BotConfig):
        super().__init__()
        self.cfg = cfg
        self._ws = None
        self._ready = False
        self._running = False
        self._outbox: Optional[asyncio.Queue] = None
        self._pending: dict[int, tuple[str, dict]] = {}
        self._req_ids = itertools.count(1)
        self._streams: set[tuple[str, int]] = set()
        self._tasks: list[asyncio.Task] = []

    @property
    def url(self) -> str:
        return f"{self.cfg.ws_url}?app_id={self.cfg.app_id}"

    @property
    def connected(self) -> bool:
        return self._ws is not None and self._ready

    # ------------------------------------------------------------------
    # outbound
    # ------------------------------------------------------------------
    def _send(self, payload: dict, kind: str, require_auth: bool = True, **ctx) -> int:
        if self._ws is None or self._outbox is None or (require_auth and not self._ready):
            raise TransportError(f"websocket not open, cannot send {kind}")
        req_id = next(self._req_ids)
        payload = dict(payload, req_id=req_id)
        self._pending[req_id] = (kind, ctx)
        self._outbox.put_nowait(json.dumps(payload))
        if kind != "ping":
            log.debug("→ %s #%d", kind, req_id)
        return req_id

    def request_balance(self) -> int:
        return self._send({"balance": 1}, "balance")

    def request_history(self, symbol: str, granularity: int, count: int) -> int:
        return self._send(
            {
                "ticks_history": symbol,
                "style": "candles",
                "granularity": granularity,
                "adjust_start_time": 1,
                "end": "latest",
                "count": count,
            },
            "history",
            symbol=symbol,
        )

    def subscribe(self, symbol: str, granularity: int) -> int:
        req_id = self._send(
            {
                "ticks_history": symbol,
                "subscribe": 1,
                "style": "candles",
                "granularity": granularity,
                "adjust_start_time": 1,
                "end": "latest",
                "count": 1,
            },
            "subscribe",
            symbol=symbol,
            granularity=granularity,
        )
        self._streams.add((symbol, granularity))
        return req_id

    def request_quote(self, request: TradeRequest) -> int:
        return self._send(
            {
                "proposal": 1,
                "symbol": request.symbol,
                "contract_type": request.direction.contract_type,
                "amount": request.stake,
                "basis": request.basis,
                "currency": request.currency,
                "duration": request.duration,
                "duration_unit": request.duration_unit,
            },
            "proposal",
        )

    def confirm_purchase(self, quote_id: str, price: float) -> int:
        return self._send({"buy": quote_id, "price": price}, "buy")

    # ------------------------------------------------------------------
    # inbound
    # ------------------------------------------------------------------
    def _on_message(self, data):
        try:
            response = json.loads(data)
        except ValueError as e:
            log.error("Message JSON parse error: %s", e)
            return
        if not isinstance(response, dict):
            log.warning("Unexpected frame: %r", response)
            return

        msg_type = response.get("msg_type")
        req_id = response.get("req_id")

        if msg_type == "ohlc":
            self._on_ohlc(response.get("ohlc") or {})
            return

        entry = self._pending.get(req_id)
        if entry is None:
            log.debug("Unsolicited %s frame (req_id=%s)", msg_type, req_id)
            return
        kind, ctx = entry
        # the subscription id keeps receiving frames
        if kind != "subscribe":
            self._pending.pop(req_id, None)

        error = response.get("error")
        message = code = ""
        if error:
            message = error.get("message", "unknown error")
            code = error.get("code", "")

        if kind == "ping":
            return

        if kind == "authorize":
            if error:
                log.error("Auth error: %s", message)
                raise VenueError(message, code)
            login = (response.get("authorize") or {}).get("loginid", "")
            self._ready = True
            log.info("Authenticated: %s", login)
            self.emit(GatewayConnected(login_id=login))

        elif kind == "balance":
            if error:
                log.error("Balance error: %s", message)
                self.emit(BalanceFailed(reason=message, code=code))
                return
            bal = response.get("balance") or {}
            try:
                amount = _amount(bal.get("balance"))
            except ValueError as e:
                log.error("Malformed balance reply: %s", e)
                self.emit(BalanceFailed(reason=str(e), code="MalformedReply"))
                return
            self.emit(AccountBalance(amount=amount, currency=bal.get("currency", "USD")))

        elif kind == "history":
            if error:
                log.error("History error: %s", message)
                self.emit(SubscriptionFailed(reason=message))
                return
            self.emit(HistoryLoaded(symbol=ctx["symbol"], candles=response.get("candles") or []))

        elif kind == "subscribe":
            if error:
                self._pending.pop(req_id, None)
                self._streams.discard((ctx["symbol"], ctx["granularity"]))
                log.error("Subscription error: %s", message)
                self.emit(SubscriptionFailed(reason=message))

        elif kind == "proposal":
            if error:
                log.error("Error getting proposal: %s", message)
                self.emit(QuoteFailed(request_id=req_id, reason=message, code=code))
                return
            proposal = response.get("proposal") or {}
            try:
                if not proposal.get("id"):
                    raise ValueError("proposal has no id")
                price = _amount(proposal.get("ask_price"))
            except ValueError as e:
                log.error("Malformed proposal: %s", e)
                self.emit(QuoteFailed(request_id=req_id, reason=str(e), code="MalformedReply"))
                return
            self.emit(QuoteReady(request_id=req_id, quote_id=str(proposal["id"]), price=price))

        elif kind == "buy":
            if error:
                log.error("Error buying contract: %s", message)
                self.emit(PurchaseFailed(request_id=req_id, reason=message, code=code))
                return
            buy = response.get("buy") or {}
            self.emit(PurchaseConfirmed(request_id=req_id,
                                        order_id=str(buy.get("contract_id", "")), details=buy))

    def _on_ohlc(self, ohlc: dict):
        symbol = ohlc.get("symbol", "")
        try:
            granularity = int(ohlc.get("granularity", 0))
        except (TypeError, ValueError):
            granularity = 0
        if (symbol, granularity) not in self._streams:
            log.debug("Ignoring ohlc for %s/%s", symbol, granularity)
            return
        self.emit(PeriodUpdate(symbol=symbol, ohlc=ohlc))

    def _abort_pending(self, reason: str):
        pending, self._pending = self._pending, {}
        self._streams.clear()
        for req_id, (kind, _) in pending.items():
            if kind in _TRADE_KINDS:
                self.emit(RequestAborted(request_id=req_id, reason=reason))

    # ------------------------------------------------------------------
    # connection
    # ------------------------------------------------------------------
    async def _writer(self, ws, outbox: asyncio.Queue):
        while True:
            msg = await outbox.get()
            await ws.send(msg)

    async def _pinger(self):
        while True:
            await asyncio.sleep(self.cfg.ping_interval)
            try:
                self._send({"ping": 1}, "ping", require_auth=False)
            except TransportError:
                return

    async def run(self):
        """Connect, authorize and pump messages until stopped. Reconnects
        up to ``max_reconnect_attempts`` times in a row."""
        self._running = True
        attempts = 0
        while self._running:
            try:
                async with websockets.connect(self.url) as ws:
                    log.info("WebSocket connected")
                    attempts = 0
                    self._ws = ws
                    self._outbox = asyncio.Queue()
                    self._tasks = [
                        asyncio.create_task(self._writer(ws, self._outbox)),
                        asyncio.create_task(self._pinger()),
                    ]
                    try:
                        self._send({"authorize": self.cfg.api_token}, "authorize", require_auth=False)
                        async for message in ws:
                            self._on_message(message)
                    finally:
                        for t in self._tasks:
                            t.cancel()
                        await asyncio.gather(*self._tasks, return_exceptions=True)
                        self._ws = None
                        self._outbox = None
                        self._ready = False
            except ConnectionClosed as e:
                log.warning("WebSocket closed: %s", e)
            except WebSocketException as e:
                log.error("WebSocket handshake failed: %s", e)
            except (OSError, asyncio.TimeoutError) as e:
                log.error("WebSocket error: %s", e)

            self._ws = None
            self._ready = False
            self._abort_pending("connection lost")
            if not self._running:
                break

            attempts += 1
            if attempts > self.cfg.max_reconnect_attempts:
                log.error("Max reconnect attempts reached.")
                raise TransportError("max reconnect attempts reached")
            log.warning("Reconnecting attempt %d/%d in %.0fs …",
                        attempts, self.cfg.max_reconnect_attempts, self.cfg.reconnect_delay)
            await asyncio.sleep(self.cfg.reconnect_delay)

    async def close(self):
        self._running = False
        if self._ws is not None:
            await self._ws.close()
