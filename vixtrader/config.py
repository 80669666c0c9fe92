from dataclasses import dataclass

@dataclass
class BotConfig:
    """All tuneable knobs in one place."""

    # --- connection ---
    app_id: str = ""                        # Deriv application id
    api_token: str = ""                     # Deriv API token
    ws_url: str = "wss://ws.derivws.com/websockets/v3"
    ping_interval: float = 30.0             # keepalive ping (s)
    max_reconnect_attempts: int = 5
    reconnect_delay: float = 5.0            # wait between reconnects (s)

    # --- market ---
    symbol: str = "R_75"                    # Volatility 75 index
    granularity: int = 60                   # candle period (s)
    history_count: int = 5000               # candles requested on (re)connect
    lookback: int = 100                     # max closed candles to keep

    # --- trade ---
    stake: float = 10.0                     # stake per trade ($)
    currency: str = "USD"
    basis: str = "stake"
    duration: int = 5                       # contract length
    duration_unit: str = "t"                # "t" = ticks

    # --- risk / cooldown ---
    cooldown_seconds: int = 300             # 5 min between signal trades (event time)
    min_balance: float = 10.0               # refuse to start below this
    quote_timeout: int = 0                  # fail unanswered trades after N s (0 = off)

    # --- debug ---
    force_trade_after: int = 0              # force a CALL after N quiet candles (0 = off)

    # --- persistence ---
    db_path: str = "trade_journal.db"
