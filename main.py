import asyncio
import os
import sys

from vixtrader.bot import BotOrchestrator
from vixtrader.config import BotConfig
from vixtrader.errors import BotError, InsufficientBalanceError
from vixtrader.gateway.deriv import DerivGateway


def main():
    # --- Load config from env or defaults ---
    cfg = BotConfig(
        app_id=os.environ.get("DERIV_APP_ID", ""),
        api_token=os.environ.get("DERIV_API_TOKEN", ""),
        symbol=os.environ.get("VIX_SYMBOL", "R_75"),
        stake=float(os.environ.get("VIX_STAKE", "10.0")),
        cooldown_seconds=int(os.environ.get("VIX_COOLDOWN", "300")),
        min_balance=float(os.environ.get("VIX_MIN_BALANCE", "10.0")),
        lookback=int(os.environ.get("VIX_LOOKBACK", "100")),
        db_path=os.environ.get("VIX_DB", "trade_journal.db"),
        force_trade_after=int(os.environ.get("VIX_FORCE_TRADE_AFTER", "0")),
        quote_timeout=int(os.environ.get("VIX_QUOTE_TIMEOUT", "0")),
    )

    if not cfg.app_id or not cfg.api_token:
        print("=" * 60)
        print("  ERROR: Missing required environment variables!")
        print()
        print("  Set your Deriv app id and API token:")
        print("    export DERIV_APP_ID='12345'              # Linux/Mac")
        print("    export DERIV_API_TOKEN='your-token-here'")
        print("=" * 60)
        sys.exit(1)

    bot = BotOrchestrator(cfg, DerivGateway(cfg))

    async def run():
        try:
            await bot.start()
        finally:
            await bot.stop()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass
    except InsufficientBalanceError as e:
        print(f"Fatal: {e}")
        sys.exit(1)
    except BotError as e:
        print(f"Critical error: {e}")
        sys.exit(1)

if __name__ == "__main__":
    main()
