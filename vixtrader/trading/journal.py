import json
import sqlite3
import time

from .trade import TradeRecord

class TradeJournal:
    def __init__(self, db_path: str):
        self.conn = sqlite3.connect(db_path)
        self._init_db()

    def _init_db(self):
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS trades (
                id          TEXT PRIMARY KEY,
                direction   TEXT,
                symbol      TEXT,
                stake       REAL,
                state       TEXT,
                quote_id    TEXT,
                price       REAL,
                order_id    TEXT,
                error       TEXT,
                started_at  INTEGER,
                finished_at REAL,
                details     TEXT
            )
        """)
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS balances (
                ts          REAL,
                amount      REAL
            )
        """)
        self.conn.commit()

    def save_trade(self, t: TradeRecord):
        self.conn.execute(
            "INSERT OR REPLACE INTO trades VALUES (?,?,?,?,?,?,?,?,?,?,?,?)",
            (t.id, t.request.direction.value, t.request.symbol, t.request.stake,
             t.state.value, t.quote_id, t.price, t.order_id, t.error,
             t.started_at, t.finished_at, json.dumps(t.details)),
        )
        self.conn.commit()

    def save_balance(self, amount: float):
        self.conn.execute("INSERT INTO balances VALUES (?,?)", (time.time(), amount))
        self.conn.commit()

    def recent_trades(self, n: int = 20) -> list[dict]:
        cur = self.conn.execute(
            "SELECT id, direction, state, order_id, error FROM trades "
            "ORDER BY started_at DESC, rowid DESC LIMIT ?",
            (n,),
        )
        return [
            {"id": tid, "direction": d, "state": s, "order_id": oid, "error": err}
            for tid, d, s, oid, err in cur.fetchall()
        ]

    def total_trades(self) -> int:
        cur = self.conn.execute("SELECT COUNT(*) FROM trades")
        return cur.fetchone()[0]

    def last_balance(self):
        cur = self.conn.execute("SELECT amount FROM balances ORDER BY rowid DESC LIMIT 1")
        row = cur.fetchone()
        return row[0] if row else None

    def close(self):
        self.conn.close()
