import sqlite3
import threading
from pathlib import Path
from typing import List, Optional, Tuple

from gavel.utils.logger import get_logger

logger = get_logger("storage.sqlite")


class SQLiteAdapter:
    """
    SQLite backend for persistent storage.

    Provides:
    1. Auction stores (one JSON document per contract address).
    2. Account balances.
    3. Append-only event log.
    4. Metadata (deployment nonce).
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn_local = threading.local()

        # Ensure directory exists
        if not db_path.parent.exists():
            db_path.parent.mkdir(parents=True, exist_ok=True)

        self._init_schema()

    def _get_conn(self) -> sqlite3.Connection:
        """Get or create connection for current thread."""
        if not hasattr(self._conn_local, "conn"):
            self._conn_local.conn = sqlite3.connect(
                self.db_path,
                timeout=30.0,
                check_same_thread=False
            )
            self._conn_local.conn.row_factory = sqlite3.Row
            # Enable WAL mode for better concurrency
            self._conn_local.conn.execute("PRAGMA journal_mode=WAL;")
            self._conn_local.conn.execute("PRAGMA synchronous=NORMAL;")
        return self._conn_local.conn

    def _init_schema(self):
        """Initialize database schema."""
        conn = self._get_conn()
        with conn:
            # 1. Auction stores
            conn.execute("""
                CREATE TABLE IF NOT EXISTS auctions (
                    address BLOB PRIMARY KEY,
                    data TEXT NOT NULL
                )
            """)

            # 2. Account balances (TEXT: values can exceed 64 bits)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS accounts (
                    address BLOB PRIMARY KEY,
                    balance TEXT NOT NULL
                )
            """)

            # 3. Events
            conn.execute("""
                CREATE TABLE IF NOT EXISTS events (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    contract BLOB NOT NULL,
                    name TEXT NOT NULL,
                    data TEXT NOT NULL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_event_contract ON events(contract);")

            # 4. Metadata
            conn.execute("""
                CREATE TABLE IF NOT EXISTS meta (
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
            """)

    def close(self):
        """Close the connection of the current thread."""
        conn = getattr(self._conn_local, "conn", None)
        if conn is not None:
            conn.close()
            del self._conn_local.conn

    # =========================================================================
    # Auction Operations
    # =========================================================================

    def save_auction(self, address: bytes, data: str):
        conn = self._get_conn()
        with conn:
            conn.execute(
                "INSERT OR REPLACE INTO auctions (address, data) VALUES (?, ?)",
                (address, data)
            )

    def get_auction(self, address: bytes) -> Optional[str]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT data FROM auctions WHERE address = ?", (address,))
        row = cursor.fetchone()
        return row['data'] if row else None

    def get_all_auction_addresses(self) -> List[bytes]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT address FROM auctions ORDER BY rowid ASC")
        return [row['address'] for row in cursor]

    # =========================================================================
    # Account Operations
    # =========================================================================

    def save_balance(self, address: bytes, balance: int):
        conn = self._get_conn()
        with conn:
            conn.execute(
                "INSERT OR REPLACE INTO accounts (address, balance) VALUES (?, ?)",
                (address, str(balance))
            )

    def get_all_balances(self) -> List[Tuple[bytes, int]]:
        """Get all (address, balance)."""
        conn = self._get_conn()
        cursor = conn.execute("SELECT address, balance FROM accounts")
        return [(row['address'], int(row['balance'])) for row in cursor]

    # =========================================================================
    # Event Operations
    # =========================================================================

    def append_event(self, contract: bytes, name: str, data: str):
        conn = self._get_conn()
        with conn:
            conn.execute(
                "INSERT INTO events (contract, name, data) VALUES (?, ?, ?)",
                (contract, name, data)
            )

    def get_events(self, contract: Optional[bytes] = None) -> List[Tuple[str, str]]:
        """Get (name, data) in emission order, optionally for one contract."""
        conn = self._get_conn()
        if contract is None:
            cursor = conn.execute("SELECT name, data FROM events ORDER BY seq ASC")
        else:
            cursor = conn.execute(
                "SELECT name, data FROM events WHERE contract = ? ORDER BY seq ASC",
                (contract,)
            )
        return [(row['name'], row['data']) for row in cursor]

    # =========================================================================
    # Metadata Operations
    # =========================================================================

    def set_meta(self, key: str, value: str):
        conn = self._get_conn()
        with conn:
            conn.execute("INSERT OR REPLACE INTO meta (key, value) VALUES (?, ?)", (key, value))

    def get_meta(self, key: str) -> Optional[str]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT value FROM meta WHERE key = ?", (key,))
        row = cursor.fetchone()
        return row['value'] if row else None

    def persist_commit(
        self,
        address: bytes,
        store_data: str,
        balances: List[Tuple[bytes, int]],
        events: List[Tuple[str, str]],
    ):
        """
        Atomically persist the outcome of one handler call.

        Args:
            address: Auction contract address
            store_data: Serialized auction store
            balances: (address, balance) pairs touched by the call
            events: (name, data) pairs emitted by the call
        """
        conn = self._get_conn()
        with conn:
            conn.execute(
                "INSERT OR REPLACE INTO auctions (address, data) VALUES (?, ?)",
                (address, store_data)
            )

            for account, balance in balances:
                conn.execute(
                    "INSERT OR REPLACE INTO accounts (address, balance) VALUES (?, ?)",
                    (account, str(balance))
                )

            for name, data in events:
                conn.execute(
                    "INSERT INTO events (contract, name, data) VALUES (?, ?, ?)",
                    (address, name, data)
                )
