import json
from pathlib import Path
from typing import List, Optional, Tuple

from gavel.core.events import AuctionEvent, event_from_dict
from gavel.core.state.store import AuctionStore
from gavel.core.storage.sqlite_adapter import SQLiteAdapter
from gavel.utils.logger import get_logger

logger = get_logger("storage.manager")


class StorageManager:
    """
    Manages persistent storage for auctions.

    Coordinates data persistence using SQLite adapter.
    Handles:
    - Auction stores
    - Account balances
    - Event history
    - Metadata (deployment nonce)
    """

    def __init__(self, data_dir: Path, db_name: str = "gavel.db"):
        self.data_dir = data_dir
        self.db_path = data_dir / db_name
        self.adapter = SQLiteAdapter(self.db_path)

        logger.debug(f"StorageManager initialized at {self.db_path}")

    def close(self):
        self.adapter.close()

    # =========================================================================
    # Auctions
    # =========================================================================

    def save_auction(self, store: AuctionStore):
        """Persist an auction store."""
        self.adapter.save_auction(store.params.address, store.to_json())

    def load_auction(self, address: bytes) -> Optional[AuctionStore]:
        """Load an auction store, or None if unknown."""
        data = self.adapter.get_auction(address)
        if data is None:
            return None
        return AuctionStore.from_json(data)

    def list_auctions(self) -> List[bytes]:
        """Addresses of all persisted auctions, oldest first."""
        return self.adapter.get_all_auction_addresses()

    # =========================================================================
    # Accounts
    # =========================================================================

    def persist_balance(self, address: bytes, balance: int):
        self.adapter.save_balance(address, balance)

    def load_balances(self) -> List[Tuple[bytes, int]]:
        return self.adapter.get_all_balances()

    # =========================================================================
    # Events
    # =========================================================================

    def load_events(self, contract: Optional[bytes] = None) -> List[AuctionEvent]:
        """Persisted events in emission order."""
        return [
            event_from_dict(name, json.loads(data))
            for name, data in self.adapter.get_events(contract)
        ]

    # =========================================================================
    # Deployment Nonce
    # =========================================================================

    def next_nonce(self) -> int:
        """Reserve the next deployment nonce."""
        current = self.adapter.get_meta("deploy_nonce")
        nonce = int(current) if current else 0
        self.adapter.set_meta("deploy_nonce", str(nonce + 1))
        return nonce

    # =========================================================================
    # Handler Commits
    # =========================================================================

    def persist_commit(
        self,
        store: AuctionStore,
        balances: List[Tuple[bytes, int]],
        events: List[AuctionEvent],
    ):
        """Atomically persist a committed handler call."""
        self.adapter.persist_commit(
            store.params.address,
            store.to_json(),
            balances,
            [(e.name, json.dumps(e.to_dict(), sort_keys=True)) for e in events],
        )
