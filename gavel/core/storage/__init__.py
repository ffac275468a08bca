"""
Persistent Storage Module.

Provides SQLite-backed persistence for:
- Auction stores
- Account balances
- Event history
"""

from gavel.core.storage.sqlite_adapter import SQLiteAdapter
from gavel.core.storage.storage_manager import StorageManager

__all__ = ["SQLiteAdapter", "StorageManager"]
