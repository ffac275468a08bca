"""
Gavel Auction Module.

This module provides the English auction state machine:
- Bid, end, withdraw and claim handlers
- Reentrancy guard and all-or-nothing handler scope
"""

from gavel.core.auction.guard import (
    ReentrancyGuard,
    AtomicScope,
    atomic,
)

from gavel.core.auction.english import EnglishAuction

__all__ = [
    # Guards
    "ReentrancyGuard",
    "AtomicScope",
    "atomic",
    # Auction
    "EnglishAuction",
]
