"""
Auction Store - persisted state of one auction instance.

Conceptual Background:
---------------------
The store is split in two:

1. **AuctionParams**: fixed at construction (owner, prize, deadline).
   Frozen, so nothing can rewrite them after deployment.
2. **AuctionStore**: the mutable fields the handlers transition
   (highest bid/bidder, ended flag, winner, cumulative bids).

Rollback:
--------
Handlers are all-or-nothing. Before a handler mutates anything the auction
takes a snapshot; if the handler aborts, the snapshot is restored, undoing
every tentative write (including a balance zeroed before a failed transfer).
"""

import json
from dataclasses import dataclass, field
from typing import Dict

from gavel.crypto import ZERO_ADDRESS, bytes_to_hex, hex_to_bytes, sha256


# =============================================================================
# Immutable Parameters
# =============================================================================


@dataclass(frozen=True)
class AuctionParams:
    """
    Deployment-time parameters of an auction.

    Attributes:
        address: Contract address (custody account)
        owner: Deployer; the only account allowed to end the auction
        prize: Prize descriptor handed to the winner
        created_at: Construction timestamp
        bidding_duration: Seconds between creation and deadline
    """
    address: bytes
    owner: bytes
    prize: str
    created_at: int
    bidding_duration: int

    @property
    def end_time(self) -> int:
        """Absolute deadline."""
        return self.created_at + self.bidding_duration

    def to_dict(self) -> dict:
        return {
            "address": bytes_to_hex(self.address),
            "owner": bytes_to_hex(self.owner),
            "prize": self.prize,
            "created_at": self.created_at,
            "bidding_duration": self.bidding_duration,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AuctionParams":
        return cls(
            address=hex_to_bytes(data["address"]),
            owner=hex_to_bytes(data["owner"]),
            prize=data["prize"],
            created_at=int(data["created_at"]),
            bidding_duration=int(data["bidding_duration"]),
        )


# =============================================================================
# Mutable State
# =============================================================================


@dataclass(frozen=True)
class StoreSnapshot:
    """Independent copy of the mutable fields."""
    highest_bid: int
    highest_bidder: bytes
    is_auction_ended: bool
    winner: bytes
    bids: Dict[bytes, int]


@dataclass
class AuctionStore:
    """
    Mutable state of one auction.

    Only the auction's handlers write to it.
    """
    params: AuctionParams
    highest_bid: int = 0
    highest_bidder: bytes = ZERO_ADDRESS
    is_auction_ended: bool = False
    winner: bytes = ZERO_ADDRESS
    bids: Dict[bytes, int] = field(default_factory=dict)

    # =========================================================================
    # Access
    # =========================================================================

    @property
    def prize(self) -> str:
        return self.params.prize

    @property
    def end_time(self) -> int:
        return self.params.end_time

    @property
    def owner(self) -> bytes:
        return self.params.owner

    def bid_of(self, address: bytes) -> int:
        """Refundable (cumulative, not yet withdrawn) amount of an address."""
        return self.bids.get(address, 0)

    def custody_total(self) -> int:
        """Value the auction should be holding."""
        return sum(self.bids.values())

    # =========================================================================
    # Rollback
    # =========================================================================

    def snapshot(self) -> StoreSnapshot:
        return StoreSnapshot(
            highest_bid=self.highest_bid,
            highest_bidder=self.highest_bidder,
            is_auction_ended=self.is_auction_ended,
            winner=self.winner,
            bids=dict(self.bids),
        )

    def restore(self, snapshot: StoreSnapshot) -> None:
        self.highest_bid = snapshot.highest_bid
        self.highest_bidder = snapshot.highest_bidder
        self.is_auction_ended = snapshot.is_auction_ended
        self.winner = snapshot.winner
        self.bids = dict(snapshot.bids)

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> dict:
        """
        JSON-compatible form.

        Amounts are decimal strings so values beyond SQLite's 64-bit
        integers survive a round trip.
        """
        return {
            "params": self.params.to_dict(),
            "highest_bid": str(self.highest_bid),
            "highest_bidder": bytes_to_hex(self.highest_bidder),
            "is_auction_ended": self.is_auction_ended,
            "winner": bytes_to_hex(self.winner),
            "bids": {bytes_to_hex(a): str(v) for a, v in sorted(self.bids.items())},
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AuctionStore":
        return cls(
            params=AuctionParams.from_dict(data["params"]),
            highest_bid=int(data["highest_bid"]),
            highest_bidder=hex_to_bytes(data["highest_bidder"]),
            is_auction_ended=bool(data["is_auction_ended"]),
            winner=hex_to_bytes(data["winner"]),
            bids={hex_to_bytes(a): int(v) for a, v in data["bids"].items()},
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))

    @classmethod
    def from_json(cls, text: str) -> "AuctionStore":
        return cls.from_dict(json.loads(text))

    def digest(self) -> bytes:
        """SHA-256 over the canonical JSON form."""
        return sha256(self.to_json().encode("utf-8"))
