"""
English Auction - single-asset, time-boxed open auction.

This module implements the auction state machine:
1. Bidding: anyone places strictly increasing bids until the deadline
2. Ending: after the deadline the owner records the highest bidder as winner
3. Settlement: losing bidders withdraw their cumulative bids, the winner
   claims the prize descriptor

Every handler takes the caller's address explicitly (and, for bids, the
attached value) and is all-or-nothing: a failure anywhere restores the store
and treasury, moves no funds and emits no event.

Safety discipline for handlers that mutate state:
- Check: read-only preconditions run first and raise on failure
- Effect: the reentrancy guard is taken and the store is updated
- Interaction: at most one outbound transfer, after the effects

`withdraw` zeroes the caller's balance before paying out, so a payee hook
that calls back into `withdraw` sees nothing left to refund.

The winner's funds stay in the auction's custody; there is no payout
transition.
"""

import functools
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from gavel.core.auction.guard import AtomicScope, ReentrancyGuard, atomic
from gavel.core.clock import Clock, SystemClock
from gavel.core.errors import (
    AccessDenied,
    AuctionError,
    AuctionStateInvalid,
    InvalidBid,
    NoBids,
    TransferFailed,
)
from gavel.core.events import AuctionEnded, BidPlaced, EventLog, Withdrawn
from gavel.core.state.store import AuctionParams, AuctionStore
from gavel.core.storage import StorageManager
from gavel.core.treasury import Treasury
from gavel.crypto import ZERO_ADDRESS, derive_contract_address, short_address
from gavel.utils.logger import get_logger
from gavel.utils.validation import (
    MAX_PRIZE_LENGTH,
    validate_address,
    validate_amount,
    validate_duration,
    validate_prize,
)

logger = get_logger("auction")


def handler(name: str):
    """
    Mark a method as an externally callable handler.

    Serializes calls from different threads and logs rejected calls.
    The same thread may re-enter; the reentrancy guard decides what a
    nested call is allowed to do.
    """
    def decorate(fn):
        @functools.wraps(fn)
        def wrapper(self, caller, *args, **kwargs):
            with self._mutex:
                try:
                    return fn(self, caller, *args, **kwargs)
                except AuctionError as e:
                    logger.debug(f"{name} by {short_address(caller)} rejected: {e.name} {e.reason}")
                    raise
        return wrapper
    return decorate


class EnglishAuction:
    """
    One deployed auction instance.

    Attributes:
        store: Persisted auction state
        clock: Time source for the deadline checks
        treasury: Value custody shared with other contracts and accounts
        event_log: Where committed events are published
        storage_manager: Optional persistence
    """

    def __init__(
        self,
        owner: bytes,
        prize: str,
        bidding_duration: int,
        clock: Optional[Clock] = None,
        treasury: Optional[Treasury] = None,
        event_log: Optional[EventLog] = None,
        storage_manager: Optional[StorageManager] = None,
        nonce: Optional[int] = None,
        max_prize_length: int = MAX_PRIZE_LENGTH,
    ):
        """
        Deploy a new auction.

        Args:
            owner: Deployer address; only it may end the auction
            prize: Prize descriptor
            bidding_duration: Seconds from now until the deadline
            clock: Time source (defaults to wall-clock time)
            treasury: Value custody (defaults to a fresh treasury)
            event_log: Event sink (defaults to a fresh log)
            storage_manager: Persistence. None = in-memory only.
            nonce: Deployment nonce for the contract address. Defaults to
                the storage manager's next nonce, or 0 in memory.
            max_prize_length: Upper bound on the prize descriptor

        Raises:
            ValueError: If a parameter is invalid
        """
        for valid, error in (
            validate_address(owner, "owner"),
            validate_prize(prize, max_prize_length),
            validate_duration(bidding_duration),
        ):
            if not valid:
                raise ValueError(error)

        clock = clock or SystemClock()
        if nonce is None:
            nonce = storage_manager.next_nonce() if storage_manager else 0

        params = AuctionParams(
            address=derive_contract_address(owner, nonce),
            owner=owner,
            prize=prize,
            created_at=clock.now(),
            bidding_duration=bidding_duration,
        )
        self._attach(AuctionStore(params=params), clock, treasury, event_log, storage_manager)

        if storage_manager:
            storage_manager.save_auction(self.store)

        logger.info(f"Auction {short_address(self.address)} deployed by {short_address(owner)}, "
                    f"bidding until {self.end_time}")

    @classmethod
    def load(
        cls,
        address: bytes,
        storage_manager: StorageManager,
        clock: Optional[Clock] = None,
        treasury: Optional[Treasury] = None,
        event_log: Optional[EventLog] = None,
    ) -> "EnglishAuction":
        """
        Reattach to a persisted auction.

        Raises:
            KeyError: If no auction is stored at `address`
        """
        store = storage_manager.load_auction(address)
        if store is None:
            raise KeyError(f"No auction at 0x{address.hex()}")

        auction = cls.__new__(cls)
        auction._attach(store, clock or SystemClock(), treasury, event_log, storage_manager)
        return auction

    def _attach(
        self,
        store: AuctionStore,
        clock: Clock,
        treasury: Optional[Treasury],
        event_log: Optional[EventLog],
        storage_manager: Optional[StorageManager],
    ) -> None:
        self.store = store
        self.clock = clock
        self.storage_manager = storage_manager
        self.treasury = treasury if treasury is not None else Treasury(storage_manager)
        self.event_log = event_log if event_log is not None else EventLog()

        self._guard = ReentrancyGuard()
        self._mutex = threading.RLock()

    # =========================================================================
    # Public State
    # =========================================================================

    @property
    def address(self) -> bytes:
        return self.store.params.address

    @property
    def owner(self) -> bytes:
        return self.store.owner

    @property
    def prize(self) -> str:
        return self.store.prize

    @property
    def end_time(self) -> int:
        return self.store.end_time

    @property
    def highest_bid(self) -> int:
        return self.store.highest_bid

    @property
    def highest_bidder(self) -> bytes:
        return self.store.highest_bidder

    @property
    def ended(self) -> bool:
        return self.store.is_auction_ended

    @property
    def winner(self) -> bytes:
        return self.store.winner

    def bids(self, address: bytes) -> int:
        """Cumulative, not yet withdrawn amount bid by `address`."""
        return self.store.bid_of(address)

    def time_remaining(self) -> int:
        """Seconds until the deadline (0 once it has passed)."""
        return max(0, self.end_time - self.clock.now())

    def is_bidding_open(self) -> bool:
        return self.clock.now() < self.end_time

    # =========================================================================
    # Handlers
    # =========================================================================

    @handler("place_bid")
    def place_bid(self, caller: bytes, value: int) -> None:
        """
        Bid `value` (attached to the call) on the prize.

        Raises:
            AuctionStateInvalid: The deadline has been reached
            InvalidBid: `value` does not exceed the highest bid
            InsufficientFunds: Caller cannot cover `value`
        """
        self._require_caller(caller)

        if self.clock.now() >= self.end_time:
            raise AuctionStateInvalid("Bidding period is over")

        valid, _ = validate_amount(value)
        if not valid or value <= self.store.highest_bid:
            raise InvalidBid(value, self.store.highest_bid)

        with self._transaction("place_bid", caller) as scope:
            self.treasury.collect(caller, self.address, value)

            self.store.highest_bid = value
            self.store.highest_bidder = caller
            self.store.bids[caller] = self.store.bid_of(caller) + value

            scope.emit(BidPlaced(contract=self.address, bidder=caller, amount=value))

        logger.info(f"Bid accepted on {short_address(self.address)}: "
                    f"{short_address(caller)} bid {value}")

    @handler("end_auction")
    def end_auction(self, caller: bytes) -> None:
        """
        Close bidding and record the winner.

        Raises:
            AccessDenied: Caller is not the owner
            AuctionStateInvalid: Deadline not passed, or already ended
        """
        self._require_caller(caller)

        if caller != self.owner:
            raise AccessDenied("Only the owner can end the auction")

        if self.clock.now() <= self.end_time:
            raise AuctionStateInvalid("Auction deadline not reached")

        if self.store.is_auction_ended:
            raise AuctionStateInvalid("Auction already ended")

        with self._transaction("end_auction") as scope:
            self.store.winner = self.store.highest_bidder
            self.store.is_auction_ended = True

            amount = self.store.bid_of(self.store.winner)
            scope.emit(AuctionEnded(contract=self.address, winner=self.store.winner, amount=amount))

        if self.winner == ZERO_ADDRESS:
            logger.warning(f"Auction {short_address(self.address)} ended without bids")
        else:
            logger.info(f"Auction {short_address(self.address)} ended: "
                        f"winner={short_address(self.winner)}, amount={amount}")

    @handler("withdraw")
    def withdraw(self, caller: bytes) -> None:
        """
        Refund a losing bidder's cumulative bids.

        Raises:
            AuctionStateInvalid: Auction has not ended
            NoBids: Caller has nothing to withdraw
            AccessDenied: Caller is the winner
            TransferFailed: Caller rejected the payment
        """
        self._require_caller(caller)

        if not self.store.is_auction_ended:
            raise AuctionStateInvalid("Auction has not ended")

        refund = self.store.bid_of(caller)
        if refund <= 0:
            raise NoBids(f"Nothing to withdraw for 0x{caller.hex()}")

        if caller == self.store.winner:
            raise AccessDenied("Winner cannot withdraw")

        with self._transaction("withdraw", caller) as scope:
            # Zeroed before paying out: a reentrant withdraw sees no balance
            self.store.bids[caller] = 0

            if not self.treasury.send(self.address, caller, refund):
                logger.warning(f"Refund of {refund} to {short_address(caller)} rejected")
                raise TransferFailed(caller, refund)

            scope.emit(Withdrawn(contract=self.address, bidder=caller, amount=refund))

        logger.info(f"Withdrawal from {short_address(self.address)}: "
                    f"{short_address(caller)} received {refund}")

    @handler("claim_prize")
    def claim_prize(self, caller: bytes) -> str:
        """
        Return the prize descriptor to the winner.

        Read-only: no state change, no event.

        Raises:
            AccessDenied: Caller is not the highest bidder, or the auction
                has not ended
        """
        self._require_caller(caller)

        if caller != self.store.highest_bidder or not self.store.is_auction_ended:
            raise AccessDenied("Only the winner can claim the prize after the auction ends")

        return self.store.prize

    # =========================================================================
    # Internals
    # =========================================================================

    def _require_caller(self, caller: bytes) -> None:
        valid, error = validate_address(caller, "caller")
        if not valid:
            raise AccessDenied(error)

    @contextmanager
    def _transaction(self, name: str, *accounts: bytes) -> Iterator[AtomicScope]:
        """
        Guarded, all-or-nothing body of a mutating handler.

        Persists the store, the balances of `accounts` and the contract, and
        the buffered events as the last step of the scope; publishes the
        events once the scope has committed.
        """
        with self._guard.hold(name):
            with atomic(self.store, self.treasury) as scope:
                yield scope
                self._persist(scope, accounts)

        for event in scope.events:
            self.event_log.publish(event)

    def _persist(self, scope: AtomicScope, accounts) -> None:
        if not self.storage_manager:
            return

        touched = set(accounts) | {self.address}
        balances = [(a, self.treasury.balance_of(a)) for a in sorted(touched)]
        self.storage_manager.persist_commit(self.store, balances, scope.events)

    # =========================================================================
    # Utility
    # =========================================================================

    def events(self, event_type=None):
        """Published events emitted by this auction."""
        return self.event_log.filter(event_type, contract=self.address)

    def stats(self) -> dict:
        """Get auction statistics."""
        return {
            "address": self.address.hex(),
            "owner": self.owner.hex(),
            "prize": self.prize,
            "end_time": self.end_time,
            "time_remaining": self.time_remaining(),
            "ended": self.ended,
            "highest_bid": self.highest_bid,
            "highest_bidder": self.highest_bidder.hex(),
            "winner": self.winner.hex(),
            "bidders": sum(1 for v in self.store.bids.values() if v > 0),
            "custody": self.treasury.balance_of(self.address),
        }

    def __repr__(self) -> str:
        return (f"EnglishAuction(address={short_address(self.address)}, "
                f"highest_bid={self.highest_bid}, ended={self.ended})")


__all__ = [
    "EnglishAuction",
    "handler",
]
