"""
Reentrancy and atomicity tests.

A payee hook runs while withdraw() is paying out, which is the only place
where control leaves the auction mid-handler. These tests play the part of a
malicious or failing payee.
"""

import pytest

from gavel.core.auction import EnglishAuction, ReentrancyGuard, atomic
from gavel.core.clock import ManualClock
from gavel.core.errors import (
    AccessDenied,
    AuctionError,
    AuctionStateInvalid,
    InsufficientFunds,
    NoBids,
    ReentrantCall,
    TransferFailed,
)
from gavel.core.events import BidPlaced, Withdrawn
from gavel.core.treasury import Treasury
from gavel.crypto import address_from_label


# =============================================================================
# Fixtures
# =============================================================================

DURATION = 100

OWNER = address_from_label("owner")
ATTACKER = address_from_label("attacker")
HONEST = address_from_label("honest")
WINNER = address_from_label("winner")


@pytest.fixture
def setup():
    """Ended auction: attacker bid 10, honest bid 15, winner bid 20."""
    clock = ManualClock(start=0)
    treasury = Treasury()
    for account in (ATTACKER, HONEST, WINNER):
        treasury.mint(account, 100)

    auction = EnglishAuction(OWNER, "Prize", DURATION, clock=clock, treasury=treasury)
    auction.place_bid(ATTACKER, 10)
    auction.place_bid(HONEST, 15)
    auction.place_bid(WINNER, 20)
    clock.advance(DURATION + 1)
    auction.end_auction(OWNER)

    return auction, treasury


# =============================================================================
# Guard Tests
# =============================================================================


class TestReentrancyGuard:
    """Tests for the busy flag itself."""

    def test_released_after_return(self):
        guard = ReentrancyGuard()

        with guard.hold("withdraw"):
            assert guard.locked

        assert not guard.locked

    def test_released_after_abort(self):
        guard = ReentrancyGuard()

        with pytest.raises(NoBids):
            with guard.hold("withdraw"):
                raise NoBids()

        assert not guard.locked

    def test_nested_hold_rejected(self):
        guard = ReentrancyGuard()

        with guard.hold("withdraw"):
            with pytest.raises(ReentrantCall) as exc:
                with guard.hold("place_bid"):
                    pass

        assert exc.value.handler == "place_bid"
        assert exc.value.active == "withdraw"


# =============================================================================
# Malicious Payee Tests
# =============================================================================


class TestMaliciousPayee:
    """Payee hooks that call back into the auction."""

    def test_nested_withdraw_sees_zero_balance(self, setup):
        """A nested withdraw observes the zeroed balance and fails NoBids."""
        auction, treasury = setup
        observed = []

        def reenter(sender, amount):
            observed.append(auction.bids(ATTACKER))
            try:
                auction.withdraw(ATTACKER)
            except AuctionError as e:
                observed.append(e)
            return True

        treasury.register_payee(ATTACKER, reenter)
        auction.withdraw(ATTACKER)

        assert observed[0] == 0
        assert isinstance(observed[1], NoBids)

        # Paid exactly once
        assert treasury.balance_of(ATTACKER) == 100
        assert auction.bids(ATTACKER) == 0
        assert treasury.balance_of(auction.address) == 35
        assert len(auction.events(Withdrawn)) == 1

    def test_propagated_nested_failure_rolls_back(self, setup):
        """A payee that lets the nested failure escape rejects its own refund."""
        auction, treasury = setup

        def reenter(sender, amount):
            auction.withdraw(ATTACKER)
            return True

        treasury.register_payee(ATTACKER, reenter)

        with pytest.raises(TransferFailed):
            auction.withdraw(ATTACKER)

        assert auction.bids(ATTACKER) == 10
        assert treasury.balance_of(ATTACKER) == 90
        assert treasury.balance_of(auction.address) == 45
        assert auction.events(Withdrawn) == []

        # The guard was released; an honest retry works
        treasury.unregister_payee(ATTACKER)
        auction.withdraw(ATTACKER)
        assert treasury.balance_of(ATTACKER) == 100

    def test_nested_withdraw_for_other_bidder_blocked(self, setup):
        """Another bidder's withdrawal cannot run inside a payout."""
        auction, treasury = setup
        observed = []

        def reenter(sender, amount):
            try:
                auction.withdraw(HONEST)
            except AuctionError as e:
                observed.append(e)
            return True

        treasury.register_payee(ATTACKER, reenter)
        auction.withdraw(ATTACKER)

        assert isinstance(observed[0], ReentrantCall)
        assert auction.bids(HONEST) == 15
        assert treasury.balance_of(HONEST) == 85

        # Outside the payout the honest bidder is unaffected
        auction.withdraw(HONEST)
        assert treasury.balance_of(HONEST) == 100

    def test_nested_mutating_calls_rejected(self, setup):
        """Bids and end calls from inside a payout fail without effect."""
        auction, treasury = setup
        observed = []

        def reenter(sender, amount):
            for call in (
                lambda: auction.place_bid(ATTACKER, 50),
                lambda: auction.end_auction(OWNER),
                lambda: auction.end_auction(ATTACKER),
            ):
                try:
                    call()
                except AuctionError as e:
                    observed.append(type(e))
            return True

        treasury.register_payee(ATTACKER, reenter)
        before = auction.store.snapshot()
        auction.withdraw(ATTACKER)

        assert observed == [AuctionStateInvalid, AuctionStateInvalid, AccessDenied]
        assert auction.winner == before.winner
        assert auction.highest_bid == before.highest_bid

    def test_claim_prize_allowed_inside_payout(self, setup):
        """claim_prize is read-only and not guarded."""
        auction, treasury = setup
        claimed = []

        def hook(sender, amount):
            claimed.append(auction.claim_prize(WINNER))
            return True

        treasury.register_payee(ATTACKER, hook)
        auction.withdraw(ATTACKER)

        assert claimed == ["Prize"]


# =============================================================================
# Failed Transfer Tests
# =============================================================================


class TestTransferFailure:
    """A payee that refuses payment."""

    @pytest.mark.parametrize("hook", [
        lambda sender, amount: False,
        lambda sender, amount: 1 / 0,
    ])
    def test_rejected_payment_restores_balance(self, setup, hook):
        auction, treasury = setup
        treasury.register_payee(ATTACKER, hook)

        with pytest.raises(TransferFailed) as exc:
            auction.withdraw(ATTACKER)

        assert exc.value.amount == 10
        assert auction.bids(ATTACKER) == 10
        assert treasury.balance_of(ATTACKER) == 90
        assert auction.events(Withdrawn) == []

    def test_subscribers_not_notified_on_failure(self, setup):
        auction, treasury = setup
        seen = []
        auction.event_log.subscribe(seen.append)
        treasury.register_payee(ATTACKER, lambda sender, amount: False)

        with pytest.raises(TransferFailed):
            auction.withdraw(ATTACKER)

        assert seen == []


# =============================================================================
# Atomic Scope Tests
# =============================================================================


class TestAtomicScope:
    """Tests for the all-or-nothing scope."""

    def test_rollback_on_error(self, setup):
        auction, treasury = setup
        before_store = auction.store.snapshot()
        before_balances = dict(treasury.balances)

        with pytest.raises(RuntimeError):
            with atomic(auction.store, treasury) as scope:
                auction.store.bids[HONEST] = 0
                treasury.send(auction.address, HONEST, 15)
                scope.emit(Withdrawn(contract=auction.address, bidder=HONEST, amount=15))
                raise RuntimeError("abort")

        assert auction.store.snapshot() == before_store
        assert dict(treasury.balances) == before_balances
        assert scope.events == []

    def test_commit_keeps_changes(self, setup):
        auction, treasury = setup

        with atomic(auction.store, treasury) as scope:
            auction.store.bids[HONEST] = 0
            scope.emit(Withdrawn(contract=auction.address, bidder=HONEST, amount=15))

        assert auction.bids(HONEST) == 0
        assert len(scope.events) == 1


# =============================================================================
# Shared Treasury Tests
# =============================================================================


class TestSharedTreasury:
    """A payee hook that calls a second auction on the same treasury."""

    @pytest.fixture
    def second(self, setup):
        auction, treasury = setup
        return EnglishAuction(OWNER, "Second prize", DURATION, clock=auction.clock,
                              treasury=treasury, nonce=1)

    def test_committed_bid_survives_rejected_refund(self, setup, second):
        """The bid on the other auction stays funded when the refund bounces."""
        auction, treasury = setup

        def bid_then_reject(sender, amount):
            second.place_bid(ATTACKER, 50)
            return False

        treasury.register_payee(ATTACKER, bid_then_reject)

        with pytest.raises(TransferFailed):
            auction.withdraw(ATTACKER)

        assert second.highest_bid == 50
        assert second.bids(ATTACKER) == 50
        assert treasury.balance_of(second.address) == second.store.custody_total() == 50
        assert len(second.events(BidPlaced)) == 1

        assert auction.bids(ATTACKER) == 10
        assert treasury.balance_of(auction.address) == auction.store.custody_total() == 45
        assert treasury.balance_of(ATTACKER) == 40
        assert treasury.total_supply() == 300

    def test_refund_cannot_fund_nested_bid(self, setup, second):
        """The refund in flight is held until the withdrawal completes."""
        auction, treasury = setup
        observed = []

        def overbid(sender, amount):
            try:
                second.place_bid(ATTACKER, 95)
            except AuctionError as e:
                observed.append(type(e))

        treasury.register_payee(ATTACKER, overbid)
        auction.withdraw(ATTACKER)

        assert observed == [InsufficientFunds]
        assert second.highest_bid == 0
        assert treasury.balance_of(ATTACKER) == 100
        assert treasury.available(ATTACKER) == 100

    def test_accepted_refund_and_nested_bid_both_stand(self, setup, second):
        auction, treasury = setup
        treasury.register_payee(ATTACKER, lambda sender, amount: second.place_bid(ATTACKER, 50))

        auction.withdraw(ATTACKER)

        assert treasury.balance_of(ATTACKER) == 50
        assert treasury.balance_of(auction.address) == auction.store.custody_total() == 35
        assert treasury.balance_of(second.address) == second.store.custody_total() == 50
