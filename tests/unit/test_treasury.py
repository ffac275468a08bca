"""
Unit tests for value custody.
"""

import pytest

from gavel.core.errors import InsufficientFunds
from gavel.core.treasury import Treasury
from gavel.crypto import address_from_label


ALICE = address_from_label("alice")
BOB = address_from_label("bob")
CONTRACT = address_from_label("contract")


@pytest.fixture
def treasury():
    treasury = Treasury()
    treasury.mint(ALICE, 100)
    return treasury


class TestBalances:
    """Tests for minting and balance queries."""

    def test_unknown_account_is_zero(self, treasury):
        assert treasury.balance_of(BOB) == 0

    def test_mint_accumulates(self, treasury):
        assert treasury.mint(ALICE, 50) == 150
        assert treasury.total_supply() == 150

    def test_negative_mint_rejected(self, treasury):
        with pytest.raises(ValueError):
            treasury.mint(ALICE, -1)


class TestCollect:
    """Tests for attached-value intake."""

    def test_moves_value_into_custody(self, treasury):
        treasury.collect(ALICE, CONTRACT, 40)

        assert treasury.balance_of(ALICE) == 60
        assert treasury.balance_of(CONTRACT) == 40
        assert treasury.total_supply() == 100

    def test_overdraft_rejected(self, treasury):
        with pytest.raises(InsufficientFunds) as exc:
            treasury.collect(ALICE, CONTRACT, 101)

        assert exc.value.available == 100
        assert exc.value.required == 101
        assert treasury.balance_of(ALICE) == 100


class TestSend:
    """Tests for outbound payments and payee hooks."""

    def test_plain_send(self, treasury):
        assert treasury.send(ALICE, BOB, 30)
        assert treasury.balance_of(BOB) == 30
        assert treasury.balance_of(ALICE) == 70

    def test_send_beyond_balance_fails(self, treasury):
        assert not treasury.send(ALICE, BOB, 500)
        assert treasury.balance_of(ALICE) == 100

    def test_hook_sees_credited_balance(self, treasury):
        seen = []
        treasury.register_payee(BOB, lambda sender, amount: seen.append(
            (sender, amount, treasury.balance_of(BOB))
        ))

        assert treasury.send(ALICE, BOB, 30)
        assert seen == [(ALICE, 30, 30)]

    def test_hook_returning_none_accepts(self, treasury):
        treasury.register_payee(BOB, lambda sender, amount: None)
        assert treasury.send(ALICE, BOB, 30)

    @pytest.mark.parametrize("hook", [
        lambda sender, amount: False,
        lambda sender, amount: [][1],
    ])
    def test_rejecting_hook_restores_balances(self, treasury, hook):
        treasury.register_payee(BOB, hook)

        assert not treasury.send(ALICE, BOB, 30)
        assert treasury.balance_of(ALICE) == 100
        assert treasury.balance_of(BOB) == 0

    def test_rejection_reverses_only_this_payment(self, treasury):
        """Payments the hook made with its own funds stand."""
        treasury.mint(BOB, 10)

        def hook(sender, amount):
            assert treasury.send(BOB, CONTRACT, 10)
            return False

        treasury.register_payee(BOB, hook)

        assert not treasury.send(ALICE, BOB, 30)
        assert treasury.balance_of(ALICE) == 100
        assert treasury.balance_of(BOB) == 0
        assert treasury.balance_of(CONTRACT) == 10

    def test_hook_cannot_spend_incoming_payment(self, treasury):
        spent = []

        def hook(sender, amount):
            spent.append(treasury.send(BOB, CONTRACT, 30))
            with pytest.raises(InsufficientFunds):
                treasury.collect(BOB, CONTRACT, 1)

        treasury.register_payee(BOB, hook)

        assert treasury.send(ALICE, BOB, 30)
        assert spent == [False]
        assert treasury.available(BOB) == 30

    def test_unregister_payee(self, treasury):
        treasury.register_payee(BOB, lambda sender, amount: False)
        treasury.unregister_payee(BOB)

        assert treasury.send(ALICE, BOB, 30)


class TestJournal:
    """Tests for per-call rollback."""

    def test_rollback_undoes_own_movements(self, treasury):
        journal = treasury.begin()
        treasury.collect(ALICE, CONTRACT, 40)
        treasury.send(CONTRACT, BOB, 15)

        treasury.rollback(journal)

        assert treasury.balance_of(ALICE) == 100
        assert treasury.balance_of(BOB) == 0
        assert treasury.balance_of(CONTRACT) == 0

    def test_committed_inner_journal_survives_outer_rollback(self, treasury):
        outer = treasury.begin()
        treasury.collect(ALICE, CONTRACT, 10)

        inner = treasury.begin()
        treasury.send(ALICE, BOB, 20)
        treasury.commit(inner)

        treasury.rollback(outer)

        assert treasury.balance_of(ALICE) == 80
        assert treasury.balance_of(BOB) == 20
        assert treasury.balance_of(CONTRACT) == 0

    def test_payment_held_until_journal_closes(self, treasury):
        treasury.register_payee(BOB, lambda sender, amount: True)
        journal = treasury.begin()

        assert treasury.send(ALICE, BOB, 30)
        assert treasury.available(BOB) == 0

        treasury.commit(journal)
        assert treasury.available(BOB) == 30

    def test_rollback_after_accepted_hook(self, treasury):
        treasury.register_payee(BOB, lambda sender, amount: True)
        journal = treasury.begin()
        treasury.send(ALICE, BOB, 30)

        treasury.rollback(journal)

        assert treasury.balance_of(BOB) == 0
        assert treasury.available(BOB) == 0
        assert treasury.balance_of(ALICE) == 100
