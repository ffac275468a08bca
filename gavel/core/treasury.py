"""
Treasury - native value custody for Gavel.

Holds the balance of every account, including the custody accounts of
deployed auctions. Two movements exist:

1. **Collect**: value attached to a call moves from the caller into a
   contract's custody before the handler runs its effects.
2. **Send**: a contract pays an account out of custody. If the recipient
   registered a payee hook, the hook runs after the balances move and may
   reject the payment; the treasury then reverses that debit and credit.

The payee hook is the only point where control leaves an auction in the
middle of a handler, so it is where reentrant calls originate. A hook may
call other contracts that share this treasury, and those calls can commit
while the outer call later aborts. Rollback is therefore per call: every
movement is recorded in the journal of the call that made it, and aborting
a call undoes its own journal and nothing else.

While a payment is in flight (from the credit until the call that made it
closes) the credited amount is held: the recipient cannot spend it, so
undoing the credit can never overdraw the account.
"""

import threading
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple, TYPE_CHECKING

from gavel.core.errors import InsufficientFunds
from gavel.crypto import bytes_to_hex
from gavel.utils.logger import get_logger

if TYPE_CHECKING:
    from gavel.core.storage import StorageManager

logger = get_logger("treasury")


# A hook receives (sender, amount); returning False rejects the payment.
PayeeHook = Callable[[bytes, int], Optional[bool]]


@dataclass(eq=False)
class Journal:
    """
    Balance movements of one call.

    Attributes:
        entries: (address, delta) in the order they were applied
        holds: (address, amount) of payments held until the call closes
    """
    entries: List[Tuple[bytes, int]] = field(default_factory=list)
    holds: List[Tuple[bytes, int]] = field(default_factory=list)

    @property
    def touched(self) -> Set[bytes]:
        return {address for address, _ in self.entries}


class Treasury:
    """
    Account balances plus payee hooks.

    Attributes:
        balances: address -> balance
        storage_manager: Optional persistence for balances
    """

    def __init__(self, storage_manager: Optional["StorageManager"] = None):
        self.balances: Dict[bytes, int] = defaultdict(int)
        self._held: Dict[bytes, int] = defaultdict(int)
        self._payees: Dict[bytes, PayeeHook] = {}
        self._local = threading.local()
        self.storage_manager = storage_manager

        if storage_manager:
            self._load_from_storage()

    # =========================================================================
    # Balances
    # =========================================================================

    def balance_of(self, address: bytes) -> int:
        """Current balance of an account, including held payments."""
        return self.balances.get(address, 0)

    def available(self, address: bytes) -> int:
        """Balance the account can spend right now."""
        return self.balance_of(address) - self._held.get(address, 0)

    def mint(self, address: bytes, amount: int) -> int:
        """Credit new value to an account (faucet / genesis funding)."""
        if amount < 0:
            raise ValueError(f"mint amount must be >= 0, got {amount}")

        self.balances[address] += amount
        self.flush([address])

        logger.debug(f"Minted {amount} to {bytes_to_hex(address)[:10]}...")
        return self.balances[address]

    def total_supply(self) -> int:
        return sum(self.balances.values())

    # =========================================================================
    # Payee Hooks
    # =========================================================================

    def register_payee(self, address: bytes, hook: PayeeHook) -> None:
        """Run `hook` whenever `address` receives a payment."""
        self._payees[address] = hook

    def unregister_payee(self, address: bytes) -> None:
        self._payees.pop(address, None)

    # =========================================================================
    # Movements
    # =========================================================================

    def collect(self, sender: bytes, contract: bytes, amount: int) -> None:
        """
        Move value attached to a call into a contract's custody.

        Raises:
            InsufficientFunds: If the sender cannot cover `amount`
        """
        available = self.available(sender)
        if amount > available:
            raise InsufficientFunds(sender, available, amount)

        self._move(sender, contract, amount)

    def send(self, sender: bytes, recipient: bytes, amount: int) -> bool:
        """
        Pay `amount` from `sender` to `recipient`.

        Balances move first, then the recipient's hook runs. A hook that
        returns False or raises rejects the payment, and exactly this debit
        and credit are reversed. Movements the hook made through other
        calls keep their own outcome.

        Returns:
            True if the payment went through
        """
        if amount > self.available(sender):
            logger.warning(f"Send of {amount} from {bytes_to_hex(sender)[:10]}... exceeds custody")
            return False

        self._move(sender, recipient, amount)

        hook = self._payees.get(recipient)
        if hook is None:
            return True

        self._held[recipient] += amount
        try:
            accepted = hook(sender, amount)
        except Exception as e:
            logger.warning(f"Payee {bytes_to_hex(recipient)[:10]}... raised {type(e).__name__}: {e}")
            accepted = False
        finally:
            self._release(recipient, amount)

        if accepted is False:
            self._move(recipient, sender, amount)
            return False

        journal = self._current()
        if journal is not None:
            self._held[recipient] += amount
            journal.holds.append((recipient, amount))

        return True

    def _move(self, source: bytes, target: bytes, amount: int) -> None:
        self.balances[source] -= amount
        self.balances[target] += amount

        journal = self._current()
        if journal is not None:
            journal.entries.append((source, -amount))
            journal.entries.append((target, amount))

    def _release(self, address: bytes, amount: int) -> None:
        self._held[address] -= amount
        if not self._held[address]:
            del self._held[address]

    # =========================================================================
    # Journals
    # =========================================================================

    def _stack(self) -> List[Journal]:
        if not hasattr(self._local, "journals"):
            self._local.journals = []
        return self._local.journals

    def _current(self) -> Optional[Journal]:
        stack = self._stack()
        return stack[-1] if stack else None

    def begin(self) -> Journal:
        """Open a journal for the movements of one call on this thread."""
        journal = Journal()
        self._stack().append(journal)
        return journal

    def commit(self, journal: Journal) -> None:
        """Keep the journal's movements and release its held payments."""
        self._close(journal)

    def rollback(self, journal: Journal) -> None:
        """
        Undo the journal's movements, newest first.

        Movements recorded in other journals (including calls that ran and
        committed while this one was open) are left in place. The touched
        balances are written back to storage.
        """
        self._close(journal)

        for address, delta in reversed(journal.entries):
            self.balances[address] -= delta

        self.flush(journal.touched)
        journal.entries.clear()

    def _close(self, journal: Journal) -> None:
        stack = self._stack()
        if journal in stack:
            stack.remove(journal)

        for address, amount in journal.holds:
            self._release(address, amount)
        journal.holds.clear()

    # =========================================================================
    # Persistence
    # =========================================================================

    def flush(self, addresses: Iterable[bytes]) -> None:
        """Persist the balances of the given accounts."""
        if not self.storage_manager:
            return

        for address in set(addresses):
            self.storage_manager.persist_balance(address, self.balance_of(address))

    def _load_from_storage(self) -> None:
        """Load balances from storage manager."""
        for address, balance in self.storage_manager.load_balances():
            self.balances[address] = balance

        logger.debug(f"Loaded {len(self.balances)} account balances")

    def __repr__(self) -> str:
        return f"Treasury(accounts={len(self.balances)}, supply={self.total_supply()})"
