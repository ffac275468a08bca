"""
Guards - reentrancy lock and all-or-nothing scope for auction handlers.

ReentrancyGuard
---------------
A boolean busy flag. While one mutating handler holds it, any other mutating
handler on the same auction (entered from a payee hook) is rejected with
ReentrantCall. The flag is released when the holder returns or aborts.

AtomicScope
-----------
Captures the store before a handler mutates it, opens a treasury journal for
the funds the handler moves, and buffers the events it emits. On abort the
store is restored, the journal undone and the buffer discarded; on success
the journal is kept and the buffer is handed back for publishing. Calls on
other contracts made meanwhile keep their own outcome.
"""

from contextlib import contextmanager
from typing import Iterator, List, Optional

from gavel.core.errors import ReentrantCall
from gavel.core.events import AuctionEvent
from gavel.core.state.store import AuctionStore
from gavel.core.treasury import Treasury


class ReentrancyGuard:
    """Non-reentrant lock for one auction instance."""

    def __init__(self):
        self._active: Optional[str] = None

    @property
    def locked(self) -> bool:
        return self._active is not None

    @contextmanager
    def hold(self, handler: str) -> Iterator[None]:
        """
        Hold the lock for the duration of `handler`.

        Raises:
            ReentrantCall: If another handler already holds it
        """
        if self._active is not None:
            raise ReentrantCall(handler, self._active)

        self._active = handler
        try:
            yield
        finally:
            self._active = None


class AtomicScope:
    """
    Tentative changes of one handler call.

    Attributes:
        events: Events emitted so far, published only on commit
    """

    def __init__(self, store: AuctionStore, treasury: Treasury):
        self.store = store
        self.treasury = treasury
        self.events: List[AuctionEvent] = []
        self._store_checkpoint = store.snapshot()
        self._journal = treasury.begin()

    def emit(self, event: AuctionEvent) -> None:
        self.events.append(event)

    def commit(self) -> None:
        self.treasury.commit(self._journal)

    def rollback(self) -> None:
        self.store.restore(self._store_checkpoint)
        self.treasury.rollback(self._journal)
        self.events.clear()


@contextmanager
def atomic(store: AuctionStore, treasury: Treasury) -> Iterator[AtomicScope]:
    """
    Run a handler body all-or-nothing.

    Any exception restores the store, undoes the funds this call moved, drops
    buffered events and propagates unchanged.
    """
    scope = AtomicScope(store, treasury)
    try:
        yield scope
    except BaseException:
        scope.rollback()
        raise
    else:
        scope.commit()
