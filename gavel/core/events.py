"""
Events - observable notifications emitted by auction handlers.

An event is published only when the handler that emitted it commits.
Handlers emit into a pending buffer; the atomic scope flushes the buffer
on success and drops it on failure.
"""

from dataclasses import dataclass, asdict
from typing import Callable, Dict, List, Optional, Type

from gavel.crypto import bytes_to_hex, hex_to_bytes
from gavel.utils.logger import get_logger

logger = get_logger("events")


# =============================================================================
# Event Types
# =============================================================================


@dataclass(frozen=True)
class AuctionEvent:
    """Base for all auction notifications."""
    contract: bytes

    @property
    def name(self) -> str:
        return self.__class__.__name__

    def to_dict(self) -> dict:
        """JSON-compatible form (addresses hex, amounts as strings)."""
        data = {}
        for key, value in asdict(self).items():
            if isinstance(value, bytes):
                data[key] = bytes_to_hex(value)
            elif isinstance(value, int):
                data[key] = str(value)
            else:
                data[key] = value
        return data


@dataclass(frozen=True)
class BidPlaced(AuctionEvent):
    """A bid was accepted."""
    bidder: bytes
    amount: int


@dataclass(frozen=True)
class AuctionEnded(AuctionEvent):
    """The owner closed the auction."""
    winner: bytes
    amount: int


@dataclass(frozen=True)
class Withdrawn(AuctionEvent):
    """A losing bidder recovered their funds."""
    bidder: bytes
    amount: int


EVENT_TYPES: Dict[str, Type[AuctionEvent]] = {
    cls.__name__: cls for cls in (BidPlaced, AuctionEnded, Withdrawn)
}

_ADDRESS_FIELDS = ("contract", "bidder", "winner")


def event_from_dict(name: str, data: dict) -> AuctionEvent:
    """Rebuild an event from its `to_dict()` form."""
    cls = EVENT_TYPES.get(name)
    if cls is None:
        raise ValueError(f"Unknown event type: {name}")

    kwargs = {}
    for key, value in data.items():
        if key in _ADDRESS_FIELDS:
            kwargs[key] = hex_to_bytes(value)
        else:
            kwargs[key] = int(value)
    return cls(**kwargs)


# =============================================================================
# Event Log
# =============================================================================


Subscriber = Callable[[AuctionEvent], None]


class EventLog:
    """
    Ordered record of published events.

    Subscribers are called synchronously, in subscription order, for every
    published event.
    """

    def __init__(self):
        self.events: List[AuctionEvent] = []
        self._subscribers: List[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> None:
        """Register a callback for every published event."""
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def publish(self, event: AuctionEvent) -> None:
        """
        Append an event and notify subscribers.

        The event is already committed when it is published, so a failing
        subscriber is logged and skipped; the remaining subscribers still run.
        """
        self.events.append(event)
        logger.debug(f"{event.name} published by {bytes_to_hex(event.contract)[:10]}...")

        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception as e:
                logger.warning(f"Subscriber failed on {event.name}: {type(e).__name__}: {e}")

    def filter(
        self,
        event_type: Optional[Type[AuctionEvent]] = None,
        contract: Optional[bytes] = None,
    ) -> List[AuctionEvent]:
        """Events matching a type and/or emitting contract."""
        return [
            e for e in self.events
            if (event_type is None or isinstance(e, event_type))
            and (contract is None or e.contract == contract)
        ]

    def __len__(self) -> int:
        return len(self.events)


__all__ = [
    "AuctionEvent",
    "BidPlaced",
    "AuctionEnded",
    "Withdrawn",
    "EVENT_TYPES",
    "event_from_dict",
    "EventLog",
]
