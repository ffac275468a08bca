"""
Auction errors.

Every error aborts the handler that raised it; the auction rolls back all
tentative state changes, moves no funds and emits no event for that call.
"""


class AuctionError(Exception):
    """Base class for failures that abort a handler call."""

    def __init__(self, reason: str = ""):
        self.reason = reason
        super().__init__(reason or self.__class__.__name__)

    @property
    def name(self) -> str:
        return self.__class__.__name__


class AccessDenied(AuctionError):
    """Caller lacks the identity or role required for the transition."""
    pass


class AuctionStateInvalid(AuctionError):
    """The auction's lifecycle phase does not allow the operation."""
    pass


class InvalidBid(AuctionError):
    """Submitted value does not exceed the current highest bid."""

    def __init__(self, value, highest_bid: int):
        self.value = value
        self.highest_bid = highest_bid
        super().__init__(f"Bid {value} must exceed highest bid {highest_bid}")


class NoBids(AuctionError):
    """Caller has no withdrawable balance."""
    pass


class TransferFailed(AuctionError):
    """Outbound transfer was rejected by the recipient."""

    def __init__(self, recipient: bytes, amount: int):
        self.recipient = recipient
        self.amount = amount
        super().__init__(f"Transfer of {amount} to 0x{recipient.hex()} was rejected")


# ============ Host-level errors ============

class ReentrantCall(AuctionError):
    """A mutating handler was entered while another one is in flight."""

    def __init__(self, handler: str, active: str):
        self.handler = handler
        self.active = active
        super().__init__(f"{handler} called while {active} is in flight")


class InsufficientFunds(AuctionError):
    """Caller cannot cover the value attached to the call."""

    def __init__(self, address: bytes, available: int, required: int):
        self.address = address
        self.available = available
        self.required = required
        super().__init__(f"Insufficient balance: have {available}, need {required}")


__all__ = [
    "AuctionError",
    "AccessDenied",
    "AuctionStateInvalid",
    "InvalidBid",
    "NoBids",
    "TransferFailed",
    "ReentrantCall",
    "InsufficientFunds",
]
