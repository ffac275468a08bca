"""Auction state store"""
from gavel.core.state.store import AuctionParams, AuctionStore, StoreSnapshot

__all__ = [
    "AuctionParams",
    "AuctionStore",
    "StoreSnapshot",
]
