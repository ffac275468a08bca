"""
Gavel

A single-asset, time-boxed English auction:
- Strictly increasing open bids until a deadline
- Owner-triggered close that records the winner
- Refund withdrawals for losing bidders, guarded against reentrancy
- Prize claim for the winner
"""

__version__ = "0.1.0"
