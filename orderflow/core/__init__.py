"""
Order submission and transfer core.

Components:
- ClientIdAllocator / SubaccountAllocators: per-subaccount uint32 client ids
- ValidityWindowTracker: goodTilBlock / goodTilBlockTime from fresh references
- OrderLifecycleManager: placement, cancellation, batch cancellation, reconciliation
- TransferLedger / TransferService: quantum conversion and transfer requests

Usage:
    from orderflow.core import OrderLifecycleManager, ValidityWindowTracker

    tracker = ValidityWindowTracker(oracle, clock)
    manager = OrderLifecycleManager(endpoint, tracker, clock)
    order = await manager.place_short_term(sub, "ETH-USD", Side.BUY, price, size)
"""

from orderflow.core.allocator import ClientIdAllocator, SubaccountAllocators
from orderflow.core.lifecycle import OrderLifecycleManager
from orderflow.core.transfers import TransferLedger, TransferService, to_quantums
from orderflow.core.validity import ValidityWindowTracker, compute_window

__all__ = [
    # Allocation
    "ClientIdAllocator",
    "SubaccountAllocators",
    # Windows
    "ValidityWindowTracker",
    "compute_window",
    # Lifecycle
    "OrderLifecycleManager",
    # Transfers
    "TransferLedger",
    "TransferService",
    "to_quantums",
]
