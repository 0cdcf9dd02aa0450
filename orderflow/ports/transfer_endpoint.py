"""TransferEndpoint Port Interface.

Contract: Broadcast a deposit, withdrawal or subaccount transfer; returns the receipt.
"""

from __future__ import annotations

from typing import Protocol

from orderflow.types.types import TransferReceipt, TransferRequest


class TransferEndpoint(Protocol):
    async def submit_transfer(self, request: TransferRequest) -> TransferReceipt: ...
