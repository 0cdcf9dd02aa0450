"""ExecutionEndpoint Port Interface.

Contract: Submit & cancel orders on the venue; idempotent per (subaccount, client_id).
Implementations report refusals either by returning an ack with accepted=False or by
raising EndpointRejected; transport deadlines surface as Timeout.
"""

from __future__ import annotations

from typing import Optional, Protocol, Sequence

from orderflow.types.types import (
    BatchCancelAck,
    CancelAck,
    CancelGroup,
    Order,
    SubmitAck,
    Subaccount,
)


class ExecutionEndpoint(Protocol):
    async def submit_order(self, order: Order) -> SubmitAck: ...

    async def cancel_order(
        self,
        order: Order,
        good_til_block: Optional[int],
        good_til_block_time: Optional[int],
    ) -> CancelAck: ...

    async def batch_cancel(
        self,
        subaccount: Subaccount,
        groups: Sequence[CancelGroup],
        good_til_block: int,
    ) -> BatchCancelAck: ...
