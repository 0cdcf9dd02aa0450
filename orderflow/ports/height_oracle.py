"""HeightOracle Port Interface.

Contract: Return the latest block height known to the venue. May lag the chain tip
by an endpoint-defined margin; callers must not cache the result across orders.
"""

from __future__ import annotations

from typing import Protocol


class HeightOracle(Protocol):
    async def latest_height(self) -> int: ...
