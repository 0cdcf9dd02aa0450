"""
Validity windows for short-term (block height) and long-term (wall clock) orders.

A short-term order is live until the chain passes goodTilBlock = reference + ttl. The
reference height is fetched fresh for every order: a stale height silently shortens the
window and the venue rejects orders whose goodTilBlock is already behind the tip.
"""

from __future__ import annotations

import logging
from datetime import datetime

from orderflow.errors.errors import InvalidOrderParameters, StaleReference
from orderflow.ports.clock import Clock
from orderflow.ports.height_oracle import HeightOracle
from orderflow.types.aliases import BlockHeight, UnixSeconds
from orderflow.types.types import HeightReference

logger = logging.getLogger(__name__)


def compute_window(reference_height: BlockHeight, ttl_blocks: int) -> BlockHeight:
    """goodTilBlock = reference_height + ttl_blocks. ttl 0 is allowed (expires next block)."""
    if reference_height < 0:
        raise InvalidOrderParameters(
            "reference_height must be >= 0", field="reference_height", value=reference_height
        )
    if ttl_blocks < 0:
        raise InvalidOrderParameters(
            "ttl_blocks must be >= 0", field="ttl_blocks", value=ttl_blocks
        )
    return reference_height + ttl_blocks


def compute_time_window(now: datetime, ttl_seconds: int) -> UnixSeconds:
    """goodTilBlockTime = now + ttl_seconds, in whole unix seconds."""
    if ttl_seconds <= 0:
        raise InvalidOrderParameters(
            "ttl_seconds must be > 0", field="ttl_seconds", value=ttl_seconds
        )
    return int(now.timestamp()) + ttl_seconds


class ValidityWindowTracker:
    """Fetches reference heights and turns them into order validity bounds."""

    def __init__(
        self,
        oracle: HeightOracle,
        clock: Clock,
        max_reference_age_s: float = 6.0,
    ) -> None:
        self._oracle = oracle
        self._clock = clock
        self._max_reference_age_s = max_reference_age_s

    async def fetch_reference(self) -> HeightReference:
        """Query the oracle; never served from a cache."""
        height = await self._oracle.latest_height()
        reference = HeightReference(height=height, observed_at=self._clock.now())
        logger.debug(
            "reference_height_fetched",
            extra={"event": "reference_height_fetched", "height": height},
        )
        return reference

    def check_fresh(self, reference: HeightReference) -> None:
        age_s = (self._clock.now() - reference.observed_at).total_seconds()
        if age_s > self._max_reference_age_s:
            raise StaleReference(
                f"Reference height {reference.height} is {age_s:.1f}s old",
                height=reference.height,
                age_s=age_s,
                max_age_s=self._max_reference_age_s,
            )

    def good_til_block(self, reference: HeightReference, ttl_blocks: int) -> BlockHeight:
        self.check_fresh(reference)
        return compute_window(reference.height, ttl_blocks)

    async def next_good_til_block(self, ttl_blocks: int) -> BlockHeight:
        """Fetch a fresh reference and compute the window from it."""
        reference = await self.fetch_reference()
        return self.good_til_block(reference, ttl_blocks)

    def good_til_block_time(self, ttl_seconds: int) -> UnixSeconds:
        return compute_time_window(self._clock.now(), ttl_seconds)
