"""
Client order id allocation.

The venue identifies an order by (subaccount, client_id, flags), with client_id a uint32
chosen by the caller. Ids are drawn at random so that independent processes trading the
same subaccount rarely collide; within this process an id is held until its order is
terminal and never handed out twice while held.
"""

from __future__ import annotations

import logging
import random
import threading
from typing import Optional

from orderflow.errors.errors import AllocatorExhausted
from orderflow.types.aliases import ClientId
from orderflow.types.types import MAX_CLIENT_ID, Subaccount

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 16


class ClientIdAllocator:
    """
    Allocates client ids for a single subaccount.

    allocate() never blocks beyond a short critical section; on repeated collisions it
    gives up after `max_attempts` draws with AllocatorExhausted.
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        max_id: ClientId = MAX_CLIENT_ID,
    ) -> None:
        if max_attempts <= 0:
            raise ValueError("max_attempts must be positive")
        if not (0 <= max_id <= MAX_CLIENT_ID):
            raise ValueError("max_id must be within the uint32 range")
        self._rng = rng or random.Random()
        self._max_attempts = max_attempts
        self._max_id = max_id
        self._held: set[ClientId] = set()
        self._lock = threading.Lock()

    @property
    def in_flight(self) -> frozenset[ClientId]:
        with self._lock:
            return frozenset(self._held)

    def is_held(self, client_id: ClientId) -> bool:
        with self._lock:
            return client_id in self._held

    def allocate(self) -> ClientId:
        """Draw an id not currently held and hold it."""
        with self._lock:
            for _ in range(self._max_attempts):
                candidate = self._rng.randint(0, self._max_id)
                if candidate not in self._held:
                    self._held.add(candidate)
                    return candidate
            in_flight = len(self._held)

        logger.warning(
            f"Client id allocation exhausted after {self._max_attempts} attempts "
            f"({in_flight} ids in flight)"
        )
        raise AllocatorExhausted(
            "No free client id found",
            attempts=self._max_attempts,
            in_flight=in_flight,
        )

    def hold(self, client_id: ClientId) -> bool:
        """
        Mark an externally known id (e.g. an open order seen on the indexer) as held.
        Returns False if it was already held.
        """
        if not (0 <= client_id <= MAX_CLIENT_ID):
            raise ValueError(f"client_id {client_id} outside the uint32 range")
        with self._lock:
            if client_id in self._held:
                return False
            self._held.add(client_id)
            return True

    def release(self, client_id: ClientId) -> None:
        """Free an id. Only call once the order that held it is terminal."""
        with self._lock:
            self._held.discard(client_id)


class SubaccountAllocators:
    """One ClientIdAllocator per subaccount; uniqueness is scoped per subaccount."""

    def __init__(
        self,
        seed: Optional[int] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        max_id: ClientId = MAX_CLIENT_ID,
    ) -> None:
        self._seed = seed
        self._max_attempts = max_attempts
        self._max_id = max_id
        self._allocators: dict[Subaccount, ClientIdAllocator] = {}
        self._lock = threading.Lock()

    def for_subaccount(self, subaccount: Subaccount) -> ClientIdAllocator:
        with self._lock:
            allocator = self._allocators.get(subaccount)
            if allocator is None:
                allocator = ClientIdAllocator(
                    rng=self._rng_for(subaccount),
                    max_attempts=self._max_attempts,
                    max_id=self._max_id,
                )
                self._allocators[subaccount] = allocator
            return allocator

    def _rng_for(self, subaccount: Subaccount) -> random.Random:
        if self._seed is None:
            return random.Random()
        # str seeds hash deterministically, so every subaccount gets its own stable stream
        return random.Random(f"{self._seed}:{subaccount.key}")
