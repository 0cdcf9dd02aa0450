"""
Order Lifecycle Manager.

Sits between a caller and the execution endpoint. Allocates client ids, stamps validity
windows, drives the per-order state machine and reconciles it against what the endpoint,
the chain and the indexer later report.

State Machine:
    PENDING --submit--> SUBMITTED --ack--> CONFIRMED --fill--> FILLED
                            |                 |
                     reject/timeout      cancelRequest / height > goodTilBlock
                            v                 v
                         FAILED      CANCEL_REQUESTED --ack--> CANCELLED
                                              |
                                           reject --> CONFIRMED

Nothing here retries. A retried submission risks a duplicate fill, so retry policy
belongs to the caller, keyed by the order's client_id.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional, Sequence

from orderflow.config.configs import OrderConfig
from orderflow.core.allocator import SubaccountAllocators
from orderflow.core.validity import ValidityWindowTracker
from orderflow.errors.errors import (
    EndpointRejected,
    InvalidCancelWindow,
    InvalidOrderParameters,
    InvalidTransition,
    Timeout,
)
from orderflow.ports.clock import Clock
from orderflow.ports.execution_endpoint import ExecutionEndpoint
from orderflow.ports.telemetry import Telemetry
from orderflow.types.aliases import ClientId, MarketId
from orderflow.types.types import (
    ALLOWED_TRANSITIONS,
    BatchCancelAck,
    CancelAck,
    CancelGroup,
    LongTermOrder,
    Order,
    OrderFlags,
    OrderState,
    ShortTermOrder,
    Side,
    Subaccount,
    TERMINAL_STATES,
    validate_order_params,
)

logger = logging.getLogger(__name__)

# Indexer order status -> the state it implies for a tracked order
INDEXER_STATUS_MAP: dict[str, OrderState] = {
    "OPEN": OrderState.CONFIRMED,
    "BEST_EFFORT_OPENED": OrderState.CONFIRMED,
    "UNTRIGGERED": OrderState.CONFIRMED,
    "FILLED": OrderState.FILLED,
    "CANCELED": OrderState.CANCELLED,
    "BEST_EFFORT_CANCELED": OrderState.CANCELLED,
}

# Indexer `orderFlags` field
INDEXER_ORDER_FLAGS: dict[str, OrderFlags] = {
    "0": OrderFlags.SHORT_TERM,
    "64": OrderFlags.LONG_TERM,
}

# Shortest legal path from each live state towards a reported outcome
_PATHS: dict[OrderState, dict[OrderState, tuple[OrderState, ...]]] = {
    OrderState.CONFIRMED: {
        OrderState.SUBMITTED: (OrderState.CONFIRMED,),
    },
    OrderState.FILLED: {
        OrderState.SUBMITTED: (OrderState.CONFIRMED, OrderState.FILLED),
        OrderState.CONFIRMED: (OrderState.FILLED,),
        OrderState.CANCEL_REQUESTED: (OrderState.FILLED,),
    },
    OrderState.CANCELLED: {
        OrderState.SUBMITTED: (
            OrderState.CONFIRMED,
            OrderState.CANCEL_REQUESTED,
            OrderState.CANCELLED,
        ),
        OrderState.CONFIRMED: (OrderState.CANCEL_REQUESTED, OrderState.CANCELLED),
        OrderState.CANCEL_REQUESTED: (OrderState.CANCELLED,),
    },
}


@dataclass(frozen=True)
class TransitionRecord:
    """One applied state change, as reported to telemetry."""

    client_id: ClientId
    market_id: MarketId
    subaccount: str
    flags: OrderFlags
    from_state: OrderState
    to_state: OrderState
    reason: Optional[str] = None


class OrderLifecycleManager:
    """
    Places, cancels and reconciles orders for any number of subaccounts.

    Usage:
        manager = OrderLifecycleManager(endpoint, tracker, clock)
        order = await manager.place_short_term(sub, "ETH-USD", Side.BUY, price, size)
        await manager.cancel(order)
        manager.reconcile(height=latest_height)
    """

    def __init__(
        self,
        endpoint: ExecutionEndpoint,
        tracker: ValidityWindowTracker,
        clock: Clock,
        cfg: Optional[OrderConfig] = None,
        allocators: Optional[SubaccountAllocators] = None,
        telemetry: Optional[Telemetry] = None,
        name: str = "orders",
    ) -> None:
        """
        Args:
            endpoint: Execution endpoint (submit / cancel / batch cancel)
            tracker: Validity window tracker backed by a height oracle
            clock: UTC clock for long-term windows and retention
            cfg: Order settings; defaults to OrderConfig()
            allocators: Client id allocators; built from cfg when omitted
            telemetry: Optional structured sink for transitions
            name: Name for logging purposes
        """
        self._endpoint = endpoint
        self._tracker = tracker
        self._clock = clock
        self._cfg = cfg or OrderConfig()
        self._allocators = allocators or SubaccountAllocators(
            seed=self._cfg.seed, max_attempts=self._cfg.max_allocation_attempts
        )
        self._telemetry = telemetry
        self._name = name

        # Latest order per (subaccount, client_id); older terminal holders are retired
        self._orders: dict[Subaccount, dict[ClientId, Order]] = {}
        self._retired: list[Order] = []
        # Ids the indexer reports resting on the venue without a live local order
        self._external_holds: dict[Subaccount, set[ClientId]] = {}

    # --- Queries ---

    @property
    def config(self) -> OrderConfig:
        return self._cfg

    def get(self, subaccount: Subaccount, client_id: ClientId) -> Optional[Order]:
        return self._orders.get(subaccount, {}).get(client_id)

    def open_orders(self, subaccount: Optional[Subaccount] = None) -> list[Order]:
        """Orders still in a live (non-terminal) state."""
        return [o for o in self._iter_tracked(subaccount) if o.is_live]

    def orders(self, subaccount: Optional[Subaccount] = None) -> list[Order]:
        return list(self._iter_tracked(subaccount))

    def external_holds(self, subaccount: Subaccount) -> frozenset[ClientId]:
        """Client ids held because the indexer shows them resting on the venue."""
        return frozenset(self._external_holds.get(subaccount, ()))

    # --- Placement ---

    async def place_short_term(
        self,
        subaccount: Subaccount,
        market_id: MarketId,
        side: Side,
        price: Decimal,
        size: Decimal,
        post_only: bool = False,
        reduce_only: bool = False,
        ttl_blocks: Optional[int] = None,
    ) -> ShortTermOrder:
        """
        Place an order valid until a fresh reference height + ttl_blocks.

        Raises:
            InvalidOrderParameters: before any allocation or network call
            StaleReference: if the fetched height is already too old to use
            AllocatorExhausted: if no client id is free
            EndpointRejected: the order is FAILED and its client id released
            Timeout: the order stays SUBMITTED until acknowledged or reconciled
        """
        validate_order_params(market_id, price, size)
        ttl = self._cfg.short_term_ttl_blocks if ttl_blocks is None else ttl_blocks
        if ttl < 0:
            raise InvalidOrderParameters(
                "ttl_blocks must be >= 0", field="ttl_blocks", value=ttl, market_id=market_id
            )

        reference = await self._tracker.fetch_reference()
        good_til_block = self._tracker.good_til_block(reference, ttl)

        # no await between allocation and registration
        allocator = self._allocators.for_subaccount(subaccount)
        client_id = allocator.allocate()
        try:
            order = ShortTermOrder(
                subaccount=subaccount,
                client_id=client_id,
                market_id=market_id,
                side=side,
                price=price,
                size=size,
                post_only=post_only,
                reduce_only=reduce_only,
                good_til_block=good_til_block,
                created_at=self._clock.now(),
            )
            self._register(order)
        except Exception:
            allocator.release(client_id)
            raise

        await self._submit(order)
        return order

    async def place_long_term(
        self,
        subaccount: Subaccount,
        market_id: MarketId,
        side: Side,
        price: Decimal,
        size: Decimal,
        post_only: bool = False,
        reduce_only: bool = False,
        ttl_seconds: Optional[int] = None,
    ) -> LongTermOrder:
        """Place an order valid until now + ttl_seconds (goodTilBlockTime)."""
        validate_order_params(market_id, price, size)
        ttl = self._cfg.long_term_ttl_s if ttl_seconds is None else ttl_seconds
        good_til_block_time = self._tracker.good_til_block_time(ttl)

        allocator = self._allocators.for_subaccount(subaccount)
        client_id = allocator.allocate()
        try:
            order = LongTermOrder(
                subaccount=subaccount,
                client_id=client_id,
                market_id=market_id,
                side=side,
                price=price,
                size=size,
                post_only=post_only,
                reduce_only=reduce_only,
                good_til_block_time=good_til_block_time,
                created_at=self._clock.now(),
            )
            self._register(order)
        except Exception:
            allocator.release(client_id)
            raise

        await self._submit(order)
        return order

    async def _submit(self, order: Order) -> None:
        self._apply(order, OrderState.SUBMITTED)
        try:
            ack = await self._endpoint.submit_order(order)
        except asyncio.CancelledError:
            # caller-side deadline; the venue may still accept the order
            self._mark_unacknowledged(order, "submission cancelled by caller")
            raise
        except Timeout:
            self._mark_unacknowledged(order, "submission timed out")
            raise
        except asyncio.TimeoutError as exc:
            self._mark_unacknowledged(order, "submission timed out")
            raise Timeout(
                "Order submission timed out",
                client_id=order.client_id,
                market_id=order.market_id,
                transition="SUBMITTED->CONFIRMED",
            ) from exc
        except EndpointRejected as exc:
            self._apply(order, OrderState.FAILED, reason=exc.reason)
            raise
        except Exception as exc:
            self._apply(order, OrderState.FAILED, reason=str(exc))
            raise EndpointRejected(
                "Order submission failed",
                reason=str(exc) or type(exc).__name__,
                client_id=order.client_id,
                market_id=order.market_id,
                transition="SUBMITTED->FAILED",
            ) from exc

        if not ack.accepted:
            reason = ack.reason or "rejected"
            self._apply(order, OrderState.FAILED, reason=reason)
            raise EndpointRejected(
                "Order rejected by endpoint",
                reason=reason,
                client_id=order.client_id,
                market_id=order.market_id,
                transition="SUBMITTED->FAILED",
            )

        order.tx_hash = ack.tx_hash
        self._apply(order, OrderState.CONFIRMED)

    # --- Cancellation ---

    async def cancel(
        self,
        order: Order,
        good_til_block: Optional[int] = None,
        good_til_block_time: Optional[int] = None,
    ) -> CancelAck:
        """
        Cancel a CONFIRMED order. The supplied window must match the order class:
        good_til_block for short-term, good_til_block_time for long-term. When omitted
        the window is derived from a fresh height (short-term) or the clock (long-term).

        Raises:
            InvalidCancelWindow: mismatched window, no network call made
            InvalidTransition: the order is not CONFIRMED, no network call made
            EndpointRejected: the order goes back to CONFIRMED
            Timeout: the order stays CANCEL_REQUESTED until resolved
        """
        self._check_cancel_window(order, good_til_block, good_til_block_time)
        self._require_tracked(order)
        if order.state is not OrderState.CONFIRMED:
            raise InvalidTransition(
                f"Only CONFIRMED orders can be cancelled (state={order.state.value})",
                current=order.state.value,
                target=OrderState.CANCEL_REQUESTED.value,
                client_id=order.client_id,
                market_id=order.market_id,
            )

        if isinstance(order, ShortTermOrder):
            if good_til_block is None:
                good_til_block = await self._tracker.next_good_til_block(
                    self._cfg.short_term_ttl_blocks
                )
        elif good_til_block_time is None:
            good_til_block_time = self._tracker.good_til_block_time(self._cfg.long_term_ttl_s)

        # the order may have expired or filled while the height was fetched
        if order.state is not OrderState.CONFIRMED:
            raise InvalidTransition(
                f"Order left CONFIRMED before the cancel was sent (state={order.state.value})",
                current=order.state.value,
                target=OrderState.CANCEL_REQUESTED.value,
                client_id=order.client_id,
                market_id=order.market_id,
            )

        self._apply(order, OrderState.CANCEL_REQUESTED)
        try:
            ack = await self._endpoint.cancel_order(order, good_til_block, good_til_block_time)
        except asyncio.CancelledError:
            logger.warning(
                f"[{self._name}] Cancel of {order.client_id} cancelled by caller; "
                f"awaiting reconciliation"
            )
            raise
        except Timeout:
            logger.warning(f"[{self._name}] Cancel of {order.client_id} timed out")
            raise
        except asyncio.TimeoutError as exc:
            logger.warning(f"[{self._name}] Cancel of {order.client_id} timed out")
            raise Timeout(
                "Order cancellation timed out",
                client_id=order.client_id,
                market_id=order.market_id,
                transition="CANCEL_REQUESTED->CANCELLED",
            ) from exc
        except EndpointRejected as exc:
            self._apply_if_live(order, OrderState.CONFIRMED, reason=exc.reason)
            raise
        except Exception as exc:
            self._apply_if_live(order, OrderState.CONFIRMED, reason=str(exc))
            raise EndpointRejected(
                "Order cancellation failed",
                reason=str(exc) or type(exc).__name__,
                client_id=order.client_id,
                market_id=order.market_id,
                transition="CANCEL_REQUESTED->CONFIRMED",
            ) from exc

        if not ack.accepted:
            reason = ack.reason or "rejected"
            self._apply_if_live(order, OrderState.CONFIRMED, reason=reason)
            raise EndpointRejected(
                "Cancel rejected by endpoint",
                reason=reason,
                client_id=order.client_id,
                market_id=order.market_id,
                transition="CANCEL_REQUESTED->CONFIRMED",
            )

        self._apply_if_live(order, OrderState.CANCELLED)
        return ack

    @staticmethod
    def _check_cancel_window(
        order: Order,
        good_til_block: Optional[int],
        good_til_block_time: Optional[int],
    ) -> None:
        if good_til_block is not None and good_til_block_time is not None:
            raise InvalidCancelWindow(
                "Supply either good_til_block or good_til_block_time, not both",
                flags=order.flags.value,
                client_id=order.client_id,
                market_id=order.market_id,
            )
        if order.flags is OrderFlags.SHORT_TERM and good_til_block_time is not None:
            raise InvalidCancelWindow(
                "Short-term orders are cancelled with good_til_block",
                flags=order.flags.value,
                client_id=order.client_id,
                market_id=order.market_id,
            )
        if order.flags is OrderFlags.LONG_TERM and good_til_block is not None:
            raise InvalidCancelWindow(
                "Long-term orders are cancelled with good_til_block_time",
                flags=order.flags.value,
                client_id=order.client_id,
                market_id=order.market_id,
            )
        for value in (good_til_block, good_til_block_time):
            if value is not None and value < 0:
                raise InvalidCancelWindow(
                    f"Cancel window must be >= 0 (got {value})",
                    flags=order.flags.value,
                    client_id=order.client_id,
                    market_id=order.market_id,
                )

    async def batch_cancel(
        self,
        subaccount: Subaccount,
        groups: Sequence[CancelGroup],
    ) -> BatchCancelAck:
        """
        Cancel CONFIRMED short-term orders grouped by market under one goodTilBlock.

        Local state only changes once the endpoint answers. With per-group outcomes only
        accepted groups become CANCELLED; an aggregate answer applies to every order.
        """
        groups = tuple(groups)
        if not groups:
            raise InvalidOrderParameters("batch_cancel requires at least one group")

        targets = self._resolve_batch(subaccount, groups)
        good_til_block = await self._tracker.next_good_til_block(self._cfg.short_term_ttl_blocks)

        try:
            ack = await self._endpoint.batch_cancel(subaccount, groups, good_til_block)
        except (Timeout, asyncio.CancelledError):
            logger.warning(f"[{self._name}] Batch cancel for {subaccount.key} unacknowledged")
            raise
        except asyncio.TimeoutError as exc:
            logger.warning(f"[{self._name}] Batch cancel for {subaccount.key} timed out")
            raise Timeout("Batch cancel timed out", details={"subaccount": subaccount.key}) from exc
        except EndpointRejected:
            raise
        except Exception as exc:
            raise EndpointRejected(
                "Batch cancel failed",
                reason=str(exc) or type(exc).__name__,
                details={"subaccount": subaccount.key},
            ) from exc

        if ack.group_outcomes is None:
            if not ack.accepted:
                reason = ack.reason or "rejected"
                logger.warning(f"[{self._name}] Batch cancel rejected: {reason}")
                raise EndpointRejected(
                    "Batch cancel rejected by endpoint",
                    reason=reason,
                    details={"subaccount": subaccount.key},
                )
            for order in targets.values():
                self._mark_cancelled(order)
            return ack

        for outcome in ack.group_outcomes:
            for client_id in outcome.client_ids:
                order = targets.get((outcome.market_id, client_id))
                if order is None:
                    logger.warning(
                        f"[{self._name}] Batch outcome for untracked order "
                        f"{outcome.market_id}/{client_id} ignored"
                    )
                    continue
                if outcome.accepted:
                    self._mark_cancelled(order)
                else:
                    logger.warning(
                        f"[{self._name}] Batch cancel of {outcome.market_id}/{client_id} "
                        f"rejected: {outcome.reason}"
                    )
        return ack

    def _resolve_batch(
        self, subaccount: Subaccount, groups: tuple[CancelGroup, ...]
    ) -> dict[tuple[MarketId, ClientId], ShortTermOrder]:
        targets: dict[tuple[MarketId, ClientId], ShortTermOrder] = {}
        seen: set[ClientId] = set()
        for group in groups:
            for client_id in group.client_ids:
                if client_id in seen:
                    raise InvalidOrderParameters(
                        "client id listed twice in batch cancel",
                        client_id=client_id,
                        market_id=group.market_id,
                    )
                seen.add(client_id)
                order = self.get(subaccount, client_id)
                if order is None or order.market_id != group.market_id:
                    raise InvalidOrderParameters(
                        "No tracked order for client id in this market",
                        client_id=client_id,
                        market_id=group.market_id,
                    )
                if not isinstance(order, ShortTermOrder):
                    raise InvalidCancelWindow(
                        "Batch cancel only applies to short-term orders",
                        flags=order.flags.value,
                        client_id=client_id,
                        market_id=group.market_id,
                    )
                if order.state is not OrderState.CONFIRMED:
                    raise InvalidTransition(
                        f"Only CONFIRMED orders can be cancelled (state={order.state.value})",
                        current=order.state.value,
                        target=OrderState.CANCEL_REQUESTED.value,
                        client_id=client_id,
                        market_id=group.market_id,
                    )
                targets[(group.market_id, client_id)] = order
        return targets

    def _mark_cancelled(self, order: Order) -> None:
        if order.state is OrderState.CONFIRMED:
            self._apply(order, OrderState.CANCEL_REQUESTED)
        self._apply_if_live(order, OrderState.CANCELLED)

    # --- Reconciliation ---

    def on_acknowledged(
        self,
        subaccount: Subaccount,
        client_id: ClientId,
        tx_hash: Optional[str] = None,
    ) -> Optional[Order]:
        """Late placement acknowledgement, e.g. after a caller-side timeout."""
        order = self._lookup(subaccount, client_id, "acknowledgement")
        if order is None:
            return None
        if order.state is OrderState.SUBMITTED:
            if tx_hash:
                order.tx_hash = tx_hash
            order.ack_timed_out = False
            self._apply(order, OrderState.CONFIRMED, reason="late acknowledgement")
        elif order.is_terminal:
            logger.warning(
                f"[{self._name}] Acknowledgement for {order.state.value} order "
                f"{subaccount.key}/{client_id}; venue and local state disagree"
            )
        return order

    def on_filled(self, subaccount: Subaccount, client_id: ClientId) -> Optional[Order]:
        order = self._lookup(subaccount, client_id, "fill")
        if order is not None:
            self._advance(order, OrderState.FILLED, reason="fill observed")
        return order

    def on_cancelled(self, subaccount: Subaccount, client_id: ClientId) -> Optional[Order]:
        """Late cancel acknowledgement."""
        order = self._lookup(subaccount, client_id, "cancel acknowledgement")
        if order is not None:
            self._advance(order, OrderState.CANCELLED, reason="cancel observed")
        return order

    def on_cancel_rejected(
        self,
        subaccount: Subaccount,
        client_id: ClientId,
        reason: Optional[str] = None,
    ) -> Optional[Order]:
        order = self._lookup(subaccount, client_id, "cancel rejection")
        if order is not None and order.state is OrderState.CANCEL_REQUESTED:
            self._apply(order, OrderState.CONFIRMED, reason=reason or "cancel rejected")
        return order

    def reconcile(
        self,
        height: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> list[Order]:
        """
        Expire orders whose window has passed. Short-term orders are checked against
        `height`, long-term orders against `now` (defaults to the clock).

        A SUBMITTED order that never got an acknowledgement can no longer rest on the
        book once its window has passed, so it becomes FAILED.
        """
        now = now or self._clock.now()
        changed: list[Order] = []
        for order in self.open_orders():
            if isinstance(order, ShortTermOrder):
                if height is None or not order.expired_at(height):
                    continue
            elif isinstance(order, LongTermOrder):
                if not order.expired_at(now):
                    continue
            else:
                continue

            if order.state in (OrderState.CONFIRMED, OrderState.CANCEL_REQUESTED):
                self._apply(order, OrderState.EXPIRED, reason="validity window passed")
                changed.append(order)
            elif order.state is OrderState.SUBMITTED and order.ack_timed_out:
                self._apply(order, OrderState.FAILED, reason="no acknowledgement before expiry")
                changed.append(order)
        return changed

    async def refresh(self) -> list[Order]:
        """Reconcile against a freshly fetched chain height."""
        reference = await self._tracker.fetch_reference()
        return self.reconcile(height=reference.height, now=reference.observed_at)

    def apply_indexer_orders(
        self,
        subaccount: Subaccount,
        records: Iterable[Mapping[str, Any]],
    ) -> list[Order]:
        """
        Fold indexer order records (`GET /orders`) into tracked state.

        Open orders without a live local counterpart (untracked, or already terminal
        here) still hold their client id, so the allocator never hands it out while the
        venue has it resting. The hold is dropped once the indexer reports them closed.
        """
        changed: list[Order] = []
        for record in records:
            try:
                client_id = int(record["clientId"])
            except (KeyError, TypeError, ValueError):
                logger.debug(
                    "indexer_record_skipped",
                    extra={"event": "indexer_record_skipped", "record_id": record.get("id")},
                )
                continue
            target = INDEXER_STATUS_MAP.get(str(record.get("status", "")).upper())
            order = self.get(subaccount, client_id)
            tracked = order is not None and self._matches(order, record)

            if not tracked or order.is_terminal:
                if tracked and target is OrderState.CONFIRMED:
                    logger.warning(
                        f"[{self._name}] Indexer shows {order.state.value} order "
                        f"{subaccount.key}/{client_id} resting; holding its client id"
                    )
                self._track_external(subaccount, client_id, target)
                continue
            if target is None:
                continue
            before = order.state
            self._advance(order, target, reason=f"indexer status {record.get('status')}")
            if order.state is not before:
                changed.append(order)
        return changed

    def _track_external(
        self,
        subaccount: Subaccount,
        client_id: ClientId,
        target: Optional[OrderState],
    ) -> None:
        allocator = self._allocators.for_subaccount(subaccount)
        external = self._external_holds.setdefault(subaccount, set())
        if target is OrderState.CONFIRMED:
            allocator.hold(client_id)
            external.add(client_id)
        elif target in TERMINAL_STATES and client_id in external:
            external.discard(client_id)
            owner = self.get(subaccount, client_id)
            if owner is None or not owner.is_live:
                allocator.release(client_id)

    @staticmethod
    def _matches(order: Order, record: Mapping[str, Any]) -> bool:
        ticker = record.get("ticker")
        if ticker is not None and ticker != order.market_id:
            return False
        flags = INDEXER_ORDER_FLAGS.get(str(record.get("orderFlags")))
        if record.get("orderFlags") is not None and flags is not order.flags:
            return False
        return True

    def collect_terminal(self, now: Optional[datetime] = None) -> list[Order]:
        """Drop terminal orders older than the retention window; returns what was dropped."""
        now = now or self._clock.now()
        cutoff = now - timedelta(seconds=self._cfg.retention_s)

        def expired(order: Order) -> bool:
            return order.is_terminal and order.terminal_at is not None and order.terminal_at <= cutoff

        dropped = [o for o in self._retired if expired(o)]
        self._retired = [o for o in self._retired if not expired(o)]
        for by_id in self._orders.values():
            for client_id in [cid for cid, o in by_id.items() if expired(o)]:
                dropped.append(by_id.pop(client_id))
        if dropped:
            logger.info(f"[{self._name}] Collected {len(dropped)} terminal orders")
        return dropped

    # --- Internals ---

    def _iter_tracked(self, subaccount: Optional[Subaccount]) -> Iterable[Order]:
        if subaccount is not None:
            return list(self._orders.get(subaccount, {}).values())
        return [o for by_id in self._orders.values() for o in by_id.values()]

    def _register(self, order: Order) -> None:
        by_id = self._orders.setdefault(order.subaccount, {})
        previous = by_id.get(order.client_id)
        if previous is not None:
            if previous.is_live:
                raise InvalidOrderParameters(
                    "client id is held by a live order",
                    client_id=order.client_id,
                    market_id=order.market_id,
                )
            self._retired.append(previous)
        by_id[order.client_id] = order

    def _require_tracked(self, order: Order) -> None:
        if self.get(order.subaccount, order.client_id) is not order:
            raise InvalidOrderParameters(
                "Order is not tracked by this manager",
                client_id=order.client_id,
                market_id=order.market_id,
            )

    def _lookup(self, subaccount: Subaccount, client_id: ClientId, what: str) -> Optional[Order]:
        order = self.get(subaccount, client_id)
        if order is None:
            logger.warning(f"[{self._name}] {what} for unknown order {subaccount.key}/{client_id}")
        return order

    def _mark_unacknowledged(self, order: Order, reason: str) -> None:
        order.ack_timed_out = True
        order.last_error = reason
        logger.warning(
            f"[{self._name}] Order {order.subaccount.key}/{order.client_id} unacknowledged: "
            f"{reason}; awaiting reconciliation"
        )

    def _advance(self, order: Order, target: OrderState, reason: Optional[str] = None) -> None:
        for step in _PATHS.get(target, {}).get(order.state, ()):
            self._apply(order, step, reason=reason)

    def _apply_if_live(self, order: Order, target: OrderState, reason: Optional[str] = None) -> None:
        if target in ALLOWED_TRANSITIONS[order.state]:
            self._apply(order, target, reason=reason)
        else:
            logger.info(
                f"[{self._name}] Order {order.client_id} already {order.state.value}; "
                f"{target.value} not applied"
            )

    def _apply(self, order: Order, target: OrderState, reason: Optional[str] = None) -> None:
        before = order.state
        order.transition(target, at=self._clock.now())
        rejected_cancel = before is OrderState.CANCEL_REQUESTED and target is OrderState.CONFIRMED
        if reason and (target is OrderState.FAILED or rejected_cancel):
            order.last_error = reason
        # an id the venue still shows resting stays held
        if order.is_terminal and order.client_id not in self._external_holds.get(
            order.subaccount, ()
        ):
            self._allocators.for_subaccount(order.subaccount).release(order.client_id)

        record = TransitionRecord(
            client_id=order.client_id,
            market_id=order.market_id,
            subaccount=order.subaccount.key,
            flags=order.flags,
            from_state=before,
            to_state=target,
            reason=reason,
        )
        level = logging.WARNING if target is OrderState.FAILED else logging.INFO
        logger.log(
            level,
            f"[{self._name}] {record.subaccount} {record.market_id} #{record.client_id} "
            f"{before.value} -> {target.value}" + (f" ({reason})" if reason else ""),
        )
        if self._telemetry is not None:
            self._telemetry.log(
                "order_transition",
                client_id=record.client_id,
                market_id=record.market_id,
                subaccount=record.subaccount,
                flags=record.flags.value,
                from_state=record.from_state.value,
                to_state=record.to_state.value,
                reason=record.reason,
            )
