"""
Unit tests for OrderLifecycleManager.

Covers placement, cancellation, batch cancellation and reconciliation against
in-memory endpoint / oracle / clock fakes.
"""

import asyncio
from datetime import timedelta
from decimal import Decimal

import pytest

from orderflow.config.configs import OrderConfig
from orderflow.core.allocator import SubaccountAllocators
from orderflow.core.lifecycle import OrderLifecycleManager
from orderflow.core.validity import ValidityWindowTracker
from orderflow.errors.errors import (
    EndpointRejected,
    InvalidCancelWindow,
    InvalidOrderParameters,
    InvalidTransition,
    Timeout,
)
from orderflow.types.types import (
    BatchCancelAck,
    CancelAck,
    CancelGroup,
    GroupOutcome,
    LongTermOrder,
    OrderState,
    ShortTermOrder,
    Side,
    SubmitAck,
    Subaccount,
)
from tests.fixtures.fakes import (
    T0,
    FakeExecutionEndpoint,
    FakeHeightOracle,
    FixedClock,
    RecordingTelemetry,
)

SUB = Subaccount(address="dydx1testaddress", subaccount_number=0)
PRICE = Decimal("2500.5")
SIZE = Decimal("0.01")


class ScriptedRng:
    """Stands in for random.Random; hands out a fixed sequence of ids."""

    def __init__(self, ids):
        self._ids = iter(ids)

    def randint(self, a, b):
        return next(self._ids)


class ScriptedAllocators(SubaccountAllocators):
    def __init__(self, ids):
        super().__init__()
        self._ids = list(ids)

    def _rng_for(self, subaccount):
        return ScriptedRng(self._ids)


@pytest.fixture
def endpoint() -> FakeExecutionEndpoint:
    return FakeExecutionEndpoint()


@pytest.fixture
def oracle() -> FakeHeightOracle:
    return FakeHeightOracle(height=100)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def telemetry() -> RecordingTelemetry:
    return RecordingTelemetry()


@pytest.fixture
def manager(endpoint, oracle, clock, telemetry) -> OrderLifecycleManager:
    tracker = ValidityWindowTracker(oracle, clock)
    return OrderLifecycleManager(
        endpoint, tracker, clock, cfg=OrderConfig(seed=7), telemetry=telemetry, name="test"
    )


def _allocator(manager: OrderLifecycleManager, sub: Subaccount = SUB):
    return manager._allocators.for_subaccount(sub)


class TestPlacement:
    """Short-term and long-term placement."""

    @pytest.mark.asyncio
    async def test_short_term_window_and_confirmation(self, manager, endpoint) -> None:
        """Height 100 with ttl 10 gives goodTilBlock 110 and an acknowledged order."""
        order = await manager.place_short_term(SUB, "ETH-USD", Side.BUY, PRICE, SIZE)

        assert isinstance(order, ShortTermOrder)
        assert order.good_til_block == 110
        assert order.state is OrderState.CONFIRMED
        assert order.tx_hash == f"tx-{order.client_id}"
        assert endpoint.submitted == [order]
        assert _allocator(manager).is_held(order.client_id)

    @pytest.mark.asyncio
    async def test_expires_once_height_passes_window(self, manager) -> None:
        order = await manager.place_short_term(SUB, "ETH-USD", Side.BUY, PRICE, SIZE)

        assert manager.reconcile(height=110) == []
        assert order.state is OrderState.CONFIRMED

        assert manager.reconcile(height=111) == [order]
        assert order.state is OrderState.EXPIRED
        assert not _allocator(manager).is_held(order.client_id)

    @pytest.mark.asyncio
    async def test_zero_ttl_expires_next_block(self, manager) -> None:
        order = await manager.place_short_term(
            SUB, "ETH-USD", Side.SELL, PRICE, SIZE, ttl_blocks=0
        )
        assert order.good_til_block == 100
        manager.reconcile(height=101)
        assert order.state is OrderState.EXPIRED

    @pytest.mark.asyncio
    async def test_zero_size_rejected_before_allocation(self, manager, endpoint, oracle) -> None:
        """Invalid parameters never consume a client id or touch the network."""
        with pytest.raises(InvalidOrderParameters) as exc:
            await manager.place_short_term(SUB, "ETH-USD", Side.BUY, PRICE, Decimal("0"))

        assert exc.value.field == "size"
        assert _allocator(manager).in_flight == frozenset()
        assert endpoint.calls == 0
        assert oracle.calls == 0
        assert manager.orders() == []

    @pytest.mark.asyncio
    async def test_negative_ttl_rejected(self, manager, endpoint) -> None:
        with pytest.raises(InvalidOrderParameters):
            await manager.place_short_term(SUB, "ETH-USD", Side.BUY, PRICE, SIZE, ttl_blocks=-1)
        assert endpoint.calls == 0

    @pytest.mark.asyncio
    async def test_long_term_window_from_clock(self, manager, clock) -> None:
        order = await manager.place_long_term(SUB, "BTC-USD", Side.BUY, PRICE, SIZE)

        assert isinstance(order, LongTermOrder)
        assert order.good_til_block_time == int(T0.timestamp()) + 60
        assert order.state is OrderState.CONFIRMED

        assert manager.reconcile(now=T0 + timedelta(seconds=60)) == []
        assert manager.reconcile(now=T0 + timedelta(seconds=61)) == [order]
        assert order.state is OrderState.EXPIRED

    @pytest.mark.asyncio
    async def test_client_ids_distinct_while_live(self, manager) -> None:
        orders = [
            await manager.place_short_term(SUB, "ETH-USD", Side.BUY, PRICE, SIZE)
            for _ in range(20)
        ]
        ids = {o.client_id for o in orders}
        assert len(ids) == 20
        assert _allocator(manager).in_flight == frozenset(ids)

    @pytest.mark.asyncio
    async def test_transitions_reported_to_telemetry(self, manager, telemetry) -> None:
        order = await manager.place_short_term(SUB, "ETH-USD", Side.BUY, PRICE, SIZE)

        transitions = [
            (fields["from_state"], fields["to_state"])
            for event, fields in telemetry.events
            if event == "order_transition"
        ]
        assert transitions == [("PENDING", "SUBMITTED"), ("SUBMITTED", "CONFIRMED")]
        _, fields = telemetry.events[-1]
        assert fields["client_id"] == order.client_id
        assert fields["subaccount"] == SUB.key
        assert fields["flags"] == "SHORT_TERM"


class TestSubmissionFailures:
    """Rejections, transport errors and timeouts on submit."""

    @pytest.mark.asyncio
    async def test_rejection_fails_order_and_releases_id(self, manager, endpoint) -> None:
        endpoint.submit_result = SubmitAck(client_id=0, accepted=False, reason="insufficient margin")

        with pytest.raises(EndpointRejected) as exc:
            await manager.place_short_term(SUB, "ETH-USD", Side.BUY, PRICE, SIZE)

        assert exc.value.reason == "insufficient margin"
        (order,) = manager.orders()
        assert order.state is OrderState.FAILED
        assert order.last_error == "insufficient margin"
        assert _allocator(manager).in_flight == frozenset()

    @pytest.mark.asyncio
    async def test_transport_error_wrapped_as_rejection(self, manager, endpoint) -> None:
        endpoint.submit_error = ConnectionError("broadcast failed")

        with pytest.raises(EndpointRejected) as exc:
            await manager.place_short_term(SUB, "ETH-USD", Side.BUY, PRICE, SIZE)

        assert "broadcast failed" in exc.value.reason
        assert isinstance(exc.value.__cause__, ConnectionError)
        assert manager.orders()[0].state is OrderState.FAILED

    @pytest.mark.asyncio
    async def test_timeout_leaves_order_submitted(self, manager, endpoint) -> None:
        """No acknowledgement: the venue may still accept, so the id stays held."""
        endpoint.submit_error = Timeout("no ack")

        with pytest.raises(Timeout):
            await manager.place_short_term(SUB, "ETH-USD", Side.BUY, PRICE, SIZE)

        (order,) = manager.orders()
        assert order.state is OrderState.SUBMITTED
        assert order.ack_timed_out is True
        assert _allocator(manager).is_held(order.client_id)

    @pytest.mark.asyncio
    async def test_asyncio_timeout_is_wrapped(self, manager, endpoint) -> None:
        endpoint.submit_error = asyncio.TimeoutError()

        with pytest.raises(Timeout) as exc:
            await manager.place_short_term(SUB, "ETH-USD", Side.BUY, PRICE, SIZE)

        assert exc.value.transition == "SUBMITTED->CONFIRMED"
        assert manager.orders()[0].state is OrderState.SUBMITTED

    @pytest.mark.asyncio
    async def test_late_acknowledgement_confirms(self, manager, endpoint) -> None:
        endpoint.submit_error = Timeout("no ack")
        with pytest.raises(Timeout):
            await manager.place_short_term(SUB, "ETH-USD", Side.BUY, PRICE, SIZE)
        (order,) = manager.orders()

        manager.on_acknowledged(SUB, order.client_id, tx_hash="0xlate")

        assert order.state is OrderState.CONFIRMED
        assert order.tx_hash == "0xlate"
        assert order.ack_timed_out is False

    @pytest.mark.asyncio
    async def test_unacknowledged_order_fails_after_window(self, manager, endpoint) -> None:
        endpoint.submit_error = Timeout("no ack")
        with pytest.raises(Timeout):
            await manager.place_short_term(SUB, "ETH-USD", Side.BUY, PRICE, SIZE)
        (order,) = manager.orders()

        assert manager.reconcile(height=110) == []
        assert manager.reconcile(height=111) == [order]
        assert order.state is OrderState.FAILED
        assert not _allocator(manager).is_held(order.client_id)

    @pytest.mark.asyncio
    async def test_no_retry_on_failure(self, manager, endpoint) -> None:
        endpoint.submit_error = ConnectionError("down")
        with pytest.raises(EndpointRejected):
            await manager.place_short_term(SUB, "ETH-USD", Side.BUY, PRICE, SIZE)
        assert len(endpoint.submitted) == 1


class TestCancel:
    """Single-order cancellation."""

    @pytest.mark.asyncio
    async def test_short_term_cancel_uses_fresh_height(self, manager, endpoint, oracle) -> None:
        order = await manager.place_short_term(SUB, "ETH-USD", Side.BUY, PRICE, SIZE)
        oracle.height = 105

        ack = await manager.cancel(order)

        assert ack.accepted
        assert order.state is OrderState.CANCELLED
        assert endpoint.cancelled == [(order, 115, None)]
        assert not _allocator(manager).is_held(order.client_id)

    @pytest.mark.asyncio
    async def test_long_term_cancel_uses_block_time(self, manager, endpoint) -> None:
        order = await manager.place_long_term(SUB, "BTC-USD", Side.SELL, PRICE, SIZE)

        await manager.cancel(order)

        assert endpoint.cancelled == [(order, None, int(T0.timestamp()) + 60)]
        assert order.state is OrderState.CANCELLED

    @pytest.mark.asyncio
    async def test_short_term_with_block_time_rejected(self, manager, endpoint) -> None:
        """Mismatched window class fails locally without a network call."""
        order = await manager.place_short_term(SUB, "ETH-USD", Side.BUY, PRICE, SIZE)

        with pytest.raises(InvalidCancelWindow):
            await manager.cancel(order, good_til_block_time=int(T0.timestamp()) + 60)

        assert endpoint.cancelled == []
        assert order.state is OrderState.CONFIRMED

    @pytest.mark.asyncio
    async def test_long_term_with_block_height_rejected(self, manager, endpoint) -> None:
        order = await manager.place_long_term(SUB, "BTC-USD", Side.BUY, PRICE, SIZE)

        with pytest.raises(InvalidCancelWindow):
            await manager.cancel(order, good_til_block=120)

        assert endpoint.cancelled == []

    @pytest.mark.asyncio
    async def test_cancel_requires_confirmed(self, manager, endpoint) -> None:
        endpoint.submit_result = SubmitAck(client_id=0, accepted=False, reason="bad")
        with pytest.raises(EndpointRejected):
            await manager.place_short_term(SUB, "ETH-USD", Side.BUY, PRICE, SIZE)
        (order,) = manager.orders()

        with pytest.raises(InvalidTransition):
            await manager.cancel(order)
        assert endpoint.cancelled == []

    @pytest.mark.asyncio
    async def test_cancel_rejected_reverts_to_confirmed(self, manager, endpoint) -> None:
        order = await manager.place_short_term(SUB, "ETH-USD", Side.BUY, PRICE, SIZE)
        endpoint.cancel_result = CancelAck(client_id=order.client_id, accepted=False, reason="gone")

        with pytest.raises(EndpointRejected):
            await manager.cancel(order)

        assert order.state is OrderState.CONFIRMED
        assert order.last_error == "gone"
        assert _allocator(manager).is_held(order.client_id)

    @pytest.mark.asyncio
    async def test_cancel_timeout_awaits_reconciliation(self, manager, endpoint) -> None:
        order = await manager.place_short_term(SUB, "ETH-USD", Side.BUY, PRICE, SIZE)
        endpoint.cancel_error = Timeout("no ack")

        with pytest.raises(Timeout):
            await manager.cancel(order)
        assert order.state is OrderState.CANCEL_REQUESTED

        manager.on_cancelled(SUB, order.client_id)
        assert order.state is OrderState.CANCELLED

    @pytest.mark.asyncio
    async def test_second_cancel_rejected(self, manager, endpoint) -> None:
        order = await manager.place_short_term(SUB, "ETH-USD", Side.BUY, PRICE, SIZE)
        await manager.cancel(order)

        with pytest.raises(InvalidTransition):
            await manager.cancel(order)
        assert len(endpoint.cancelled) == 1

    @pytest.mark.asyncio
    async def test_fill_during_pending_cancel(self, manager, endpoint) -> None:
        order = await manager.place_short_term(SUB, "ETH-USD", Side.BUY, PRICE, SIZE)
        endpoint.cancel_error = Timeout("no ack")
        with pytest.raises(Timeout):
            await manager.cancel(order)

        manager.on_filled(SUB, order.client_id)
        assert order.state is OrderState.FILLED

        # a late cancel ack does not resurrect a terminal order
        manager.on_cancelled(SUB, order.client_id)
        assert order.state is OrderState.FILLED


class TestBatchCancel:
    """Grouped cancellation of short-term orders."""

    @pytest.fixture
    def scripted_manager(self, endpoint, oracle, clock) -> OrderLifecycleManager:
        tracker = ValidityWindowTracker(oracle, clock)
        return OrderLifecycleManager(
            endpoint, tracker, clock, allocators=ScriptedAllocators([1, 2, 3, 4])
        )

    async def _place_three(self, manager):
        first = await manager.place_short_term(SUB, "ETH-USD", Side.BUY, PRICE, SIZE)
        second = await manager.place_short_term(SUB, "ETH-USD", Side.SELL, PRICE, SIZE)
        third = await manager.place_short_term(SUB, "BTC-USD", Side.BUY, PRICE, SIZE)
        assert [first.client_id, second.client_id, third.client_id] == [1, 2, 3]
        return first, second, third

    @pytest.mark.asyncio
    async def test_failed_group_stays_live(self, scripted_manager, endpoint) -> None:
        first, second, third = await self._place_three(scripted_manager)
        groups = [CancelGroup("ETH-USD", (1, 2)), CancelGroup("BTC-USD", (3,))]
        endpoint.batch_result = BatchCancelAck(
            accepted=False,
            group_outcomes=(
                GroupOutcome("ETH-USD", (1, 2), accepted=True),
                GroupOutcome("BTC-USD", (3,), accepted=False, reason="not found"),
            ),
        )

        await scripted_manager.batch_cancel(SUB, groups)

        assert first.state is OrderState.CANCELLED
        assert second.state is OrderState.CANCELLED
        assert third.state is OrderState.CONFIRMED
        assert scripted_manager.open_orders(SUB) == [third]
        (_, sent_groups, good_til_block) = endpoint.batches[0]
        assert sent_groups == tuple(groups)
        assert good_til_block == 110

    @pytest.mark.asyncio
    async def test_aggregate_rejection_changes_nothing(self, scripted_manager, endpoint) -> None:
        orders = await self._place_three(scripted_manager)
        endpoint.batch_result = BatchCancelAck(accepted=False, reason="tx failed")

        with pytest.raises(EndpointRejected):
            await scripted_manager.batch_cancel(
                SUB, [CancelGroup("ETH-USD", (1, 2)), CancelGroup("BTC-USD", (3,))]
            )

        assert all(o.state is OrderState.CONFIRMED for o in orders)

    @pytest.mark.asyncio
    async def test_aggregate_acceptance_cancels_all(self, scripted_manager) -> None:
        orders = await self._place_three(scripted_manager)

        await scripted_manager.batch_cancel(
            SUB, [CancelGroup("ETH-USD", (1, 2)), CancelGroup("BTC-USD", (3,))]
        )

        assert all(o.state is OrderState.CANCELLED for o in orders)
        assert scripted_manager.open_orders() == []

    @pytest.mark.asyncio
    async def test_timeout_mutates_nothing(self, scripted_manager, endpoint) -> None:
        orders = await self._place_three(scripted_manager)
        endpoint.batch_error = Timeout("no ack")

        with pytest.raises(Timeout):
            await scripted_manager.batch_cancel(SUB, [CancelGroup("ETH-USD", (1, 2))])

        assert all(o.state is OrderState.CONFIRMED for o in orders)

    @pytest.mark.asyncio
    async def test_unknown_id_rejected_locally(self, scripted_manager, endpoint) -> None:
        await self._place_three(scripted_manager)

        with pytest.raises(InvalidOrderParameters):
            await scripted_manager.batch_cancel(SUB, [CancelGroup("ETH-USD", (1, 99))])
        assert endpoint.batches == []

    @pytest.mark.asyncio
    async def test_market_mismatch_rejected_locally(self, scripted_manager, endpoint) -> None:
        await self._place_three(scripted_manager)

        with pytest.raises(InvalidOrderParameters):
            await scripted_manager.batch_cancel(SUB, [CancelGroup("BTC-USD", (1,))])
        assert endpoint.batches == []

    @pytest.mark.asyncio
    async def test_long_term_orders_not_batchable(self, scripted_manager, endpoint) -> None:
        order = await scripted_manager.place_long_term(SUB, "ETH-USD", Side.BUY, PRICE, SIZE)

        with pytest.raises(InvalidCancelWindow):
            await scripted_manager.batch_cancel(SUB, [CancelGroup("ETH-USD", (order.client_id,))])
        assert endpoint.batches == []

    @pytest.mark.asyncio
    async def test_empty_batch_rejected(self, manager, endpoint) -> None:
        with pytest.raises(InvalidOrderParameters):
            await manager.batch_cancel(SUB, [])
        assert endpoint.batches == []


class TestReconciliation:
    """Indexer records, fills and retention."""

    @pytest.mark.asyncio
    async def test_indexer_fill_applied(self, manager) -> None:
        order = await manager.place_short_term(SUB, "ETH-USD", Side.BUY, PRICE, SIZE)
        records = [
            {
                "clientId": str(order.client_id),
                "status": "FILLED",
                "ticker": "ETH-USD",
                "orderFlags": "0",
            }
        ]

        assert manager.apply_indexer_orders(SUB, records) == [order]
        assert order.state is OrderState.FILLED
        assert not _allocator(manager).is_held(order.client_id)

    @pytest.mark.asyncio
    async def test_indexer_record_for_other_flags_ignored(self, manager) -> None:
        order = await manager.place_short_term(SUB, "ETH-USD", Side.BUY, PRICE, SIZE)
        records = [{"clientId": str(order.client_id), "status": "CANCELED", "orderFlags": "64"}]

        assert manager.apply_indexer_orders(SUB, records) == []
        assert order.state is OrderState.CONFIRMED

    @pytest.mark.asyncio
    async def test_indexer_confirms_unacknowledged_order(self, manager, endpoint) -> None:
        endpoint.submit_error = Timeout("no ack")
        with pytest.raises(Timeout):
            await manager.place_short_term(SUB, "ETH-USD", Side.BUY, PRICE, SIZE)
        (order,) = manager.orders()

        manager.apply_indexer_orders(SUB, [{"clientId": order.client_id, "status": "OPEN"}])
        assert order.state is OrderState.CONFIRMED

    def test_untracked_open_orders_hold_their_ids(self, manager) -> None:
        records = [
            {"clientId": "4242", "status": "OPEN"},
            {"clientId": "77", "status": "FILLED"},
            {"id": "malformed"},
        ]

        assert manager.apply_indexer_orders(SUB, records) == []
        assert _allocator(manager).is_held(4242)
        assert not _allocator(manager).is_held(77)

    def test_untracked_ids_released_once_closed(self, manager) -> None:
        """An id held for a resting venue order frees up when the venue closes it."""
        manager.apply_indexer_orders(SUB, [{"clientId": "4242", "status": "OPEN"}])
        assert manager.external_holds(SUB) == frozenset({4242})

        manager.apply_indexer_orders(SUB, [{"clientId": "4242", "status": "CANCELED"}])

        assert not _allocator(manager).is_held(4242)
        assert manager.external_holds(SUB) == frozenset()

    @pytest.mark.asyncio
    async def test_closed_record_keeps_live_tracked_id(self, manager) -> None:
        """A terminal record for another order class never frees an id a live order holds."""
        order = await manager.place_short_term(SUB, "ETH-USD", Side.BUY, PRICE, SIZE)
        records = [{"clientId": str(order.client_id), "status": "FILLED", "orderFlags": "64"}]

        manager.apply_indexer_orders(SUB, records)

        assert order.state is OrderState.CONFIRMED
        assert _allocator(manager).is_held(order.client_id)

    @pytest.mark.asyncio
    async def test_venue_order_outlives_its_local_terminal_state(self, manager) -> None:
        """An id stays held while the venue shows the order resting, even after it ends here."""
        order = await manager.place_short_term(SUB, "ETH-USD", Side.BUY, PRICE, SIZE)
        resting = {"clientId": str(order.client_id), "status": "OPEN", "orderFlags": "64"}
        manager.apply_indexer_orders(SUB, [resting])

        await manager.cancel(order)

        assert order.state is OrderState.CANCELLED
        assert _allocator(manager).is_held(order.client_id)

        manager.apply_indexer_orders(SUB, [{**resting, "status": "CANCELED"}])
        assert not _allocator(manager).is_held(order.client_id)

    @pytest.mark.asyncio
    async def test_failed_order_seen_resting_keeps_its_id(
        self, endpoint, oracle, clock, caplog
    ) -> None:
        """A transport failure locally does not mean the venue never got the order."""
        tracker = ValidityWindowTracker(oracle, clock)
        manager = OrderLifecycleManager(
            endpoint, tracker, clock, allocators=ScriptedAllocators([7, 7, 8]), name="test"
        )
        endpoint.submit_error = RuntimeError("connection reset")
        with pytest.raises(EndpointRejected):
            await manager.place_short_term(SUB, "ETH-USD", Side.BUY, PRICE, SIZE)
        (failed,) = manager.orders()
        assert failed.client_id == 7
        assert not _allocator(manager).is_held(7)

        record = {"clientId": "7", "status": "OPEN", "ticker": "ETH-USD", "orderFlags": "0"}
        with caplog.at_level("WARNING", logger="orderflow.core.lifecycle"):
            assert manager.apply_indexer_orders(SUB, [record]) == []

        assert failed.state is OrderState.FAILED
        assert _allocator(manager).is_held(7)
        assert "holding its client id" in caplog.text

        endpoint.submit_error = None
        replacement = await manager.place_short_term(SUB, "ETH-USD", Side.BUY, PRICE, SIZE)
        assert replacement.client_id == 8

        manager.apply_indexer_orders(SUB, [{**record, "status": "CANCELED"}])
        assert not _allocator(manager).is_held(7)

    @pytest.mark.asyncio
    async def test_collect_terminal_after_retention(self, manager, endpoint, clock) -> None:
        endpoint.submit_result = SubmitAck(client_id=0, accepted=False, reason="bad")
        with pytest.raises(EndpointRejected):
            await manager.place_short_term(SUB, "ETH-USD", Side.BUY, PRICE, SIZE)
        (order,) = manager.orders()

        assert manager.collect_terminal() == []

        clock.advance(3600)
        assert manager.collect_terminal() == [order]
        assert manager.get(SUB, order.client_id) is None

    @pytest.mark.asyncio
    async def test_refresh_uses_oracle_height(self, manager, oracle) -> None:
        order = await manager.place_short_term(SUB, "ETH-USD", Side.BUY, PRICE, SIZE)
        oracle.height = 111

        assert await manager.refresh() == [order]
        assert order.state is OrderState.EXPIRED

    def test_callbacks_for_unknown_orders_return_none(self, manager) -> None:
        assert manager.on_acknowledged(SUB, 123) is None
        assert manager.on_filled(SUB, 123) is None
        assert manager.on_cancelled(SUB, 123) is None
        assert manager.on_cancel_rejected(SUB, 123) is None

    @pytest.mark.asyncio
    async def test_subaccounts_tracked_separately(self, manager) -> None:
        other = Subaccount(address=SUB.address, subaccount_number=1)
        a = await manager.place_short_term(SUB, "ETH-USD", Side.BUY, PRICE, SIZE)
        b = await manager.place_short_term(other, "ETH-USD", Side.BUY, PRICE, SIZE)

        assert manager.open_orders(SUB) == [a]
        assert manager.open_orders(other) == [b]
        assert len(manager.open_orders()) == 2
