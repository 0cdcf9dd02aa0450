from __future__ import annotations

from abc import ABC
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import ClassVar, Optional

from orderflow.errors.errors import (
    InvalidOrderParameters,
    InvalidTransferRequest,
    InvalidTransition,
)
from orderflow.types.aliases import (
    Address,
    BlockHeight,
    ClientId,
    MarketId,
    Quantums,
    UnixSeconds,
)

ZERO = Decimal("0")
MAX_CLIENT_ID: ClientId = 2**32 - 1
MAX_QUANTUMS: Quantums = 2**64 - 1

# -------- Enums --------


class Side(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class OrderFlags(str, Enum):
    """Order class on the venue. Decides which validity field applies."""

    SHORT_TERM = "SHORT_TERM"  # goodTilBlock
    LONG_TERM = "LONG_TERM"  # goodTilBlockTime


class OrderState(str, Enum):
    PENDING = "PENDING"
    SUBMITTED = "SUBMITTED"
    CONFIRMED = "CONFIRMED"
    CANCEL_REQUESTED = "CANCEL_REQUESTED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"
    FAILED = "FAILED"
    FILLED = "FILLED"


TERMINAL_STATES: frozenset[OrderState] = frozenset(
    {OrderState.CANCELLED, OrderState.EXPIRED, OrderState.FAILED, OrderState.FILLED}
)

# Client ids held by orders in these states are never handed out again.
LIVE_STATES: frozenset[OrderState] = frozenset(
    {
        OrderState.PENDING,
        OrderState.SUBMITTED,
        OrderState.CONFIRMED,
        OrderState.CANCEL_REQUESTED,
    }
)

ALLOWED_TRANSITIONS: dict[OrderState, frozenset[OrderState]] = {
    OrderState.PENDING: frozenset({OrderState.SUBMITTED}),
    OrderState.SUBMITTED: frozenset({OrderState.CONFIRMED, OrderState.FAILED}),
    OrderState.CONFIRMED: frozenset(
        {OrderState.CANCEL_REQUESTED, OrderState.EXPIRED, OrderState.FILLED}
    ),
    OrderState.CANCEL_REQUESTED: frozenset(
        {OrderState.CANCELLED, OrderState.CONFIRMED, OrderState.EXPIRED, OrderState.FILLED}
    ),
    OrderState.CANCELLED: frozenset(),
    OrderState.EXPIRED: frozenset(),
    OrderState.FAILED: frozenset(),
    OrderState.FILLED: frozenset(),
}


class TransferKind(str, Enum):
    DEPOSIT = "deposit"  # wallet -> subaccount
    WITHDRAW = "withdraw"  # subaccount -> wallet
    TRANSFER = "transfer"  # subaccount -> subaccount


# --- Identity ---


@dataclass(frozen=True, slots=True)
class Subaccount:
    """A sub-ledger under one wallet address."""

    address: Address
    subaccount_number: int = 0

    def __post_init__(self) -> None:
        if not self.address:
            raise ValueError("Subaccount.address must be a non-empty string.")
        if self.subaccount_number < 0:
            raise ValueError("Subaccount.subaccount_number must be >= 0.")

    @property
    def key(self) -> str:
        return f"{self.address}/{self.subaccount_number}"


@dataclass(frozen=True, slots=True)
class HeightReference:
    """A block height together with the time it was observed."""

    height: BlockHeight
    observed_at: datetime


# --- Orders ---


def validate_order_params(
    market_id: MarketId,
    price: Decimal,
    size: Decimal,
) -> None:
    """
    Numeric sanity for a new order. Runs before an id is allocated,
    so a rejected order never consumes one.
    """
    if not market_id:
        raise InvalidOrderParameters("market_id must be a non-empty string", field="market_id")
    for name, value in (("price", price), ("size", size)):
        if not isinstance(value, Decimal):
            raise InvalidOrderParameters(
                f"{name} must be a Decimal", field=name, value=value, market_id=market_id
            )
        if not value.is_finite():
            raise InvalidOrderParameters(
                f"{name} must be finite", field=name, value=value, market_id=market_id
            )
        if value <= ZERO:
            raise InvalidOrderParameters(
                f"{name} must be > 0", field=name, value=value, market_id=market_id
            )


@dataclass(slots=True, kw_only=True)
class Order(ABC):
    """
    Abstract base for one submission attempt.

    Short-term and long-term orders are separate classes: the venue treats them
    as different resource classes (replay protection, expiry), so each carries
    exactly one validity field and there is no shared constructor.
    """

    flags: ClassVar[OrderFlags]

    subaccount: Subaccount
    client_id: ClientId
    market_id: MarketId
    side: Side
    price: Decimal
    size: Decimal
    post_only: bool = False
    reduce_only: bool = False
    state: OrderState = OrderState.PENDING
    tx_hash: Optional[str] = None
    last_error: Optional[str] = None
    ack_timed_out: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    terminal_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        validate_order_params(self.market_id, self.price, self.size)
        if not (0 <= self.client_id <= MAX_CLIENT_ID):
            raise InvalidOrderParameters(
                "client_id out of uint32 range",
                field="client_id",
                value=self.client_id,
                market_id=self.market_id,
            )

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def is_live(self) -> bool:
        return self.state in LIVE_STATES

    def transition(self, target: OrderState, at: Optional[datetime] = None) -> None:
        """Move to `target`. Terminal orders never change again."""
        if target not in ALLOWED_TRANSITIONS[self.state]:
            raise InvalidTransition(
                f"Order cannot move from {self.state.value} to {target.value}",
                current=self.state.value,
                target=target.value,
                client_id=self.client_id,
                market_id=self.market_id,
            )
        self.state = target
        if target in TERMINAL_STATES:
            self.terminal_at = at or datetime.now(timezone.utc)


@dataclass(slots=True, kw_only=True)
class ShortTermOrder(Order):
    """Validity bounded by block height."""

    flags: ClassVar[OrderFlags] = OrderFlags.SHORT_TERM
    good_til_block_time: ClassVar[None] = None

    good_til_block: BlockHeight

    def __post_init__(self) -> None:
        Order.__post_init__(self)
        if self.good_til_block < 0:
            raise InvalidOrderParameters(
                "good_til_block must be >= 0",
                field="good_til_block",
                value=self.good_til_block,
                client_id=self.client_id,
                market_id=self.market_id,
            )

    def expired_at(self, height: BlockHeight) -> bool:
        return height > self.good_til_block


@dataclass(slots=True, kw_only=True)
class LongTermOrder(Order):
    """Validity bounded by wall-clock time (unix seconds)."""

    flags: ClassVar[OrderFlags] = OrderFlags.LONG_TERM
    good_til_block: ClassVar[None] = None

    good_til_block_time: UnixSeconds

    def __post_init__(self) -> None:
        Order.__post_init__(self)
        if self.good_til_block_time <= 0:
            raise InvalidOrderParameters(
                "good_til_block_time must be > 0",
                field="good_til_block_time",
                value=self.good_til_block_time,
                client_id=self.client_id,
                market_id=self.market_id,
            )

    def expired_at(self, now: datetime) -> bool:
        return int(now.timestamp()) > self.good_til_block_time


# --- Endpoint acknowledgements ---


@dataclass(frozen=True, slots=True)
class SubmitAck:
    client_id: ClientId
    accepted: bool
    tx_hash: Optional[str] = None
    reason: Optional[str] = None


@dataclass(frozen=True, slots=True)
class CancelAck:
    client_id: ClientId
    accepted: bool
    tx_hash: Optional[str] = None
    reason: Optional[str] = None


@dataclass(frozen=True, slots=True)
class CancelGroup:
    """Short-term client ids to cancel within one market."""

    market_id: MarketId
    client_ids: tuple[ClientId, ...]

    def __post_init__(self) -> None:
        if not self.market_id:
            raise InvalidOrderParameters("CancelGroup.market_id must be non-empty")
        if not self.client_ids:
            raise InvalidOrderParameters(
                "CancelGroup.client_ids must not be empty", market_id=self.market_id
            )


@dataclass(frozen=True, slots=True)
class GroupOutcome:
    market_id: MarketId
    client_ids: tuple[ClientId, ...]
    accepted: bool
    reason: Optional[str] = None


@dataclass(frozen=True, slots=True)
class BatchCancelAck:
    """
    Result of a batch cancel. `group_outcomes` is None when the endpoint only
    reports an aggregate result.
    """

    accepted: bool
    tx_hash: Optional[str] = None
    reason: Optional[str] = None
    group_outcomes: Optional[tuple[GroupOutcome, ...]] = None


# --- Transfers ---


@dataclass(frozen=True, slots=True)
class TransferParty:
    address: Address
    subaccount_number: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.address:
            raise InvalidTransferRequest("TransferParty.address must be non-empty", field="address")
        if self.subaccount_number is not None and self.subaccount_number < 0:
            raise InvalidTransferRequest(
                "TransferParty.subaccount_number must be >= 0", field="subaccount_number"
            )

    @classmethod
    def of(cls, subaccount: Subaccount) -> "TransferParty":
        return cls(address=subaccount.address, subaccount_number=subaccount.subaccount_number)


@dataclass(frozen=True, slots=True)
class TransferRequest:
    kind: TransferKind
    asset_id: int
    amount_quantums: Quantums
    source: TransferParty
    destination: TransferParty

    def __post_init__(self) -> None:
        if self.asset_id < 0:
            raise InvalidTransferRequest("asset_id must be >= 0", field="asset_id")
        if self.amount_quantums <= 0:
            raise InvalidTransferRequest(
                "amount_quantums must be > 0", field="amount_quantums"
            )
        # Withdrawals land in the wallet itself; everything else names a subaccount.
        if self.kind in (TransferKind.WITHDRAW, TransferKind.TRANSFER):
            if self.source.subaccount_number is None:
                raise InvalidTransferRequest(
                    f"{self.kind.value} requires a source subaccount number",
                    field="source.subaccount_number",
                )
        if self.kind in (TransferKind.DEPOSIT, TransferKind.TRANSFER):
            if self.destination.subaccount_number is None:
                raise InvalidTransferRequest(
                    f"{self.kind.value} requires a destination subaccount number",
                    field="destination.subaccount_number",
                )


@dataclass(frozen=True, slots=True)
class TransferReceipt:
    tx_hash: str
    request: TransferRequest
