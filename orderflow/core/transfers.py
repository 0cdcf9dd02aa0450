"""
Transfer ledger helper: decimal amounts to integer quantums, and the deposit /
withdraw / transfer requests built from them.

Amounts are never truncated. An amount with more fractional digits than the asset
supports is rejected with PrecisionLoss.
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from orderflow.config.configs import TransferConfig
from orderflow.errors.errors import AmountOverflow, NegativeAmount, PrecisionLoss
from orderflow.ports.telemetry import Telemetry
from orderflow.ports.transfer_endpoint import TransferEndpoint
from orderflow.types.aliases import Address, Quantums
from orderflow.types.types import (
    MAX_QUANTUMS,
    ZERO,
    Subaccount,
    TransferKind,
    TransferParty,
    TransferReceipt,
    TransferRequest,
)

logger = logging.getLogger(__name__)

AmountLike = Union[Decimal, str, int, float]


def _as_decimal(amount: AmountLike) -> Decimal:
    # floats go through str so 1.23 stays 1.23 rather than its binary expansion
    if isinstance(amount, float):
        amount = str(amount)
    try:
        value = Decimal(amount)
    except InvalidOperation as exc:
        raise PrecisionLoss(f"Not a decimal amount: {amount!r}", amount=amount, decimals=0) from exc
    if not value.is_finite():
        raise PrecisionLoss(f"Amount must be finite: {amount!r}", amount=amount, decimals=0)
    return value


def to_quantums(amount: AmountLike, decimals: int) -> Quantums:
    """
    amount * 10**decimals as an exact integer.

    Raises PrecisionLoss if that is not an integer and AmountOverflow if it does not fit
    the venue's uint64 amount field.
    """
    if decimals < 0:
        raise ValueError("decimals must be non-negative")
    value = _as_decimal(amount)
    scaled = value.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise PrecisionLoss(
            f"{value} has more than {decimals} fractional digits",
            amount=value,
            decimals=decimals,
        )
    quantums = int(scaled)
    if abs(quantums) > MAX_QUANTUMS:
        raise AmountOverflow(f"{value} exceeds the uint64 quantum range", quantums=quantums)
    return quantums


def from_quantums(quantums: Quantums, decimals: int) -> Decimal:
    return Decimal(quantums).scaleb(-decimals)


class TransferLedger:
    """Builds validated TransferRequests for the configured collateral asset."""

    def __init__(self, cfg: Optional[TransferConfig] = None) -> None:
        self._cfg = cfg or TransferConfig()

    @property
    def config(self) -> TransferConfig:
        return self._cfg

    def _positive_quantums(self, amount: AmountLike) -> Quantums:
        value = _as_decimal(amount)
        if value <= ZERO:
            raise NegativeAmount(f"Amount must be > 0, got {value}", amount=value)
        return to_quantums(value, self._cfg.asset_decimals)

    def deposit_request(self, subaccount: Subaccount, amount: AmountLike) -> TransferRequest:
        """Wallet -> subaccount."""
        return TransferRequest(
            kind=TransferKind.DEPOSIT,
            asset_id=self._cfg.asset_id,
            amount_quantums=self._positive_quantums(amount),
            source=TransferParty(address=subaccount.address),
            destination=TransferParty.of(subaccount),
        )

    def withdraw_request(
        self,
        subaccount: Subaccount,
        amount: AmountLike,
        recipient: Optional[Address] = None,
    ) -> TransferRequest:
        """Subaccount -> wallet (the owner's, unless `recipient` is given)."""
        return TransferRequest(
            kind=TransferKind.WITHDRAW,
            asset_id=self._cfg.asset_id,
            amount_quantums=self._positive_quantums(amount),
            source=TransferParty.of(subaccount),
            destination=TransferParty(address=recipient or subaccount.address),
        )

    def transfer_request(
        self,
        from_subaccount: Subaccount,
        to_address: Address,
        to_subaccount_number: int,
        amount: AmountLike,
    ) -> TransferRequest:
        """Subaccount -> subaccount; the destination must be fully specified."""
        return TransferRequest(
            kind=TransferKind.TRANSFER,
            asset_id=self._cfg.asset_id,
            amount_quantums=self._positive_quantums(amount),
            source=TransferParty.of(from_subaccount),
            destination=TransferParty(address=to_address, subaccount_number=to_subaccount_number),
        )


class TransferService:
    """Builds transfer requests and hands them to the transfer endpoint."""

    def __init__(
        self,
        endpoint: TransferEndpoint,
        ledger: Optional[TransferLedger] = None,
        telemetry: Optional[Telemetry] = None,
    ) -> None:
        self._endpoint = endpoint
        self._ledger = ledger or TransferLedger()
        self._telemetry = telemetry

    async def deposit(self, subaccount: Subaccount, amount: AmountLike) -> TransferReceipt:
        return await self._submit(self._ledger.deposit_request(subaccount, amount))

    async def withdraw(
        self,
        subaccount: Subaccount,
        amount: AmountLike,
        recipient: Optional[Address] = None,
    ) -> TransferReceipt:
        return await self._submit(self._ledger.withdraw_request(subaccount, amount, recipient))

    async def transfer(
        self,
        from_subaccount: Subaccount,
        to_address: Address,
        to_subaccount_number: int,
        amount: AmountLike,
    ) -> TransferReceipt:
        request = self._ledger.transfer_request(
            from_subaccount, to_address, to_subaccount_number, amount
        )
        return await self._submit(request)

    async def _submit(self, request: TransferRequest) -> TransferReceipt:
        receipt = await self._endpoint.submit_transfer(request)
        logger.info(
            f"{request.kind.value} of {request.amount_quantums} quantums broadcast "
            f"(tx={receipt.tx_hash})"
        )
        if self._telemetry is not None:
            self._telemetry.log(
                "transfer_submitted",
                kind=request.kind.value,
                asset_id=request.asset_id,
                amount_quantums=request.amount_quantums,
                source=request.source.address,
                destination=request.destination.address,
                tx_hash=receipt.tx_hash,
            )
        return receipt
