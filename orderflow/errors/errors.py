"""
Error taxonomy for the order and transfer layer.

Exception hierarchy:
- OrderflowError (base)
  - InvalidOrderParameters: order fields fail local validation
  - AllocatorExhausted: no free client id after bounded resampling
  - StaleReference: reference block height is older than allowed
  - InvalidCancelWindow: cancel window does not match the order class
  - InvalidTransition: state machine edge not allowed
  - PrecisionLoss: amount has more fractional digits than the asset supports
  - NegativeAmount: non-positive deposit/withdraw/transfer amount
  - AmountOverflow: quantums do not fit the venue's integer width
  - InvalidTransferRequest: incomplete source/destination
  - EndpointRejected: execution endpoint refused the request
  - Timeout: no acknowledgement within the caller's deadline
  - ConfigurationError: invalid configuration
  - IndexerError: indexer query failed

Local validation errors are raised before any network call.
"""

from __future__ import annotations

from typing import Any, Optional


class OrderflowError(Exception):
    """Base exception for all order/transfer errors."""

    def __init__(
        self,
        message: str,
        *,
        client_id: Optional[int] = None,
        market_id: Optional[str] = None,
        transition: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.client_id = client_id
        self.market_id = market_id
        self.transition = transition
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.client_id is not None:
            parts.append(f"[client_id={self.client_id}]")
        if self.market_id:
            parts.append(f"[market_id={self.market_id}]")
        if self.transition:
            parts.append(f"[transition={self.transition}]")
        if self.details:
            parts.append(f"[details={self.details}]")
        return " ".join(parts)


# --- Orders ---


class InvalidOrderParameters(OrderflowError):
    """Raised when price, size or window inputs are invalid."""

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        client_id: Optional[int] = None,
        market_id: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.field = field
        self.value = value
        details = details or {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, client_id=client_id, market_id=market_id, details=details)


class AllocatorExhausted(OrderflowError):
    """Raised when no free client id was found within the attempt budget."""

    def __init__(
        self,
        message: str,
        *,
        attempts: int,
        in_flight: int,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.attempts = attempts
        self.in_flight = in_flight
        details = details or {}
        details["attempts"] = attempts
        details["in_flight"] = in_flight
        super().__init__(message, details=details)


class StaleReference(OrderflowError):
    """Raised when a reference height is older than the configured max age."""

    def __init__(
        self,
        message: str,
        *,
        height: int,
        age_s: float,
        max_age_s: float,
        market_id: Optional[str] = None,
    ) -> None:
        self.height = height
        self.age_s = age_s
        self.max_age_s = max_age_s
        super().__init__(
            message,
            market_id=market_id,
            details={"height": height, "age_s": round(age_s, 3), "max_age_s": max_age_s},
        )


class InvalidCancelWindow(OrderflowError):
    """Raised when the supplied cancel window does not match the order flags."""

    def __init__(
        self,
        message: str,
        *,
        flags: Optional[str] = None,
        client_id: Optional[int] = None,
        market_id: Optional[str] = None,
    ) -> None:
        self.flags = flags
        details = {"flags": flags} if flags else None
        super().__init__(message, client_id=client_id, market_id=market_id, details=details)


class InvalidTransition(OrderflowError):
    """Raised when an order state change is not an edge of the state machine."""

    def __init__(
        self,
        message: str,
        *,
        current: str,
        target: str,
        client_id: Optional[int] = None,
        market_id: Optional[str] = None,
    ) -> None:
        self.current = current
        self.target = target
        super().__init__(
            message,
            client_id=client_id,
            market_id=market_id,
            transition=f"{current}->{target}",
        )


class EndpointRejected(OrderflowError):
    """Raised when the execution endpoint refuses a request."""

    def __init__(
        self,
        message: str,
        *,
        reason: str,
        client_id: Optional[int] = None,
        market_id: Optional[str] = None,
        transition: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.reason = reason
        details = details or {}
        details["reason"] = reason
        super().__init__(
            message,
            client_id=client_id,
            market_id=market_id,
            transition=transition,
            details=details,
        )


class Timeout(OrderflowError):
    """Raised when an endpoint call did not acknowledge in time."""


# --- Transfers ---


class PrecisionLoss(OrderflowError):
    """Raised when converting an amount would drop fractional digits."""

    def __init__(self, message: str, *, amount: Any, decimals: int) -> None:
        self.amount = amount
        self.decimals = decimals
        super().__init__(message, details={"amount": str(amount), "decimals": decimals})


class NegativeAmount(OrderflowError):
    """Raised for non-positive transfer amounts."""

    def __init__(self, message: str, *, amount: Any) -> None:
        self.amount = amount
        super().__init__(message, details={"amount": str(amount)})


class AmountOverflow(OrderflowError):
    """Raised when quantums exceed the venue's unsigned 64-bit range."""

    def __init__(self, message: str, *, quantums: int) -> None:
        self.quantums = quantums
        super().__init__(message, details={"quantums": str(quantums)})


class InvalidTransferRequest(OrderflowError):
    """Raised when a transfer request is built with a partial source/destination."""

    def __init__(self, message: str, *, field: Optional[str] = None) -> None:
        self.field = field
        super().__init__(message, details={"field": field} if field else None)


# --- Config / IO ---


class ConfigurationError(OrderflowError):
    """Raised when configuration is invalid."""

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        value: Optional[Any] = None,
    ) -> None:
        self.field = field
        self.value = value
        details: dict[str, Any] = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, details=details)


class IndexerError(OrderflowError):
    """Raised when an indexer REST query fails."""

    def __init__(
        self,
        message: str,
        *,
        path: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        self.path = path
        self.status_code = status_code
        details: dict[str, Any] = {}
        if path:
            details["path"] = path
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message, details=details)
