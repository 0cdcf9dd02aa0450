"""
Indexer REST adapter.

Read-only queries against the venue's indexer: subaccounts, positions, orders, fills,
historical PnL and market data. Also provides the HeightOracle used to stamp
short-term order windows.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Optional

import requests

from orderflow.config.configs import NetworkConfig
from orderflow.errors.errors import IndexerError
from orderflow.types.aliases import Address, MarketId

logger = logging.getLogger(__name__)

CANDLE_RESOLUTIONS = ("1MIN", "5MINS", "15MINS", "30MINS", "1HOUR", "4HOURS", "1DAY")


class IndexerClient:
    """
    Thin synchronous client for the indexer REST API.

    GETs are idempotent, so transport errors and 429/5xx answers are retried up to
    `cfg.retries` extra times. Anything else non-2xx raises IndexerError.
    """

    def __init__(
        self,
        cfg: Optional[NetworkConfig] = None,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._cfg = cfg or NetworkConfig()
        self._base_url = str(self._cfg.indexer_url).rstrip("/")
        self._session = session or requests.Session()
        self._session.headers["User-Agent"] = "orderflow-indexer/1.0"
        self._sleep = sleep

    @property
    def base_url(self) -> str:
        return self._base_url

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "IndexerClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # --- Account ---

    def get_subaccounts(self, address: Address) -> list[dict[str, Any]]:
        return self._get(f"/addresses/{address}").get("subaccounts", [])

    def get_subaccount(self, address: Address, subaccount_number: int) -> dict[str, Any]:
        path = f"/addresses/{address}/subaccountNumber/{subaccount_number}"
        return self._get(path).get("subaccount", {})

    def get_asset_positions(self, address: Address, subaccount_number: int) -> list[dict[str, Any]]:
        params = {"address": address, "subaccountNumber": subaccount_number}
        return self._get("/assetPositions", params).get("positions", [])

    def get_perpetual_positions(
        self, address: Address, subaccount_number: int
    ) -> list[dict[str, Any]]:
        params = {"address": address, "subaccountNumber": subaccount_number}
        return self._get("/perpetualPositions", params).get("positions", [])

    def get_orders(
        self,
        address: Address,
        subaccount_number: int,
        ticker: Optional[MarketId] = None,
        status: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"address": address, "subaccountNumber": subaccount_number}
        if ticker:
            params["ticker"] = ticker
        if status:
            params["status"] = status
        data = self._get("/orders", params)
        # the endpoint returns a bare list
        return data if isinstance(data, list) else data.get("orders", [])

    def get_fills(self, address: Address, subaccount_number: int) -> list[dict[str, Any]]:
        params = {"address": address, "subaccountNumber": subaccount_number}
        return self._get("/fills", params).get("fills", [])

    def get_historical_pnl(self, address: Address, subaccount_number: int) -> list[dict[str, Any]]:
        params = {"address": address, "subaccountNumber": subaccount_number}
        return self._get("/historical-pnl", params).get("historicalPnl", [])

    # --- Markets ---

    def get_perpetual_markets(self, ticker: Optional[MarketId] = None) -> dict[str, Any]:
        params = {"ticker": ticker} if ticker else None
        return self._get("/perpetualMarkets", params).get("markets", {})

    def get_orderbook(self, ticker: MarketId) -> dict[str, list[dict[str, Any]]]:
        data = self._get(f"/orderbooks/perpetualMarket/{ticker}")
        return {"bids": data.get("bids", []), "asks": data.get("asks", [])}

    def get_trades(self, ticker: MarketId) -> list[dict[str, Any]]:
        return self._get(f"/trades/perpetualMarket/{ticker}").get("trades", [])

    def get_candles(self, ticker: MarketId, resolution: str = "1MIN") -> list[dict[str, Any]]:
        if resolution not in CANDLE_RESOLUTIONS:
            raise ValueError(f"Unsupported candle resolution: {resolution}")
        path = f"/candles/perpetualMarkets/{ticker}"
        return self._get(path, {"resolution": resolution}).get("candles", [])

    # --- Chain ---

    def get_height(self) -> int:
        data = self._get("/height")
        try:
            return int(data["height"])
        except (KeyError, TypeError, ValueError) as exc:
            raise IndexerError("Malformed /height response", path="/height") from exc

    # --- HTTP ---

    def _get(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        url = f"{self._base_url}{path}"
        attempts = 1 + self._cfg.retries
        delay = 0.5
        last_status: Optional[int] = None

        for attempt in range(attempts):
            retryable = False
            try:
                response = self._session.get(url, params=params, timeout=self._cfg.timeout_s)
            except requests.RequestException as exc:
                retryable = True
                last_status = None
                logger.warning(f"[indexer] {type(exc).__name__} GET {path}")
                if attempt == attempts - 1:
                    raise IndexerError(f"GET {path} failed: {exc}", path=path) from exc
            else:
                last_status = response.status_code
                if 200 <= last_status < 300:
                    logger.debug(
                        "indexer_get",
                        extra={"event": "indexer_get", "path": path, "status": last_status},
                    )
                    try:
                        return response.json()
                    except ValueError as exc:
                        raise IndexerError(
                            f"GET {path} returned invalid JSON", path=path, status_code=last_status
                        ) from exc
                retryable = last_status == 429 or 500 <= last_status < 600
                logger.warning(f"[indexer] GET {path} -> {last_status}")

            if not retryable or attempt == attempts - 1:
                break
            self._sleep(delay)
            delay = min(4.0, delay * 2)

        raise IndexerError(
            f"GET {path} failed with status {last_status}", path=path, status_code=last_status
        )


class IndexerHeightOracle:
    """HeightOracle backed by the indexer's /height endpoint."""

    def __init__(self, client: IndexerClient) -> None:
        self._client = client

    async def latest_height(self) -> int:
        return await asyncio.to_thread(self._client.get_height)
