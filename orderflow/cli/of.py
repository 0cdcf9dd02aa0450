"""orderflow CLI entrypoint.

Read-only indexer queries for markets and subaccounts. Results are printed as JSON.

Subcommands: markets, orderbook, trades, candles, height (market data);
subaccounts, orders, positions, fills, pnl (account data).

The wallet address comes from --address or the `wallet_address` secret
(ORDERFLOW_SECRET_WALLET_ADDRESS).
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Optional, Sequence

from orderflow.adapters.env_provider import EnvSecretsProvider, MissingSecretError
from orderflow.adapters.indexer import CANDLE_RESOLUTIONS, IndexerClient
from orderflow.config.config_loader import ConfigLoader
from orderflow.config.configs import NetworkConfig
from orderflow.errors.errors import ConfigurationError, IndexerError
from orderflow.ports.secrets_provider import SecretsProvider

logger = logging.getLogger(__name__)

ACCOUNT_COMMANDS = ("subaccounts", "orders", "positions", "fills", "pnl")


def build_parser() -> argparse.ArgumentParser:
    """
    Return the top-level CLI argument parser.
    """
    p = argparse.ArgumentParser(prog="orderflow")
    p.add_argument("--config", type=Path, required=False, help="Path to a TOML config file")
    p.add_argument(
        "--network",
        choices=("testnet", "mainnet", "local"),
        default=None,
        help="Override [network].name from the config",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    # market data
    markets = sub.add_parser("markets", help="List perpetual markets")
    markets.add_argument("--ticker", default=None, help="Restrict to one market, e.g. ETH-USD")

    for name, help_text in (("orderbook", "Show the orderbook"), ("trades", "Recent trades")):
        sp = sub.add_parser(name, help=help_text)
        sp.add_argument("ticker", help="Market, e.g. ETH-USD")

    candles = sub.add_parser("candles", help="Candles for a market")
    candles.add_argument("ticker", help="Market, e.g. ETH-USD")
    candles.add_argument("--resolution", choices=CANDLE_RESOLUTIONS, default="1MIN")

    sub.add_parser("height", help="Latest block height seen by the indexer")

    # account data
    def add_account(sp: argparse.ArgumentParser, with_number: bool = True) -> None:
        """Add arguments shared across account subcommands."""
        sp.add_argument("--address", default=None, help="Wallet address (defaults to secret)")
        if with_number:
            sp.add_argument("--subaccount", type=int, default=0, help="Subaccount number")

    add_account(sub.add_parser("subaccounts", help="List subaccounts"), with_number=False)
    orders = sub.add_parser("orders", help="Orders of a subaccount")
    add_account(orders)
    orders.add_argument("--ticker", default=None)
    orders.add_argument("--status", default=None, help="e.g. OPEN, FILLED, CANCELED")
    positions = sub.add_parser("positions", help="Perpetual and asset positions")
    add_account(positions)
    add_account(sub.add_parser("fills", help="Fills of a subaccount"))
    add_account(sub.add_parser("pnl", help="Historical PnL of a subaccount"))
    return p


def _resolve_address(args: argparse.Namespace, secrets: SecretsProvider) -> str:
    if args.address:
        return args.address
    return secrets.get("wallet_address")


def run(args: argparse.Namespace, client: IndexerClient, secrets: SecretsProvider) -> Any:
    """Dispatch a parsed command and return its JSON-serializable result."""
    if args.command == "markets":
        return client.get_perpetual_markets(args.ticker)
    if args.command == "orderbook":
        return client.get_orderbook(args.ticker)
    if args.command == "trades":
        return client.get_trades(args.ticker)
    if args.command == "candles":
        return client.get_candles(args.ticker, args.resolution)
    if args.command == "height":
        return {"height": client.get_height()}

    address = _resolve_address(args, secrets)
    if args.command == "subaccounts":
        return client.get_subaccounts(address)
    if args.command == "orders":
        return client.get_orders(address, args.subaccount, ticker=args.ticker, status=args.status)
    if args.command == "positions":
        return {
            "perpetual": client.get_perpetual_positions(address, args.subaccount),
            "asset": client.get_asset_positions(address, args.subaccount),
        }
    if args.command == "fills":
        return client.get_fills(address, args.subaccount)
    if args.command == "pnl":
        return client.get_historical_pnl(address, args.subaccount)
    raise ValueError(f"Unknown command: {args.command}")


def main(
    argv: Optional[Sequence[str]] = None,
    client_factory: Callable[[NetworkConfig], IndexerClient] = IndexerClient,
    secrets: Optional[SecretsProvider] = None,
) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        app_cfg = ConfigLoader().load_app_config(
            str(args.config) if args.config else None, network=args.network
        )
    except (FileNotFoundError, ConfigurationError) as exc:
        print(f"orderflow: {exc}", file=sys.stderr)
        return 2

    client = client_factory(app_cfg.network)
    try:
        result = run(args, client, secrets or EnvSecretsProvider())
    except (IndexerError, MissingSecretError) as exc:
        print(f"orderflow: {exc}", file=sys.stderr)
        return 1
    finally:
        client.close()

    print(json.dumps(result, indent=2, sort_keys=True, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
