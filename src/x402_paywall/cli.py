"""
Command-line interface for paying x402-protected resources.

    x402-paywall fetch URL [--accept-index N] [--method M] [--show-balances]
    x402-paywall balances URL
"""

import argparse
import asyncio
import json
from typing import List, Optional, Sequence

import httpx

from .adapters.evm.amounts import format_amount, to_display
from .adapters.evm.balances import BalanceAggregator, BalanceInfo
from .adapters.evm.resolver import ChainResolver, pick_requirement
from .adapters.evm.wallets import LocalAccountWallet
from .clients.http_client import Http402Client
from .config import PaywallSettings, load_settings
from .engine.exceptions import ConfigurationError
from .engine.session import PaywallSession
from .schemas.https import PaymentRequiredResponse, decode_payment_required
from .utils import logger, setup_logger, shorten_address


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="x402-paywall",
        description="Pay for x402-protected HTTP resources with a USDC transfer authorization",
    )
    parser.add_argument(
        "--env-file",
        default=None,
        help="Path to a .env file holding EVM_PRIVATE_KEY and X402_* settings",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Python logging level (default: X402_LOG_LEVEL or INFO)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    fetch = subparsers.add_parser("fetch", help="Request a resource, paying on 402")
    fetch.add_argument("url")
    fetch.add_argument("--method", default="GET", help="HTTP method (default: GET)")
    fetch.add_argument("--accept-index", type=int, default=None, help="Accepted option to pay with")
    fetch.add_argument("--data", default=None, help="JSON request body")
    fetch.add_argument(
        "--show-balances",
        action="store_true",
        default=None,
        help="Print the payer's balance on every accepted chain before paying",
    )

    balances = subparsers.add_parser("balances", help="Show balances for the chains a resource accepts")
    balances.add_argument("url")
    balances.add_argument("--method", default="GET", help="HTTP method (default: GET)")
    balances.add_argument("--address", default=None, help="Address to inspect (default: the EVM_PRIVATE_KEY account)")
    return parser


async def _probe(url: str, method: str, timeout: float) -> Optional[PaymentRequiredResponse]:
    async with httpx.AsyncClient(timeout=timeout) as client:
        response = await client.request(method, url)
    if response.status_code != 402:
        logger.info("%s answered %s; no payment required", url, response.status_code)
        return None
    return decode_payment_required(response)


def _print_balances(entries: List[BalanceInfo]) -> None:
    for entry in entries:
        if entry.error:
            print(f"  {entry.chain_name} ({entry.network}): {entry.error}")
        else:
            print(f"  {entry.chain_name} ({entry.network}): {format_amount(entry.balance)} USDC")


async def _show_balances(url: str, method: str, settings: PaywallSettings, address: str) -> None:
    payment_required = await _probe(url, method, settings.request_timeout)
    if payment_required is None:
        return
    aggregator = BalanceAggregator(retries=settings.balance_retries, request_timeout=settings.request_timeout)
    entries = await aggregator.fetch(
        payment_required.accepts,
        ChainResolver(),
        address,
        enabled=settings.show_balances,
    )
    requirement = pick_requirement(payment_required.accepts, settings.accept_index)
    if requirement is not None:
        print(f"Price: {to_display(requirement.required_amount)} USDC on {requirement.network}")
    print(f"Balances of {shorten_address(address)}:")
    _print_balances(entries)


async def _fetch(args: argparse.Namespace, settings: PaywallSettings) -> int:
    wallet = LocalAccountWallet(settings.private_key)
    if settings.show_balances:
        await _show_balances(args.url, args.method, settings, wallet.address)

    request_kwargs = {}
    if args.data is not None:
        request_kwargs["json"] = json.loads(args.data)

    session = PaywallSession()
    async with Http402Client(
        wallet=wallet,
        session=session,
        accept_index=settings.accept_index,
        timeout=settings.request_timeout,
    ) as client:
        response = await client.request(args.method, args.url, **request_kwargs)

    if session.state.error_message:
        logger.error("Payment failed: %s", session.state.error_message)
    print(f"HTTP {response.status_code}")
    print(response.text)
    return 0 if response.is_success else 1


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    overrides = {"log_level": args.log_level}
    if args.command == "fetch":
        overrides["accept_index"] = args.accept_index
        overrides["show_balances"] = args.show_balances

    try:
        settings = load_settings(env_file=args.env_file, overrides=overrides)
    except ConfigurationError as exc:
        setup_logger("ERROR")
        logger.error("Invalid configuration: %s", exc)
        return 2
    setup_logger(settings.log_level)

    try:
        if args.command == "fetch":
            return asyncio.run(_fetch(args, settings))
        address = args.address or LocalAccountWallet(settings.private_key).address
        settings = settings.model_copy(update={"show_balances": True})
        asyncio.run(_show_balances(args.url, args.method, settings, address))
        return 0
    except ConfigurationError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2
    except (httpx.HTTPError, ValueError) as exc:
        logger.error("Request failed: %s", exc)
        return 1


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
