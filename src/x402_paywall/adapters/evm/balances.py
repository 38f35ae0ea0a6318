"""
Multi-Chain Balance Aggregation

Reads the payer's asset balance on every chain a 402 response accepts. All
reads run concurrently; each requirement yields exactly one BalanceInfo, in
requirement order, and a failure on one chain never affects another entry.

Core Classes:
    - BalanceInfo: Balance or error of one accepted network
    - BalanceConfigEntry: Requirement paired with its resolved chain and asset
    - BalanceAggregator: Concurrent balanceOf/decimals reader

Dependencies:
    - web3: AsyncWeb3 contract calls against each chain's RPC endpoint
    - eth_utils: Address validation
"""

import asyncio
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from eth_utils import is_address
from pydantic import Field
from web3 import AsyncWeb3

from ...schemas.bases import CanonicalModel
from ...schemas.https import PaymentRequirement
from ...engine.exceptions import BalanceQueryError
from ...utils import logger
from .constants import ChainConfig
from .ERC20_ABI import get_balance_reader_abi
from .resolver import ChainResolver

MISSING_CHAIN_CONFIGURATION = "Missing chain configuration"
INVALID_ASSET_ADDRESS = "Invalid USDC address"
INVALID_WALLET_ADDRESS = "Invalid wallet address"
BALANCE_UNAVAILABLE = "Balance unavailable"
FAILED_TO_FETCH_BALANCE = "Failed to fetch balance"
UNKNOWN_CHAIN = "Unknown chain"


class BalanceInfo(CanonicalModel):
    """Balance of the payer on one accepted network.

    Exactly one of ``balance`` and ``error`` is meaningful.
    """
    network: Optional[str] = None
    chain_name: str = Field(..., alias="chainName")
    balance: Optional[float] = None
    error: Optional[str] = None


@dataclass
class BalanceConfigEntry:
    """One requirement with the chain and checksummed asset it is read from."""
    accept: PaymentRequirement
    config: Optional[ChainConfig] = None
    asset_address: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_readable(self) -> bool:
        return self.config is not None and self.asset_address is not None and self.error is None


def build_balance_configs(
    requirements: Sequence[PaymentRequirement],
    resolver: ChainResolver,
) -> List[BalanceConfigEntry]:
    """Resolve the chain and asset address of every requirement without any RPC."""
    entries: List[BalanceConfigEntry] = []
    for accept in requirements:
        config = resolver(accept)
        if config is None:
            entries.append(BalanceConfigEntry(accept=accept, error=MISSING_CHAIN_CONFIGURATION))
            continue
        if not is_address(config.asset_address):
            entries.append(BalanceConfigEntry(accept=accept, config=config, error=INVALID_ASSET_ADDRESS))
            continue
        entries.append(BalanceConfigEntry(
            accept=accept,
            config=config,
            asset_address=AsyncWeb3.to_checksum_address(config.asset_address),
        ))
    return entries


def build_balance_error(entry: BalanceConfigEntry, message: str) -> BalanceInfo:
    return BalanceInfo(
        network=entry.accept.network,
        chain_name=entry.config.name if entry.config is not None else UNKNOWN_CHAIN,
        balance=None,
        error=message,
    )


class BalanceAggregator:
    """
    Concurrent per-chain balance reader.

    Every readable entry issues ``balanceOf(address)`` and ``decimals()``
    against its own chain; all entries are awaited together with
    ``asyncio.gather``. Each read is retried ``retries`` times with an
    exponential delay before the entry is reported as failed.

    Attributes:
        retries: Extra attempts per read after the first failure
        request_timeout: HTTP timeout of each RPC request in seconds
        retry_delay: Delay before the first retry, doubled on each further retry
    """

    def __init__(self, retries: int = 2, request_timeout: float = 30, retry_delay: float = 0.5):
        self.retries = max(0, int(retries))
        self.request_timeout = request_timeout
        self.retry_delay = retry_delay

    def _get_web3_instance(self, chain_config: ChainConfig) -> AsyncWeb3:
        """
        Create an AsyncWeb3 instance connected to the chain's RPC endpoint.

        Args:
            chain_config: Chain whose ``rpc_url`` is used

        Returns:
            AsyncWeb3: Client bound to ``chain_config.rpc_url``
        """
        return AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(
            chain_config.rpc_url,
            request_kwargs={"timeout": self.request_timeout}
        ))

    async def _with_retry(self, label: str, call: Callable[[], Awaitable[Any]]) -> Any:
        attempt = 0
        while True:
            try:
                return await call()
            except Exception as exc:
                if attempt >= self.retries:
                    raise
                delay = self.retry_delay * (2 ** attempt)
                attempt += 1
                logger.debug("Retrying %s (attempt %d/%d): %s", label, attempt, self.retries, exc)
                if delay > 0:
                    await asyncio.sleep(delay)

    async def _read_entry(self, entry: BalanceConfigEntry, address: str) -> BalanceInfo:
        chain_name = entry.config.name
        try:
            web3 = self._get_web3_instance(entry.config)
            contract = web3.eth.contract(address=entry.asset_address, abi=get_balance_reader_abi())
            balance_raw, decimals_raw = await asyncio.gather(
                self._with_retry(f"balanceOf on {chain_name}", lambda: contract.functions.balanceOf(address).call()),
                self._with_retry(f"decimals on {chain_name}", lambda: contract.functions.decimals().call()),
            )
            balance = self._to_amount(balance_raw, decimals_raw)
        except BalanceQueryError as exc:
            logger.warning("Balance on %s unusable: %s", chain_name, exc)
            return build_balance_error(entry, BALANCE_UNAVAILABLE)
        except Exception as exc:
            logger.warning("Balance query on %s failed: %s", chain_name, exc)
            return build_balance_error(entry, str(exc) or FAILED_TO_FETCH_BALANCE)

        return BalanceInfo(
            network=entry.accept.network,
            chain_name=chain_name,
            balance=balance,
            error=None,
        )

    @staticmethod
    def _to_amount(balance_raw: Any, decimals_raw: Any) -> float:
        for value in (balance_raw, decimals_raw):
            if isinstance(value, bool) or not isinstance(value, int):
                raise BalanceQueryError(f"Non-numeric contract result: {value!r}")
        return float(Decimal(balance_raw) / (Decimal(10) ** int(decimals_raw)))

    async def fetch(
        self,
        requirements: Sequence[PaymentRequirement],
        resolver: ChainResolver,
        address: Optional[str],
        enabled: bool = True,
    ) -> List[BalanceInfo]:
        """
        Read the payer's balance for every accepted requirement.

        Args:
            requirements: ``accepts`` list of the 402 response
            resolver: Chain configuration inputs used to resolve each entry
            address: Connected wallet address
            enabled: When False nothing is read and ``[]`` is returned

        Returns:
            List[BalanceInfo]: One entry per requirement, in input order; ``[]``
            when disabled, without an address, or without requirements.
        """
        if not enabled or not address or not requirements:
            return []

        entries = build_balance_configs(requirements, resolver)

        if not is_address(address):
            logger.warning("Skipping balance reads for invalid address %r", address)
            return [build_balance_error(entry, entry.error or INVALID_WALLET_ADDRESS) for entry in entries]
        owner = AsyncWeb3.to_checksum_address(address)

        async def resolve_entry(entry: BalanceConfigEntry) -> BalanceInfo:
            if not entry.is_readable:
                return build_balance_error(entry, entry.error or MISSING_CHAIN_CONFIGURATION)
            return await self._read_entry(entry, owner)

        results = await asyncio.gather(*(resolve_entry(entry) for entry in entries))
        logger.debug("Fetched %d balance entries for %s", len(results), owner)
        return list(results)
