"""
Wallet Adapters

Uniform async interface over the wallets that can authorize a payment.

Core Classes:
    - WalletClient: Abstract wallet used by the connect and payment flows
    - EIP1193Wallet: Drives any EIP-1193 provider (browser bridge, WalletConnect, ...)
    - LocalAccountWallet: Signs in-process with an ``eth_account`` private key

Dependencies:
    - eth_account: Local EIP-712 signing
    - web3: Address checksumming
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Protocol

from eth_account import Account
from web3 import AsyncWeb3

from ...engine.exceptions import ConfigurationError, SignatureError, UserRejectionError
from ...utils import logger
from .constants import ChainConfig, UNRECOGNIZED_CHAIN_CODE, USER_REJECTED_CODE, get_private_key_from_env
from .resolver import to_chain_id_hex


class EIP1193Provider(Protocol):
    """Minimal EIP-1193 surface: ``request({"method": ..., "params": [...]})``."""

    async def request(self, args: Mapping[str, Any]) -> Any:
        ...


class WalletClient(ABC):
    """Abstract wallet consumed by WalletConnector and PaymentSubmitter."""

    name: str = "Wallet"

    @abstractmethod
    async def request_accounts(self) -> List[str]:
        """Ask the wallet to expose its accounts; may prompt the user."""

    @abstractmethod
    async def get_chain_id(self) -> Optional[int]:
        """Chain the wallet is currently on."""

    @abstractmethod
    async def switch_chain(self, chain_config: ChainConfig) -> None:
        """Move the wallet to ``chain_config``; may prompt the user."""

    @abstractmethod
    async def sign_typed_data(self, address: str, typed_data: Dict[str, Any]) -> str:
        """Sign EIP-712 typed data as ``address`` and return the 0x-hex signature."""

    async def disconnect(self) -> None:
        return None


def _error_code(error: BaseException) -> Optional[int]:
    code = getattr(error, "code", None)
    if code is None and error.args and isinstance(error.args[0], Mapping):
        code = error.args[0].get("code")
    return code if isinstance(code, int) else None


class EIP1193Wallet(WalletClient):
    """
    Wallet backed by an EIP-1193 provider.

    Args:
        provider: Object exposing an async ``request`` method.
        name: Display name used in progress messages.
    """

    def __init__(self, provider: EIP1193Provider, name: str = "Injected wallet"):
        self.provider = provider
        self.name = name

    async def _request(self, method: str, params: Optional[List[Any]] = None) -> Any:
        args: Dict[str, Any] = {"method": method}
        if params is not None:
            args["params"] = params
        logger.debug("EIP-1193 request %s", method)
        try:
            return await self.provider.request(args)
        except Exception as exc:
            if _error_code(exc) == USER_REJECTED_CODE:
                raise UserRejectionError(str(exc) or "User rejected the request.") from exc
            raise

    async def request_accounts(self) -> List[str]:
        accounts = await self._request("eth_requestAccounts")
        return [str(account) for account in accounts or []]

    async def get_chain_id(self) -> Optional[int]:
        chain_id = await self._request("eth_chainId")
        if chain_id is None:
            return None
        if isinstance(chain_id, str):
            return int(chain_id, 16) if chain_id.lower().startswith("0x") else int(chain_id)
        return int(chain_id)

    async def switch_chain(self, chain_config: ChainConfig) -> None:
        chain_id_hex = to_chain_id_hex(chain_config.chain_id)
        try:
            await self._request("wallet_switchEthereumChain", [{"chainId": chain_id_hex}])
        except Exception as exc:
            if _error_code(exc) != UNRECOGNIZED_CHAIN_CODE:
                raise
            logger.info("Adding %s to wallet before switching", chain_config.name)
            params: Dict[str, Any] = {
                "chainId": chain_id_hex,
                "chainName": chain_config.name,
                "rpcUrls": [chain_config.rpc_url],
                "nativeCurrency": {"name": "Ether", "symbol": "ETH", "decimals": 18},
            }
            if chain_config.block_explorer_url:
                params["blockExplorerUrls"] = [chain_config.block_explorer_url]
            await self._request("wallet_addEthereumChain", [params])
            await self._request("wallet_switchEthereumChain", [{"chainId": chain_id_hex}])

    async def sign_typed_data(self, address: str, typed_data: Dict[str, Any]) -> str:
        signature = await self._request("eth_signTypedData_v4", [address, json.dumps(typed_data)])
        if not isinstance(signature, str) or not signature:
            raise SignatureError("Wallet returned an empty signature")
        return signature

    async def disconnect(self) -> None:
        disconnect = getattr(self.provider, "disconnect", None)
        if disconnect is None:
            return
        result = disconnect()
        if hasattr(result, "__await__"):
            await result


class LocalAccountWallet(WalletClient):
    """
    Wallet holding a private key in-process.

    The key is taken from ``private_key`` or, when omitted, from the
    ``EVM_PRIVATE_KEY`` environment variable. No RPC is used: switching chains
    only records the chain the next signature is made for.

    Raises:
        ConfigurationError: If no private key is available.
    """

    name = "Local account"

    def __init__(self, private_key: Optional[str] = None, chain_id: Optional[int] = None):
        resolved_pk = private_key or get_private_key_from_env()
        if not resolved_pk:
            raise ConfigurationError(
                "Private key not provided. Either pass 'private_key' or "
                "set the EVM_PRIVATE_KEY environment variable."
            )
        try:
            self.account = Account.from_key(resolved_pk)
        except (ValueError, TypeError) as exc:
            raise ConfigurationError("Invalid EVM private key") from exc
        self._private_key = resolved_pk
        self.address = AsyncWeb3.to_checksum_address(self.account.address)
        self._chain_id = chain_id

    async def request_accounts(self) -> List[str]:
        return [self.address]

    async def get_chain_id(self) -> Optional[int]:
        return self._chain_id

    async def switch_chain(self, chain_config: ChainConfig) -> None:
        self._chain_id = chain_config.chain_id

    async def sign_typed_data(self, address: str, typed_data: Dict[str, Any]) -> str:
        if address.lower() != self.address.lower():
            raise SignatureError(f"Cannot sign for {address}: wallet holds {self.address}")
        signed = Account.sign_typed_data(self._private_key, full_message=typed_data)
        return "0x" + bytes(signed.signature).hex()
