"""
EVM Chain Configuration

Provides the chain configuration model consumed by the payment workflow, the
built-in chain table keyed by CAIP-2 network identifier, and the protocol
constants of the transfer-with-authorization scheme.
"""

import os
from typing import Dict, Optional

from pydantic import ConfigDict, Field
import dotenv

from ...schemas.bases import CanonicalModel

dotenv.load_dotenv()


class ChainConfig(CanonicalModel):
    """EVM network configuration supplied by the caller. Never mutated by the core."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    chain_id: int = Field(..., alias="chainId", description="EIP-155 chain id")
    name: str = Field(..., description="Human-readable network name")
    asset_address: str = Field(..., alias="usdcAddress", description="Payment asset contract address")
    rpc_url: str = Field(..., alias="rpcUrl", description="JSON-RPC endpoint URL")
    block_explorer_url: Optional[str] = Field(default=None, alias="blockExplorerUrl", description="Block explorer URL")

    @property
    def network(self) -> str:
        """CAIP-2 identifier of this chain (``eip155:<chain_id>``)."""
        return f"eip155:{self.chain_id}"


# ---------------------------------------------------------------------------
# Transfer-with-authorization constants
# ---------------------------------------------------------------------------

#: Decimal places of the payment asset.
USDC_DECIMALS: int = 6

#: Seconds subtracted from ``now`` for ``validAfter`` to tolerate clock skew.
CLOCK_SKEW_SECONDS: int = 600

#: ``validBefore`` window used when a requirement carries no timeout.
DEFAULT_TIMEOUT_SECONDS: int = 3600

#: Only scheme this client signs.
EXACT_SCHEME: str = "exact"

#: Wallet-standard error code for a user-rejected request (EIP-1193).
USER_REJECTED_CODE: int = 4001

#: Wallet error code for a chain the wallet does not know yet (EIP-3326).
UNRECOGNIZED_CHAIN_CODE: int = 4902


# Raw chain configuration data keyed by CAIP-2 network identifier.
_EVM_CHAINS_DATA: Dict = {
    "eip155:8453": {
        "chainId": 8453,
        "name": "Base",
        "usdcAddress": "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
        "rpcUrl": "https://mainnet.base.org",
        "blockExplorerUrl": "https://basescan.org",
    },
    "eip155:84532": {
        "chainId": 84532,
        "name": "Base Sepolia",
        "usdcAddress": "0x036CbD53842c5426634e7929541eC2318f3dCF7e",
        "rpcUrl": "https://sepolia.base.org",
        "blockExplorerUrl": "https://sepolia.basescan.org",
    },
}

DEFAULT_CHAIN_CONFIGS: Dict[str, ChainConfig] = {
    network: ChainConfig(**data) for network, data in _EVM_CHAINS_DATA.items()
}


def get_private_key_from_env() -> Optional[str]:
    """
    Load the payer's EVM private key from environment variables.

    Environment Variable:
        - EVM_PRIVATE_KEY: 0x-prefixed hex private key used by LocalAccountWallet

    Returns:
        str: Private key from environment, or None if not configured

    Note:
        The private key should be stored securely in environment variables
        and never committed to version control.
    """
    return os.getenv("EVM_PRIVATE_KEY")
