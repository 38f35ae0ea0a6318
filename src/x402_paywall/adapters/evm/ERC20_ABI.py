"""
USDC ERC20 Read-Only ABI Module

Simplified ABI fragments for the balance reads issued by the balance
aggregator.

Usage:
    from .ERC20_ABI import get_balance_abi, get_decimals_abi

    contract = web3.eth.contract(address=token_address, abi=get_balance_abi() + get_decimals_abi())
    balance = await contract.functions.balanceOf(account).call()
"""

from typing import Dict, Any, List


def get_balance_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for querying USDC token balance.

    Returns:
        List[Dict[str, Any]]: ABI for balanceOf function
    """
    return [
        {
            "name": "balanceOf",
            "type": "function",
            "stateMutability": "view",
            "inputs": [{"name": "account", "type": "address"}],
            "outputs": [{"name": "", "type": "uint256"}],
        }
    ]


def get_decimals_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for ERC20 `decimals()`.

    Returns:
        List[Dict[str, Any]]: ABI for decimals function
    """
    return [
        {
            "name": "decimals",
            "type": "function",
            "stateMutability": "view",
            "inputs": [],
            "outputs": [{"name": "", "type": "uint8"}],
        }
    ]


def get_balance_reader_abi() -> List[Dict[str, Any]]:
    """ABI covering both reads a balance query needs."""
    return get_balance_abi() + get_decimals_abi()
