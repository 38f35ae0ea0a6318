"""
Paywall Session

Caller-owned context of one paywall: the connected address and chain, the
status machine and the action lock. Every core call receives the session
explicitly; nothing here is process-wide.
"""

from typing import Callable, List, Optional

from web3 import AsyncWeb3

from ..adapters.evm.constants import ChainConfig
from ..adapters.evm.resolver import ChainResolver
from ..adapters.evm.wallets import WalletClient
from ..utils import logger, shorten_address
from .events import AccountsChangedEvent, ChainChangedEvent, WalletEventBus
from .locks import ActionLock
from .status import ErrorCallback, PaywallState, PaywallStatus, PaywallStatusMachine


class PaywallSession:
    """
    Mutable state shared by the connect and payment flows.

    Args:
        resolver: Chain configuration inputs of the host application.
        on_error: Callback receiving the exception behind each error shown.
        events: Wallet event bus; the session subscribes to it on creation.
        status: Status machine; a new one is created when omitted.
        lock: Action lock; a new one is created when omitted.
    """

    def __init__(
        self,
        resolver: Optional[ChainResolver] = None,
        on_error: Optional[ErrorCallback] = None,
        events: Optional[WalletEventBus] = None,
        status: Optional[PaywallStatusMachine] = None,
        lock: Optional[ActionLock] = None,
    ) -> None:
        self.resolver = resolver or ChainResolver()
        self.status = status or PaywallStatusMachine(on_error=on_error)
        self.lock = lock or ActionLock()
        self.events = events or WalletEventBus()
        self.address: Optional[str] = None
        self.chain_id: Optional[int] = None
        self.target_chain: Optional[ChainConfig] = None
        self._unsubscribes: List[Callable[[], None]] = [
            self.events.on_accounts_changed(self._handle_accounts_changed),
            self.events.on_chain_changed(self._handle_chain_changed),
        ]

    @property
    def state(self) -> PaywallState:
        return self.status.state

    @property
    def is_connected(self) -> bool:
        return bool(self.address)

    def set_account(self, address: Optional[str], chain_id: Optional[int] = None) -> None:
        """Record the connected account (checksummed) and, when known, its chain."""
        self.address = AsyncWeb3.to_checksum_address(address) if address else None
        if chain_id is not None:
            self.chain_id = int(chain_id)

    def is_on_chain(self, chain_config: Optional[ChainConfig]) -> bool:
        return chain_config is not None and self.chain_id == chain_config.chain_id

    @property
    def on_target_chain(self) -> bool:
        """Whether the wallet is on the chain the last connect or payment targeted."""
        return self.is_on_chain(self.target_chain)

    def mark_connected(self) -> None:
        self.status.set_status(PaywallStatus.CONNECTED)

    def reset(self, status: PaywallStatus = PaywallStatus.CONNECT) -> None:
        """Invalidate any in-flight action and return to ``status``."""
        self.lock.reset()
        self.status.reset(status)

    def retry(self) -> None:
        """Clear an error and go back to the step the user can act on."""
        self.reset(PaywallStatus.CONNECTED if self.is_connected else PaywallStatus.CONNECT)

    async def disconnect(self, wallet: Optional[WalletClient] = None) -> None:
        """Disconnect ``wallet`` (when given) and drop the session's account."""
        try:
            if wallet is not None:
                await wallet.disconnect()
        finally:
            self.address = None
            self.chain_id = None
            self.reset(PaywallStatus.CONNECT)

    def close(self) -> None:
        """Stop reacting to wallet events."""
        for unsubscribe in self._unsubscribes:
            unsubscribe()
        self._unsubscribes.clear()

    async def _handle_accounts_changed(self, event: AccountsChangedEvent) -> None:
        if not event.accounts:
            logger.info("Wallet disconnected")
            self.address = None
            self.reset(PaywallStatus.CONNECT)
            return
        self.set_account(event.address)
        logger.info("Wallet account %s", shorten_address(self.address))
        if self.lock.is_busy:
            # the in-flight action was started for the previous account
            self.reset(PaywallStatus.CONNECTED)
        elif self.status.status != PaywallStatus.SUCCESS:
            self.mark_connected()

    async def _handle_chain_changed(self, event: ChainChangedEvent) -> None:
        self.chain_id = event.chain_id
        if self.target_chain is not None and not self.on_target_chain:
            logger.info(
                "Wallet moved to chain %s; payments target %s", event.chain_id, self.target_chain.chain_id
            )
