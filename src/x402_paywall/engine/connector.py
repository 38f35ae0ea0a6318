"""
Wallet Connect Flow

Connects a wallet for a payment under the session's action lock. A duplicate
connect that the wallet reports as "already connected" degrades to success,
and a connect on a connected session discards any in-flight action. A user
rejection gets a fixed message.
"""

from typing import Optional

from ..adapters.evm.constants import ChainConfig
from ..adapters.evm.wallets import WalletClient
from ..utils import logger, shorten_address
from .classifier import error_message, is_already_connected, is_user_rejection
from .exceptions import StaleActionDiscard
from .session import PaywallSession
from .status import PaywallStatus

MISSING_CHAIN_MESSAGE = "Missing chain configuration for this payment."
CONNECTION_REJECTED_MESSAGE = "Connection rejected by user"
CONNECTION_FAILED_MESSAGE = "Failed to connect wallet"


class WalletConnector:
    """Runs the connect flow of a session against one wallet."""

    async def connect(
        self,
        session: PaywallSession,
        wallet: WalletClient,
        chain_config: Optional[ChainConfig],
    ) -> bool:
        """
        Connect ``wallet`` and move it to ``chain_config``.

        Args:
            session: Session receiving the address, chain and status.
            wallet: Wallet to connect.
            chain_config: Chain the upcoming payment is made on.

        Returns:
            bool: True when the session ends up connected by this call.
        """
        if chain_config is None:
            session.status.show_error(MISSING_CHAIN_MESSAGE)
            return False
        session.target_chain = chain_config
        if session.is_connected:
            if session.lock.is_busy:
                logger.info("Connect during an in-flight action; discarding that action")
                session.reset(PaywallStatus.CONNECTED)
            else:
                session.mark_connected()
            return True

        lock = session.lock
        token = lock.begin()
        if token is None:
            logger.debug("Connect ignored: another action is in flight")
            return False

        try:
            session.status.set_status(PaywallStatus.PROCESSING)
            session.status.set_processing_text(f"Connecting {wallet.name}...")

            accounts = await wallet.request_accounts()
            lock.ensure_current(token)
            if not accounts:
                raise ValueError(CONNECTION_FAILED_MESSAGE)

            chain_id = await wallet.get_chain_id()
            lock.ensure_current(token)
            if chain_id != chain_config.chain_id:
                await wallet.switch_chain(chain_config)
                lock.ensure_current(token)
                chain_id = chain_config.chain_id

            session.set_account(accounts[0], chain_id)
            session.mark_connected()
            logger.info("Connected %s on %s", shorten_address(session.address), chain_config.name)
            return True
        except StaleActionDiscard:
            logger.warning("Discarding stale connect action %s", token)
            return False
        except Exception as exc:
            if is_already_connected(exc):
                session.mark_connected()
                return True
            if is_user_rejection(exc):
                session.status.show_error(CONNECTION_REJECTED_MESSAGE, exc)
            else:
                session.status.show_error(error_message(exc, CONNECTION_FAILED_MESSAGE), exc)
            return False
        finally:
            lock.end(token)
