"""
HTTP 402 Payment Flow Middleware

Provides a transparent middleware layer for httpx that automatically pays
402 Payment Required responses with a signed transfer authorization and
replays the request.
"""

from typing import Any, Optional, Union

import httpx

from ..adapters.evm.resolver import ChainResolver, resolve_payment_context
from ..adapters.evm.wallets import WalletClient
from ..engine.connector import WalletConnector
from ..engine.session import PaywallSession
from ..engine.status import PaywallStatus
from ..engine.submitter import PaymentResult, PaymentSubmitter, SuccessCallback
from ..schemas.https import (
    LEGACY_PAYMENT_SIGNATURE_HEADER,
    PAYMENT_SIGNATURE_HEADER,
    decode_payment_required,
)
from ..utils import logger


class Http402Client(httpx.AsyncClient):
    """
    Extended httpx.AsyncClient with automatic 402 payment handling.

    When a response has status 402 the client:
    1. Decodes the payment requirements (``PAYMENT`` header or JSON body)
    2. Selects an accepted option and resolves its chain
    3. Connects the wallet if the session has no account yet
    4. Signs a transfer authorization and retries the original request
       with the payment header

    A response that could not be paid for is returned unchanged, so callers
    still see the original 402. Requests that already carry a payment header
    are never intercepted.

    Fully compatible with httpx.AsyncClient - supports all methods, properties,
    and can be used as an async context manager.

    Usage:
        ```python
        async with Http402Client(wallet=LocalAccountWallet()) as client:
            response = await client.get("https://api.example.com/paid")
        ```
    """

    def __init__(
        self,
        wallet: Optional[WalletClient] = None,
        session: Optional[PaywallSession] = None,
        resolver: Optional[ChainResolver] = None,
        accept_index: Union[int, float] = 0,
        on_success: Optional[SuccessCallback] = None,
        **kwargs
    ):
        """
        Initialize client with an optional paying wallet.

        Args:
            wallet: Wallet used to pay; without it 402 responses are returned as-is
            session: Session to pay in; a new one is created when omitted
            resolver: Chain configuration inputs for a new session
            accept_index: Index of the accepted option to pay with
            on_success: Success callback forwarded to PaymentSubmitter
            **kwargs: All standard httpx.AsyncClient arguments (timeout, headers, etc.)
        """
        super().__init__(**kwargs)
        self._wallet = wallet
        self.session = session or PaywallSession(resolver=resolver)
        self._accept_index = accept_index
        self._on_success = on_success
        self._connector = WalletConnector()
        self.last_payment: Optional[PaymentResult] = None

    # =========================================================================
    # Override httpx.AsyncClient.request to add 402 handling
    # =========================================================================

    async def request(
        self,
        method: str,
        url: httpx._types.URLTypes,
        **kwargs
    ) -> httpx.Response:
        """
        Execute HTTP request with automatic 402 handling.

        Overrides httpx.AsyncClient.request() to intercept 402 responses.
        All other httpx methods (get, post, etc.) automatically use this.
        """
        return await self._execute_with_402_handling(method, url, **kwargs)

    # =========================================================================
    # Core 402 Handling Logic
    # =========================================================================

    async def _execute_with_402_handling(
        self,
        method: str,
        url: httpx._types.URLTypes,
        **kwargs
    ) -> httpx.Response:
        """
        Execute request and automatically pay for 402 responses.

        Returns:
            The paid response, or the original response when no payment was made
        """
        response = await super().request(method, url, **kwargs)

        if response.status_code != 402 or self._wallet is None:
            return response
        if self._has_payment_header(kwargs.get("headers")):
            return response

        await response.aread()
        result = await self._handle_402_response(response, method, url, kwargs)
        if result is None:
            logger.warning("402 from %s was not paid: %s", url, self.session.state.error_message or "no payment made")
            return response
        await response.aclose()
        return result.response

    async def _handle_402_response(
        self,
        response: httpx.Response,
        method: str,
        url: httpx._types.URLTypes,
        request_kwargs: dict,
    ) -> Optional[PaymentResult]:
        """
        Pay for a 402 response.

        Args:
            response: 402 HTTP response
            method: Method of the original request
            url: URL of the original request
            request_kwargs: Keyword arguments of the original request

        Returns:
            Result of the payment, or None when nothing was paid
        """
        payment_required = decode_payment_required(response)
        if payment_required is None:
            logger.warning("402 from %s carries no readable payment requirement", url)
            return None

        session = self.session
        context = resolve_payment_context(payment_required, self._accept_index, session.resolver)

        if session.status.status in (PaywallStatus.SUCCESS, PaywallStatus.ERROR):
            session.retry()
        if not session.is_connected:
            connected = await self._connector.connect(session, self._wallet, context.chain_config)
            if not connected:
                return None

        submitter = PaymentSubmitter(
            session,
            self._wallet,
            http_client=self,
            on_success=self._on_success,
            request_options={"method": method, **request_kwargs},
        )
        result = await submitter.submit(
            context,
            url=str(url),
            x402_version=payment_required.x402_version,
        )
        if result is not None:
            self.last_payment = result
        return result

    # =========================================================================
    # Utility Methods
    # =========================================================================

    @staticmethod
    def _has_payment_header(headers: Any) -> bool:
        if not headers:
            return False
        names = {name.lower() for name in httpx.Headers(headers).keys()}
        return PAYMENT_SIGNATURE_HEADER.lower() in names or LEGACY_PAYMENT_SIGNATURE_HEADER.lower() in names
