"""
Payment Submission

Orchestrates one payment attempt: verify the wallet's network, build and
validate the transfer authorization, have the wallet sign it, and replay the
original request with the payment header.

Step order within an attempt:
    guards -> lock -> checking network -> preparing -> awaiting signature
           -> submitting -> success | error -> lock released

The action token is re-checked after every suspension point. A stale attempt
stops silently: it neither touches the session state nor issues further HTTP
calls. Every other failure ends in a single ``(status=error, message)`` state;
nothing escapes to the caller.

Core Classes:
    - PaymentSubmitter: Runs the attempt for a session and wallet
    - SuccessContext: Response and header handed to the success callback
    - PaymentResult: Outcome of a completed attempt
"""

import inspect
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import httpx
from web3 import AsyncWeb3

from ..adapters.evm.constants import ChainConfig
from ..adapters.evm.resolver import ResolvedPaymentContext
from ..adapters.evm.standards import (
    EIP712Domain,
    TransferWithAuthorizationMessage,
    build_transfer_authorization_typed_data,
    build_validity_window,
    generate_authorization_nonce,
    validate_typed_data,
)
from ..adapters.evm.wallets import WalletClient
from ..schemas.https import (
    ExactPaymentPayload,
    LEGACY_PAYMENT_SIGNATURE_HEADER,
    PAYMENT_SIGNATURE_HEADER,
    PaymentPayload,
    TransferAuthorization,
)
from ..utils import logger, shorten_address
from .classifier import error_message, is_user_rejection
from .exceptions import NetworkSwitchError, SignatureError, StaleActionDiscard, SubmissionError
from .session import PaywallSession
from .status import DEFAULT_ERROR_MESSAGE, PaywallStatus

WALLET_NOT_CONNECTED = "Wallet not connected."
MISSING_REQUIREMENT_OR_CHAIN = "Missing payment requirement or chain configuration."
MISSING_REQUIRED_FIELDS = "Payment requirement missing required fields."
MISSING_DOMAIN_DETAILS = "Payment requirement missing EIP-712 domain details."
TRANSACTION_REJECTED = "Transaction rejected by user"
VERIFICATION_FAILED = "Payment verification failed"
SIGNING_FAILED = "Failed to sign payment"
REQUEST_FAILED = "Payment request failed"

CHECKING_NETWORK_TEXT = "Checking network..."
PREPARING_TEXT = "Preparing payment..."
AWAITING_SIGNATURE_TEXT = "Please sign in your wallet..."
SUBMITTING_TEXT = "Submitting payment..."


@dataclass(frozen=True)
class SuccessContext:
    """Second argument of the success callback."""
    response: httpx.Response
    payment_header: str


@dataclass(frozen=True)
class PaymentResult:
    """
    Outcome of a completed payment attempt.

    Attributes:
        result: Response body, parsed JSON or raw text
        response: Response of the paid request
        payment_header: Header value sent with the paid request
        payload: Payment payload the header encodes
    """
    result: Any
    response: httpx.Response
    payment_header: str
    payload: PaymentPayload


SuccessCallback = Callable[[Any, SuccessContext], Any]


class PaymentSubmitter:
    """
    Runs payment attempts for one session and wallet.

    Args:
        session: Session providing the account, status machine and action lock.
        wallet: Wallet that switches chains and signs.
        http_client: Client used to replay the request; a short-lived
            ``httpx.AsyncClient`` is created per attempt when omitted.
        on_success: Called once per successful attempt with the parsed body
            and a ``SuccessContext``; may be a coroutine function.
        request_options: Options of the original request: ``method``,
            ``headers`` and any other ``httpx`` request keyword (``json``,
            ``content``, ``params``, ...).
        request_timeout: Timeout of the short-lived client in seconds.
    """

    def __init__(
        self,
        session: PaywallSession,
        wallet: WalletClient,
        http_client: Optional[httpx.AsyncClient] = None,
        on_success: Optional[SuccessCallback] = None,
        request_options: Optional[Dict[str, Any]] = None,
        request_timeout: float = 30.0,
    ) -> None:
        self.session = session
        self.wallet = wallet
        self.http_client = http_client
        self.on_success = on_success
        self.request_options = dict(request_options or {})
        self.request_timeout = request_timeout

    # ------------------------------------------------------------------
    # Entry guards
    # ------------------------------------------------------------------

    def _guard(self, context: ResolvedPaymentContext) -> Optional[str]:
        """Return the message of the first unmet precondition, None when all hold."""
        if not self.session.address:
            return WALLET_NOT_CONNECTED
        requirement = context.requirement
        if requirement is None or context.chain_config is None:
            return MISSING_REQUIREMENT_OR_CHAIN
        if not requirement.pay_to or not context.amount_atomic or not requirement.asset:
            return MISSING_REQUIRED_FIELDS
        if not requirement.domain_name or not requirement.domain_version:
            return MISSING_DOMAIN_DETAILS
        return None

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _ensure_chain(self, chain_config: ChainConfig) -> None:
        if self.session.chain_id == chain_config.chain_id:
            return
        try:
            await self.wallet.switch_chain(chain_config)
        except Exception as exc:
            raise NetworkSwitchError(
                error_message(exc, f"Please switch to {chain_config.name} in your wallet."),
                chain_id=chain_config.chain_id,
            ) from exc
        self.session.chain_id = chain_config.chain_id

    async def _sign(self, address: str, typed_data: Dict[str, Any]) -> str:
        try:
            return await self.wallet.sign_typed_data(address, typed_data)
        except SignatureError:
            raise
        except Exception as exc:
            if is_user_rejection(exc):
                raise
            raise SignatureError(error_message(exc, SIGNING_FAILED)) from exc

    async def _send(self, url: str, payment_header: str) -> httpx.Response:
        options = dict(self.request_options)
        method = options.pop("method", None) or "GET"
        headers = httpx.Headers(options.pop("headers", None))
        headers[LEGACY_PAYMENT_SIGNATURE_HEADER] = payment_header
        headers[PAYMENT_SIGNATURE_HEADER] = payment_header
        headers["Accept"] = "application/json"

        try:
            if self.http_client is not None:
                return await self.http_client.request(method, url, headers=headers, **options)
            async with httpx.AsyncClient(timeout=self.request_timeout) as client:
                return await client.request(method, url, headers=headers, **options)
        except httpx.HTTPError as exc:
            raise SubmissionError(error_message(exc, REQUEST_FAILED)) from exc

    @staticmethod
    def _failure_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return VERIFICATION_FAILED
        if isinstance(body, dict):
            message = body.get("message")
            if isinstance(message, str) and message:
                return message
        return VERIFICATION_FAILED

    @staticmethod
    def _parse_body(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return response.text

    # ------------------------------------------------------------------
    # Attempt
    # ------------------------------------------------------------------

    async def submit(
        self,
        context: ResolvedPaymentContext,
        *,
        url: str,
        x402_version: Optional[int] = None,
    ) -> Optional[PaymentResult]:
        """
        Run one payment attempt.

        Args:
            context: Requirement, chain and atomic amount of the attempt.
            url: URL of the protected resource to replay.
            x402_version: Protocol version announced by the 402 response.

        Returns:
            Optional[PaymentResult]: Result of a successful attempt; None when
            a guard failed, another action was in flight, the attempt went
            stale, or it failed (the session status then carries the error).
        """
        session = self.session
        status = session.status

        guard_message = self._guard(context)
        if guard_message:
            status.show_error(guard_message)
            return None
        if not status.can_transition(PaywallStatus.PROCESSING):
            logger.debug("Payment ignored in status %s", status.status.value)
            return None

        lock = session.lock
        token = lock.begin()
        if token is None:
            logger.debug("Payment ignored: another action is in flight")
            return None

        requirement = context.requirement
        chain_config = context.chain_config
        try:
            status.set_status(PaywallStatus.PROCESSING)
            status.set_processing_text(CHECKING_NETWORK_TEXT)
            session.target_chain = chain_config
            await self._ensure_chain(chain_config)
            lock.ensure_current(token)

            status.set_processing_text(PREPARING_TEXT)
            authorizer = AsyncWeb3.to_checksum_address(session.address)
            recipient = AsyncWeb3.to_checksum_address(requirement.pay_to)
            asset = AsyncWeb3.to_checksum_address(requirement.asset)
            valid_after, valid_before = build_validity_window(requirement.max_timeout_seconds)
            message = TransferWithAuthorizationMessage(
                authorizer=authorizer,
                recipient=recipient,
                value=int(context.amount_atomic),
                validAfter=valid_after,
                validBefore=valid_before,
                nonce=generate_authorization_nonce(),
            )
            domain = EIP712Domain(
                name=requirement.domain_name,
                version=requirement.domain_version,
                chainId=chain_config.chain_id,
                verifyingContract=asset,
            )

            status.set_processing_text(AWAITING_SIGNATURE_TEXT)
            typed_data = build_transfer_authorization_typed_data(domain, message)
            validate_typed_data(typed_data)

            logger.debug("Requesting signature from %s for %s atomic units", self.wallet.name, message.value)
            signature = await self._sign(authorizer, typed_data.to_dict())
            lock.ensure_current(token)

            status.set_processing_text(SUBMITTING_TEXT)
            payload = PaymentPayload(
                x402_version=x402_version,
                scheme=requirement.scheme,
                network=requirement.network,
                payload=ExactPaymentPayload(
                    signature=signature,
                    authorization=TransferAuthorization.model_validate(message.to_authorization()),
                ),
            )
            payment_header = payload.to_header()

            response = await self._send(url, payment_header)
            lock.ensure_current(token)

            if not response.is_success:
                raise SubmissionError(self._failure_message(response), status_code=response.status_code)

            result = self._parse_body(response)
            lock.ensure_current(token)

            status.set_status(PaywallStatus.SUCCESS)
            logger.info(
                "Payment from %s accepted by %s (%s)",
                shorten_address(authorizer), url, response.status_code,
            )
            if self.on_success is not None:
                outcome = self.on_success(result, SuccessContext(response=response, payment_header=payment_header))
                if inspect.isawaitable(outcome):
                    await outcome
            return PaymentResult(
                result=result,
                response=response,
                payment_header=payment_header,
                payload=payload,
            )
        except StaleActionDiscard:
            logger.warning("Discarding stale payment action %s", token)
            return None
        except Exception as exc:
            if lock.is_stale(token):
                logger.warning("Payment action %s failed after going stale: %s", token, exc)
                return None
            if is_user_rejection(exc):
                logger.info("Payment rejected in wallet")
                status.show_error(TRANSACTION_REJECTED, exc)
            else:
                logger.warning("Payment failed: %s", exc)
                status.show_error(error_message(exc, DEFAULT_ERROR_MESSAGE), exc)
            return None
        finally:
            lock.end(token)
