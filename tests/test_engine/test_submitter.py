"""
Payment Submitter Test Suite

End-to-end tests of one payment attempt against a mocked resource server:
- Successful payment and success callback
- Wallet rejection, signing and network failures
- Entry guards and non-2xx responses
- Stale attempts and single-flight behaviour

Usage:
    pytest tests/test_engine/test_submitter.py -v
"""

from unittest.mock import AsyncMock, Mock

import httpx
import pytest
import pytest_asyncio
from web3 import AsyncWeb3

from test_mocks import (
    MOCK_BASE,
    MOCK_BASE_SEPOLIA,
    MOCK_PAYER_ADDRESS,
    MOCK_PAY_TO,
    MOCK_RESOURCE_URL,
    MOCK_SIGNATURE,
    MOCK_USDC_BASE_SEPOLIA,
    MockWallet,
    PaywallServer,
    WalletRpcError,
    create_mock_payment_required,
    create_mock_requirement,
    decode_payment_header,
)

from x402_paywall.adapters.evm.resolver import ResolvedPaymentContext, resolve_payment_context
from x402_paywall.engine.connector import WalletConnector
from x402_paywall.engine.exceptions import NetworkSwitchError, SubmissionError
from x402_paywall.engine.session import PaywallSession
from x402_paywall.engine.status import PaywallStatus
from x402_paywall.engine.submitter import (
    AWAITING_SIGNATURE_TEXT,
    CHECKING_NETWORK_TEXT,
    MISSING_DOMAIN_DETAILS,
    MISSING_REQUIRED_FIELDS,
    MISSING_REQUIREMENT_OR_CHAIN,
    PREPARING_TEXT,
    SUBMITTING_TEXT,
    TRANSACTION_REJECTED,
    VERIFICATION_FAILED,
    WALLET_NOT_CONNECTED,
    PaymentSubmitter,
    SuccessContext,
)


# ========================================================================
# Test Fixtures
# ========================================================================

@pytest.fixture
def on_error():
    return Mock()


@pytest.fixture
def session(on_error):
    """Session connected on Base Sepolia."""
    session = PaywallSession(on_error=on_error)
    session.set_account(MOCK_PAYER_ADDRESS, MOCK_BASE_SEPOLIA.chain_id)
    session.mark_connected()
    return session


@pytest.fixture
def server():
    return PaywallServer()


@pytest_asyncio.fixture
async def http_client(server):
    async with httpx.AsyncClient(transport=httpx.MockTransport(server)) as client:
        yield client


@pytest.fixture
def context():
    return resolve_payment_context(create_mock_payment_required())


def make_submitter(session, wallet, http_client, **kwargs):
    return PaymentSubmitter(session, wallet, http_client=http_client, **kwargs)


# ========================================================================
# Test Classes
# ========================================================================

class TestSuccessfulPayment:
    """Test the happy path of a payment attempt."""

    @pytest.mark.asyncio
    async def test_end_to_end_success(self, session, server, http_client, context):
        wallet = MockWallet()
        on_success = Mock()
        submitter = make_submitter(session, wallet, http_client, on_success=on_success)

        result = await submitter.submit(context, url=MOCK_RESOURCE_URL, x402_version=2)

        assert session.state.status == PaywallStatus.SUCCESS
        assert session.state.error_message == ""
        assert not session.lock.is_busy
        assert result.result == {"ok": True}

        on_success.assert_called_once()
        body, success_context = on_success.call_args.args
        assert body == {"ok": True}
        assert isinstance(success_context, SuccessContext)
        assert success_context.response.status_code == 200
        assert success_context.payment_header == result.payment_header

    @pytest.mark.asyncio
    async def test_paid_request_headers(self, session, server, http_client, context):
        submitter = make_submitter(session, MockWallet(), http_client)

        result = await submitter.submit(context, url=MOCK_RESOURCE_URL, x402_version=2)

        assert len(server.requests) == 1
        request = server.requests[0]
        assert request.method == "GET"
        assert str(request.url) == MOCK_RESOURCE_URL
        assert request.headers["PAYMENT-SIGNATURE"] == result.payment_header
        assert request.headers["X-PAYMENT-SIGNATURE"] == result.payment_header
        assert request.headers["Accept"] == "application/json"

    @pytest.mark.asyncio
    async def test_payment_payload(self, session, server, http_client, context):
        submitter = make_submitter(session, MockWallet(), http_client)

        await submitter.submit(context, url=MOCK_RESOURCE_URL, x402_version=2)

        payload = decode_payment_header(server.requests[0])
        assert payload["x402Version"] == 2
        assert payload["scheme"] == "exact"
        assert payload["network"] == "eip155:84532"
        assert payload["payload"]["signature"] == MOCK_SIGNATURE

        authorization = payload["payload"]["authorization"]
        assert authorization["from"] == MOCK_PAYER_ADDRESS
        assert authorization["to"] == MOCK_PAY_TO
        assert authorization["value"] == "2500"
        assert int(authorization["validBefore"]) - int(authorization["validAfter"]) == 3600 + 600
        assert len(authorization["nonce"]) == 66

    @pytest.mark.asyncio
    async def test_signed_typed_data(self, session, http_client, context):
        wallet = MockWallet()
        submitter = make_submitter(session, wallet, http_client)

        await submitter.submit(context, url=MOCK_RESOURCE_URL)

        address, typed_data = wallet.sign_calls[0]
        assert address == MOCK_PAYER_ADDRESS
        assert typed_data["primaryType"] == "TransferWithAuthorization"
        assert typed_data["domain"] == {
            "name": "USD Coin",
            "version": "2",
            "chainId": 84532,
            "verifyingContract": MOCK_USDC_BASE_SEPOLIA,
        }
        assert typed_data["message"]["value"] == 2500

    @pytest.mark.asyncio
    async def test_progress_texts_in_order(self, session, http_client, context):
        texts = []
        session.status.subscribe(lambda state: texts.append(state.processing_text))
        submitter = make_submitter(session, MockWallet(), http_client)

        await submitter.submit(context, url=MOCK_RESOURCE_URL)

        progress = [text for index, text in enumerate(texts) if index == 0 or texts[index - 1] != text]
        assert progress[-4:] == [CHECKING_NETWORK_TEXT, PREPARING_TEXT, AWAITING_SIGNATURE_TEXT, SUBMITTING_TEXT]

    @pytest.mark.asyncio
    async def test_original_request_is_preserved(self, session, server, http_client, context):
        submitter = make_submitter(
            session,
            MockWallet(),
            http_client,
            request_options={"method": "POST", "headers": {"X-Trace": "abc"}, "json": {"q": 1}},
        )

        await submitter.submit(context, url=MOCK_RESOURCE_URL)

        request = server.requests[0]
        assert request.method == "POST"
        assert request.headers["X-Trace"] == "abc"
        assert request.content == b'{"q":1}' or request.content == b'{"q": 1}'

    @pytest.mark.asyncio
    async def test_async_success_callback(self, session, http_client, context):
        on_success = AsyncMock()
        submitter = make_submitter(session, MockWallet(), http_client, on_success=on_success)

        await submitter.submit(context, url=MOCK_RESOURCE_URL)

        on_success.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_text_response_body(self, session, http_client, context, server):
        server.paid_body = "thanks"
        submitter = make_submitter(session, MockWallet(), http_client)

        result = await submitter.submit(context, url=MOCK_RESOURCE_URL)

        assert result.result == "thanks"

    @pytest.mark.asyncio
    async def test_short_lived_client(self, session, server, context, monkeypatch):
        transport = httpx.MockTransport(server)
        original = httpx.AsyncClient.__init__

        def init_with_transport(self, *args, **kwargs):
            kwargs.setdefault("transport", transport)
            original(self, *args, **kwargs)

        monkeypatch.setattr(httpx.AsyncClient, "__init__", init_with_transport)
        submitter = PaymentSubmitter(session, MockWallet())

        result = await submitter.submit(context, url=MOCK_RESOURCE_URL)

        assert result is not None
        assert len(server.requests) == 1


class TestNetworkSwitch:
    """Test the network verification step."""

    @pytest.mark.asyncio
    async def test_switches_when_on_other_chain(self, session, http_client, context):
        session.chain_id = MOCK_BASE.chain_id
        wallet = MockWallet(chain_id=MOCK_BASE.chain_id)

        await make_submitter(session, wallet, http_client).submit(context, url=MOCK_RESOURCE_URL)

        assert wallet.switch_calls == [MOCK_BASE_SEPOLIA]
        assert session.chain_id == MOCK_BASE_SEPOLIA.chain_id
        assert session.state.status == PaywallStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_switch_failure(self, session, server, http_client, context, on_error):
        session.chain_id = MOCK_BASE.chain_id
        wallet = MockWallet(switch_error=WalletRpcError(""))

        await make_submitter(session, wallet, http_client).submit(context, url=MOCK_RESOURCE_URL)

        assert session.state.status == PaywallStatus.ERROR
        assert session.state.error_message == "Please switch to Base Sepolia in your wallet."
        assert isinstance(on_error.call_args.args[0], NetworkSwitchError)
        assert wallet.sign_calls == []
        assert server.requests == []

    @pytest.mark.asyncio
    async def test_switch_rejection(self, session, server, http_client, context):
        session.chain_id = MOCK_BASE.chain_id
        wallet = MockWallet(switch_error=WalletRpcError("User rejected the request.", code=4001))

        await make_submitter(session, wallet, http_client).submit(context, url=MOCK_RESOURCE_URL)

        assert session.state.error_message == TRANSACTION_REJECTED
        assert server.requests == []


class TestFailures:
    """Test failures inside an attempt."""

    @pytest.mark.asyncio
    async def test_signing_rejected(self, session, server, http_client, context, on_error):
        rejection = WalletRpcError("MetaMask: request rejected", code=4001)
        wallet = MockWallet(sign_error=rejection)

        result = await make_submitter(session, wallet, http_client).submit(context, url=MOCK_RESOURCE_URL)

        assert result is None
        assert session.state.status == PaywallStatus.ERROR
        assert session.state.error_message == TRANSACTION_REJECTED
        assert not session.lock.is_busy
        assert server.requests == []
        on_error.assert_called_once_with(rejection)

    @pytest.mark.asyncio
    async def test_rejection_as_plain_mapping_code(self, session, server, http_client, context):
        class CodedError(Exception):
            code = 4001

        wallet = MockWallet(sign_error=CodedError())

        await make_submitter(session, wallet, http_client).submit(context, url=MOCK_RESOURCE_URL)

        assert session.state.error_message == TRANSACTION_REJECTED
        assert server.requests == []

    @pytest.mark.asyncio
    async def test_signing_failure_message(self, session, server, http_client, context):
        wallet = MockWallet(sign_error=RuntimeError("Ledger device locked"))

        await make_submitter(session, wallet, http_client).submit(context, url=MOCK_RESOURCE_URL)

        assert session.state.error_message == "Ledger device locked"
        assert server.requests == []

    @pytest.mark.asyncio
    async def test_signing_failure_without_message(self, session, http_client, context):
        wallet = MockWallet(sign_error=RuntimeError())

        await make_submitter(session, wallet, http_client).submit(context, url=MOCK_RESOURCE_URL)

        assert session.state.error_message == "Failed to sign payment"

    @pytest.mark.asyncio
    async def test_server_message_preferred(self, session, server, http_client, context, on_error):
        server.paid_status = 402
        server.paid_body = {"message": "Insufficient funds"}

        result = await make_submitter(session, MockWallet(), http_client).submit(context, url=MOCK_RESOURCE_URL)

        assert result is None
        assert session.state.status == PaywallStatus.ERROR
        assert session.state.error_message == "Insufficient funds"
        error = on_error.call_args.args[0]
        assert isinstance(error, SubmissionError)
        assert error.status_code == 402

    @pytest.mark.asyncio
    async def test_generic_verification_failure(self, session, server, http_client, context):
        server.paid_status = 500
        server.paid_body = "Internal Server Error"

        await make_submitter(session, MockWallet(), http_client).submit(context, url=MOCK_RESOURCE_URL)

        assert session.state.error_message == VERIFICATION_FAILED

    @pytest.mark.asyncio
    async def test_transport_failure(self, session, context):
        def refuse(request):
            raise httpx.ConnectError("Connection refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(refuse)) as client:
            await make_submitter(session, MockWallet(), client).submit(context, url=MOCK_RESOURCE_URL)

        assert session.state.status == PaywallStatus.ERROR
        assert session.state.error_message == "Connection refused"
        assert not session.lock.is_busy

    @pytest.mark.asyncio
    async def test_invalid_recipient(self, session, server, http_client):
        requirement = create_mock_requirement(payTo="0xnot-an-address")
        context = resolve_payment_context(create_mock_payment_required([requirement]))
        wallet = MockWallet()

        await make_submitter(session, wallet, http_client).submit(context, url=MOCK_RESOURCE_URL)

        assert session.state.status == PaywallStatus.ERROR
        assert wallet.sign_calls == []
        assert server.requests == []

    @pytest.mark.asyncio
    async def test_retry_after_error(self, session, server, http_client, context):
        wallet = MockWallet(sign_error=WalletRpcError("User rejected", code=4001))
        submitter = make_submitter(session, wallet, http_client)
        await submitter.submit(context, url=MOCK_RESOURCE_URL)

        wallet.sign_error = None
        result = await submitter.submit(context, url=MOCK_RESOURCE_URL)

        assert result is not None
        assert session.state.status == PaywallStatus.SUCCESS
        assert session.state.error_message == ""


class TestGuards:
    """Test preconditions checked before the lock is taken."""

    @pytest.mark.asyncio
    async def test_wallet_not_connected(self, server, http_client, context):
        session = PaywallSession()
        wallet = MockWallet()

        result = await make_submitter(session, wallet, http_client).submit(context, url=MOCK_RESOURCE_URL)

        assert result is None
        assert session.state.error_message == WALLET_NOT_CONNECTED
        assert session.lock.current_token == 0
        assert server.requests == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("context_factory, message", [
        (lambda: ResolvedPaymentContext(None, MOCK_BASE_SEPOLIA, "2500"), MISSING_REQUIREMENT_OR_CHAIN),
        (lambda: ResolvedPaymentContext(create_mock_requirement(), None, "2500"), MISSING_REQUIREMENT_OR_CHAIN),
        (
            lambda: resolve_payment_context(create_mock_payment_required([create_mock_requirement(payTo=None)])),
            MISSING_REQUIRED_FIELDS,
        ),
        (
            lambda: resolve_payment_context(create_mock_payment_required([create_mock_requirement(asset=None)])),
            MISSING_REQUIRED_FIELDS,
        ),
        (
            lambda: resolve_payment_context(create_mock_payment_required([
                create_mock_requirement(maxAmountRequired="not-a-number"),
            ])),
            MISSING_REQUIRED_FIELDS,
        ),
        (
            lambda: resolve_payment_context(create_mock_payment_required([create_mock_requirement(extra=None)])),
            MISSING_DOMAIN_DETAILS,
        ),
        (
            lambda: resolve_payment_context(create_mock_payment_required([
                create_mock_requirement(extra={"name": "USD Coin", "version": 2}),
            ])),
            MISSING_DOMAIN_DETAILS,
        ),
    ])
    async def test_guard_messages(self, session, server, http_client, context_factory, message):
        wallet = MockWallet()

        result = await make_submitter(session, wallet, http_client).submit(context_factory(), url=MOCK_RESOURCE_URL)

        assert result is None
        assert session.state.status == PaywallStatus.ERROR
        assert session.state.error_message == message
        assert wallet.sign_calls == []
        assert server.requests == []

    @pytest.mark.asyncio
    async def test_busy_lock_is_a_no_op(self, session, server, http_client, context):
        session.lock.begin()
        wallet = MockWallet()

        result = await make_submitter(session, wallet, http_client).submit(context, url=MOCK_RESOURCE_URL)

        assert result is None
        assert session.state.status == PaywallStatus.CONNECTED
        assert wallet.sign_calls == []

    @pytest.mark.asyncio
    async def test_no_payment_after_success(self, session, server, http_client, context):
        submitter = make_submitter(session, MockWallet(), http_client)
        await submitter.submit(context, url=MOCK_RESOURCE_URL)

        assert await submitter.submit(context, url=MOCK_RESOURCE_URL) is None
        assert len(server.requests) == 1


class TestStaleAttempts:
    """Test that superseded attempts drop their effects."""

    @pytest.mark.asyncio
    async def test_reset_during_signature(self, session, server, http_client, context, on_error):
        class ResettingWallet(MockWallet):
            async def sign_typed_data(self, address, typed_data):
                session.reset()
                return await super().sign_typed_data(address, typed_data)

        result = await make_submitter(session, ResettingWallet(), http_client).submit(context, url=MOCK_RESOURCE_URL)

        assert result is None
        assert session.state.status == PaywallStatus.CONNECT
        assert session.state.error_message == ""
        assert server.requests == []
        on_error.assert_not_called()

    @pytest.mark.asyncio
    async def test_failure_after_going_stale_is_silent(self, session, server, http_client, context, on_error):
        class ResettingWallet(MockWallet):
            async def sign_typed_data(self, address, typed_data):
                session.reset()
                raise RuntimeError("prompt closed")

        await make_submitter(session, ResettingWallet(), http_client).submit(context, url=MOCK_RESOURCE_URL)

        assert session.state.status == PaywallStatus.CONNECT
        on_error.assert_not_called()

    @pytest.mark.asyncio
    async def test_newer_action_keeps_its_lock(self, session, http_client, context):
        class ResettingWallet(MockWallet):
            async def sign_typed_data(self, address, typed_data):
                session.reset()
                session.lock.begin()
                return await super().sign_typed_data(address, typed_data)

        await make_submitter(session, ResettingWallet(), http_client).submit(context, url=MOCK_RESOURCE_URL)

        assert session.lock.is_busy

    @pytest.mark.asyncio
    async def test_duplicate_connect_during_signature(self, session, server, http_client, context, on_error):
        class ReconnectingWallet(MockWallet):
            async def sign_typed_data(self, address, typed_data):
                assert await WalletConnector().connect(session, self, MOCK_BASE_SEPOLIA)
                return await super().sign_typed_data(address, typed_data)

        on_success = Mock()
        submitter = make_submitter(session, ReconnectingWallet(), http_client, on_success=on_success)

        result = await submitter.submit(context, url=MOCK_RESOURCE_URL)

        assert result is None
        assert server.paid_requests == []
        assert session.state.status == PaywallStatus.CONNECTED
        assert session.state.error_message == ""
        assert not session.lock.is_busy
        on_success.assert_not_called()
        on_error.assert_not_called()

    @pytest.mark.asyncio
    async def test_account_switch_during_signature(self, session, server, http_client, context, on_error):
        other = AsyncWeb3.to_checksum_address("0x" + "5a" * 20)

        class SwitchingWallet(MockWallet):
            async def sign_typed_data(self, address, typed_data):
                await session.events.emit_accounts_changed([other])
                return await super().sign_typed_data(address, typed_data)

        result = await make_submitter(session, SwitchingWallet(), http_client).submit(context, url=MOCK_RESOURCE_URL)

        assert result is None
        assert server.paid_requests == []
        assert session.address == other
        assert session.state.status == PaywallStatus.CONNECTED
        on_error.assert_not_called()

    @pytest.mark.asyncio
    async def test_accepted_payment_succeeds_after_status_moved(self, session, server, http_client, context, on_error):
        class StatusMovingWallet(MockWallet):
            async def sign_typed_data(self, address, typed_data):
                session.status.set_status(PaywallStatus.CONNECTED)
                return await super().sign_typed_data(address, typed_data)

        on_success = Mock()
        submitter = make_submitter(session, StatusMovingWallet(), http_client, on_success=on_success)

        result = await submitter.submit(context, url=MOCK_RESOURCE_URL)

        assert result is not None
        assert len(server.paid_requests) == 1
        assert session.state.status == PaywallStatus.SUCCESS
        on_success.assert_called_once()
        on_error.assert_not_called()
