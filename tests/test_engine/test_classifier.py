"""
Error Classifier Test Suite

Tests that wallet error shapes map onto rejection / already-connected /
generic failure without ever raising.
"""

import pytest

from test_mocks import WalletRpcError

from x402_paywall.engine.classifier import error_message, is_already_connected, is_user_rejection
from x402_paywall.engine.exceptions import NetworkSwitchError, UserRejectionError


class UserRejectedRequestError(Exception):
    pass


class ConnectorAlreadyConnectedError(Exception):
    pass


class ExplodingError(Exception):
    """Error whose attribute access and str() both fail."""

    def __getattribute__(self, name):
        if name in ("code", "message", "name", "error", "cause"):
            raise RuntimeError("no attributes")
        return super().__getattribute__(name)

    def __str__(self):
        raise RuntimeError("no message")


class TestIsUserRejection:
    """Test the rejection predicate."""

    @pytest.mark.parametrize("error", [
        UserRejectionError("declined"),
        WalletRpcError("denied", code=4001),
        {"code": 4001},
        {"name": "TransactionRejectedRpcError"},
        {"message": "MetaMask Tx Signature: User Rejected the request."},
        UserRejectedRequestError("nope"),
        Exception("user rejected transaction"),
    ])
    def test_rejection_shapes(self, error):
        assert is_user_rejection(error)

    @pytest.mark.parametrize("error", [
        None,
        "",
        Exception("insufficient funds"),
        WalletRpcError("Internal error", code=-32603),
        {"code": True},
        {"code": "4001"},
        42,
        object(),
    ])
    def test_other_shapes(self, error):
        assert not is_user_rejection(error)

    def test_nested_cause(self):
        try:
            try:
                raise WalletRpcError("User denied", code=4001)
            except WalletRpcError as exc:
                raise NetworkSwitchError("Please switch to Base in your wallet.") from exc
        except NetworkSwitchError as wrapped:
            assert is_user_rejection(wrapped)

    def test_nested_error_field(self):
        assert is_user_rejection({"message": "request failed", "error": {"code": 4001}})
        assert is_user_rejection({"cause": {"cause": {"name": "UserRejectedRequestError"}}})

    def test_cyclic_chain_terminates(self):
        first = {"message": "a"}
        second = {"message": "b", "cause": first}
        first["cause"] = second
        assert not is_user_rejection(first)

    def test_never_raises(self):
        assert is_user_rejection(ExplodingError()) is False
        assert is_already_connected(ExplodingError()) is False


class TestIsAlreadyConnected:
    """Test the duplicate-connect predicate."""

    def test_by_name(self):
        assert is_already_connected(ConnectorAlreadyConnectedError())

    def test_by_message(self):
        assert is_already_connected(Exception("Connector already connected."))
        assert is_already_connected({"message": "Already Connected"})

    def test_other_errors(self):
        assert not is_already_connected(None)
        assert not is_already_connected(Exception("connection refused"))
        assert not is_already_connected(WalletRpcError("denied", code=4001))


class TestErrorMessage:
    """Test message extraction."""

    def test_message_sources(self):
        assert error_message(Exception("boom"), "fallback") == "boom"
        assert error_message({"message": "from mapping"}, "fallback") == "from mapping"
        assert error_message("plain text", "fallback") == "plain text"

    def test_default(self):
        assert error_message(Exception(), "fallback") == "fallback"
        assert error_message(None, "fallback") == "fallback"
        assert error_message(ExplodingError(), "fallback") == "fallback"
