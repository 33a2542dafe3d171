import json

import pytest
import requests
from urllib3.exceptions import ProtocolError

from kaspa_deposit.abort import AbortToken
from kaspa_deposit.config import WalletServiceConfig
from kaspa_deposit.errors import OperationAborted
from kaspa_deposit.rpc_client import (
    RPCError,
    RPCOutcomeUnknown,
    RPCTransportError,
    WalletRPCClient,
    format_rpc_hint,
    mask_secrets,
)


class FakeResponse:
    def __init__(self, body, status_code: int = 200) -> None:
        self._body = body
        self.status_code = status_code
        self.ok = status_code < 400
        self.url = "http://wallet.test"
        self.text = body if isinstance(body, str) else json.dumps(body)

    def json(self):
        if isinstance(self._body, str):
            raise ValueError("not json")
        return self._body


class FakeSession:
    def __init__(self, response=None, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.requests: list[dict] = []

    def post(self, url, data, headers, auth, timeout):
        self.requests.append({"url": url, "payload": json.loads(data), "auth": auth, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response

    def close(self) -> None:
        pass


def _client(session: FakeSession, **config) -> WalletRPCClient:
    client = WalletRPCClient(WalletServiceConfig(url="http://wallet.test", **config))
    client._session = session  # type: ignore[assignment]
    return client


def test_call_returns_result_and_sends_jsonrpc_envelope() -> None:
    session = FakeSession(FakeResponse({"jsonrpc": "2.0", "result": {"isConnected": True}}))
    client = _client(session, user="u", password="p", timeout=9.0)

    assert client.call("get_status", {"name": None}) == {"isConnected": True}

    sent = session.requests[0]
    assert sent["payload"]["method"] == "get_status"
    assert sent["payload"]["params"] == {"name": None}
    assert sent["auth"] == ("u", "p")
    assert sent["timeout"] == 9.0


def test_rpc_error_objects_raise_rpc_error() -> None:
    session = FakeSession(
        FakeResponse({"error": {"code": -32000, "message": "Insufficient funds"}}, status_code=500)
    )

    with pytest.raises(RPCError) as excinfo:
        _client(session).call("accounts_send", {})

    assert excinfo.value.code == -32000
    assert "Insufficient funds" in str(excinfo.value)


def test_connection_failures_become_transport_errors() -> None:
    session = FakeSession(error=requests.ConnectionError("refused"))

    with pytest.raises(RPCTransportError) as excinfo:
        _client(session).call("ping")

    assert "unreachable" in str(excinfo.value)
    assert not isinstance(excinfo.value, RPCOutcomeUnknown)


def test_read_timeout_after_dispatch_has_an_unknown_outcome() -> None:
    session = FakeSession(error=requests.ReadTimeout("read timed out"))

    with pytest.raises(RPCOutcomeUnknown) as excinfo:
        _client(session).call("accounts_send", {}, abort=AbortToken(timeout=5))

    assert "accounts_send was sent" in str(excinfo.value)
    assert "unreachable" not in str(excinfo.value)


def test_connection_dropped_mid_request_has_an_unknown_outcome() -> None:
    dropped = requests.ConnectionError(ProtocolError("Connection aborted.", ConnectionResetError()))
    session = FakeSession(error=dropped)

    with pytest.raises(RPCOutcomeUnknown) as excinfo:
        _client(session).call("accounts_send", {})

    assert "connection dropped" in str(excinfo.value)


def test_connect_timeout_means_nothing_was_sent() -> None:
    session = FakeSession(error=requests.ConnectTimeout("connect timed out"))

    with pytest.raises(RPCTransportError) as excinfo:
        _client(session).call("accounts_send", {})

    assert not isinstance(excinfo.value, RPCOutcomeUnknown)
    assert "unreachable" in str(excinfo.value)


@pytest.mark.parametrize("status_code", [401, 404])
def test_http_errors_become_transport_errors(status_code: int) -> None:
    session = FakeSession(FakeResponse("nope", status_code=status_code))

    with pytest.raises(RPCTransportError) as excinfo:
        _client(session).call("ping")

    assert excinfo.value.status_code == status_code


def test_malformed_json_has_an_unknown_outcome() -> None:
    session = FakeSession(FakeResponse("<html>"))

    with pytest.raises(RPCOutcomeUnknown):
        _client(session).call("ping")


def test_aborted_token_prevents_dispatch() -> None:
    session = FakeSession(FakeResponse({"result": None}))
    token = AbortToken()
    token.abort()

    with pytest.raises(OperationAborted):
        _client(session).call("accounts_send", {}, abort=token)

    assert session.requests == []


def test_token_deadline_caps_request_timeout() -> None:
    session = FakeSession(FakeResponse({"result": None}))
    token = AbortToken(timeout=5)

    _client(session, timeout=30.0).call("ping", abort=token)

    assert session.requests[0]["timeout"] <= 5


def test_mask_secrets_hides_nested_secret_fields() -> None:
    params = {"walletSecret": "pw", "paymentSecret": None, "destination": {"outputs": []}}

    assert mask_secrets(params) == {
        "walletSecret": "***",
        "paymentSecret": None,
        "destination": {"outputs": []},
    }


@pytest.mark.parametrize(
    "message, fragment",
    [
        ("Insufficient funds", "balance"),
        ("Storage mass exceeds maximum", "mass limit"),
        ("Invalid address", "--network"),
        ("wallet is not open", "--wallet-file"),
    ],
)
def test_format_rpc_hint(message: str, fragment: str) -> None:
    hint = format_rpc_hint(RPCError(-32000, message))

    assert hint is not None
    assert fragment in hint


def test_format_rpc_hint_unknown_errors() -> None:
    assert format_rpc_hint(None) is None
    assert format_rpc_hint({"code": 1, "message": "something else"}) is None


def test_token_deadline_only_caps_connecting_for_a_send() -> None:
    session = FakeSession(FakeResponse({"result": {}}))
    token = AbortToken(timeout=5)

    _client(session, timeout=30.0).call("accounts_send", {}, abort=token)

    connect_timeout, read_timeout = session.requests[0]["timeout"]
    assert connect_timeout <= 5
    assert read_timeout == 30.0
