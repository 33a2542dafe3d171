from pathlib import Path

import pytest

from kaspa_deposit.abort import AbortToken
from kaspa_deposit.address import parse_address
from kaspa_deposit.errors import NoActiveAccountError
from kaspa_deposit.network import NetworkId
from kaspa_deposit.rpc_client import RPCOutcomeUnknown, RPCTransportError
from kaspa_deposit.secret import Secret
from kaspa_deposit.store import LocalStore
from kaspa_deposit.wallet import Fees, PaymentDestination, Wallet

ESCROW = "kaspa:prztt2hd2txge07syjvhaz5j6l9ql6djhc9equela058rjm6vww0uwre5dulh"


class RecordingRPC:
    def __init__(self, responses: dict | None = None) -> None:
        self.responses = responses or {}
        self.calls: list[tuple[str, dict | None]] = []
        self.aborts: list = []
        self.opened = False
        self.closed = False

    def open(self) -> None:
        self.opened = True

    def close(self) -> None:
        self.closed = True

    def call(self, method, params=None, *, abort=None):
        self.calls.append((method, params))
        self.aborts.append(abort)
        return self.responses.get(method)


ACCOUNTS = {
    "accountDescriptors": [
        {"accountId": "acc-1", "kind": "bip32", "receiveAddress": "kaspa:qr-first"},
        {"accountId": "acc-2", "kind": "bip32", "receiveAddress": "kaspa:qr-second"},
    ]
}


def _wallet(rpc: RecordingRPC, abort: AbortToken | None = None) -> Wallet:
    store = LocalStore(folder=Path("/wallets"), filename="kaspa.wallet")
    return Wallet(store, rpc, NetworkId.mainnet(), abort=abort)  # type: ignore[arg-type]


def _ready_wallet(rpc: RecordingRPC) -> Wallet:
    wallet = _wallet(rpc)
    wallet.accounts_enumerate()
    wallet.accounts_select("acc-1")
    wallet.accounts_activate(["acc-1"])
    return wallet


def test_start_pings_the_service() -> None:
    rpc = RecordingRPC()
    _wallet(rpc).start()

    assert rpc.opened
    assert rpc.calls[0][0] == "ping"


def test_connect_resolves_endpoint_and_network() -> None:
    rpc = RecordingRPC({"get_status": {"isConnected": True}})
    wallet = _wallet(rpc)

    wallet.connect("node.example", NetworkId.mainnet())

    method, params = rpc.calls[0]
    assert method == "connect"
    assert params["url"] == "ws://node.example:17110"
    assert params["networkId"] == "mainnet"
    assert wallet.is_connected() is True


def test_wallet_open_uses_store_filename_and_fixed_flags() -> None:
    rpc = RecordingRPC({"wallet_open": ACCOUNTS})
    wallet = _wallet(rpc)

    descriptors = wallet.wallet_open(Secret("pw"), None, True, False)

    _, params = rpc.calls[0]
    assert params == {
        "walletSecret": "pw",
        "filename": "kaspa.wallet",
        "accountDescriptors": True,
        "legacyAccounts": False,
    }
    assert [d.account_id for d in descriptors] == ["acc-1", "acc-2"]


def test_account_requires_selection_and_activation() -> None:
    rpc = RecordingRPC({"accounts_enumerate": ACCOUNTS})
    wallet = _wallet(rpc)
    wallet.accounts_enumerate()

    with pytest.raises(NoActiveAccountError):
        wallet.account()

    wallet.accounts_select("acc-1")
    with pytest.raises(NoActiveAccountError):
        wallet.account()

    wallet.accounts_activate(["acc-1"])
    assert wallet.account().descriptor.receive_address == "kaspa:qr-first"


def test_send_omits_payload_when_none() -> None:
    rpc = RecordingRPC(
        {
            "accounts_enumerate": ACCOUNTS,
            "accounts_send": {
                "generatorSummary": {"finalTransactionId": "ab" * 32, "numberOfGeneratedTransactions": 1},
                "transactionIds": ["ab" * 32],
            },
        }
    )
    account = _ready_wallet(rpc).account()
    destination = PaymentDestination.single(parse_address(ESCROW), 4_000_000_000)

    summary, ids = account.send(destination, Fees.from_sompi(0), None, Secret("pw"))

    _, params = rpc.calls[-1]
    assert "payload" not in params
    assert params["destination"] == {"outputs": [{"address": ESCROW, "amount": 4_000_000_000}]}
    assert params["priorityFeeSompi"] == {"senderPays": 0}
    assert params["paymentSecret"] is None
    assert summary.final_transaction_id == "ab" * 32
    assert ids == ["ab" * 32]


def test_send_attaches_payload_as_hex() -> None:
    rpc = RecordingRPC({"accounts_enumerate": ACCOUNTS, "accounts_send": {}})
    account = _ready_wallet(rpc).account()
    destination = PaymentDestination.single(parse_address(ESCROW), 1)

    summary, ids = account.send(destination, Fees.from_sompi(0), b"\x03\x00\x00\x00", Secret("pw"))

    _, params = rpc.calls[-1]
    assert params["payload"] == "03000000"
    assert summary.final_transaction_id is None
    assert ids == []


def test_fees_sign_convention() -> None:
    assert Fees.from_sompi(0).to_dict() == {"senderPays": 0}
    assert Fees.from_sompi(-5).to_dict() == {"receiverPays": 5}


def test_close_and_stop() -> None:
    rpc = RecordingRPC({"accounts_enumerate": ACCOUNTS})
    wallet = _ready_wallet(rpc)

    wallet.wallet_close()
    wallet.disconnect()
    wallet.stop()

    assert [method for method, _ in rpc.calls[-2:]] == ["wallet_close", "disconnect"]
    assert rpc.closed
    with pytest.raises(NoActiveAccountError):
        wallet.account()


@pytest.mark.parametrize(
    "response",
    [
        {"accountDescriptors": [{"kind": "bip32"}]},
        {"accountDescriptors": ["acc-1"]},
        {"accountDescriptors": "acc-1"},
        ["acc-1"],
    ],
)
def test_malformed_account_listing_is_a_transport_error(response) -> None:
    wallet = _wallet(RecordingRPC({"accounts_enumerate": response}))

    with pytest.raises(RPCTransportError) as excinfo:
        wallet.accounts_enumerate()

    assert "malformed" in str(excinfo.value) or "no account list" in str(excinfo.value)


def test_malformed_wallet_open_descriptors_are_a_transport_error() -> None:
    wallet = _wallet(RecordingRPC({"wallet_open": {"accountDescriptors": [{"accountName": "x"}]}}))

    with pytest.raises(RPCTransportError):
        wallet.wallet_open(Secret("pw"), None, True, False)


@pytest.mark.parametrize(
    "response",
    [
        "ab" * 32,
        {"generatorSummary": {"aggregateFees": "lots", "finalTransactionId": "ab" * 32}},
        {"generatorSummary": ["ab" * 32]},
    ],
)
def test_unreadable_send_reply_has_an_unknown_outcome(response) -> None:
    rpc = RecordingRPC({"accounts_enumerate": ACCOUNTS, "accounts_send": response})
    account = _ready_wallet(rpc).account()
    destination = PaymentDestination.single(parse_address(ESCROW), 1)

    with pytest.raises(RPCOutcomeUnknown) as excinfo:
        account.send(destination, Fees.from_sompi(0), None, Secret("pw"))

    assert "malformed accounts_send response" in str(excinfo.value)


def test_forward_calls_carry_the_abort_token_and_teardown_does_not() -> None:
    token = AbortToken()
    rpc = RecordingRPC({"accounts_enumerate": ACCOUNTS, "get_status": {"isConnected": True}})
    wallet = _wallet(rpc, abort=token)

    wallet.start()
    wallet.connect("node.example", NetworkId.mainnet())
    wallet.is_connected()
    wallet.accounts_enumerate()
    wallet.accounts_select("acc-1")
    wallet.accounts_activate(["acc-1"])
    forward = len(rpc.calls)
    wallet.wallet_close()
    wallet.disconnect()

    assert rpc.aborts[:forward] == [token] * forward
    assert rpc.aborts[forward:] == [None, None]
