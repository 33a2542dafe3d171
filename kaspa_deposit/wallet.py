"""Wallet provider backed by the Kaspa wallet service.

:class:`Wallet` mirrors the rusty-kaspa wallet API one call at a time so the
session establisher can drive it step by step. Each method maps onto a single
JSON-RPC request; the class keeps only the local bookkeeping needed to know
which account is selected and active.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Protocol, Sequence

from .abort import AbortToken
from .address import Address
from .errors import NoActiveAccountError
from .network import NetworkId, NodeResolver
from .rpc_client import RPCOutcomeUnknown, RPCTransportError, WalletRPCClient
from .secret import Secret
from .store import LocalStore
from .summary import GeneratorSummary

logger = logging.getLogger(__name__)


@dataclass
class AccountDescriptor:
    account_id: str
    kind: str | None = None
    account_name: str | None = None
    receive_address: str | None = None
    change_address: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AccountDescriptor":
        if not isinstance(data, dict) or not data.get("accountId"):
            raise RPCTransportError(f"malformed account descriptor in wallet response: {data!r}")
        return cls(
            account_id=str(data["accountId"]),
            kind=data.get("kind"),
            account_name=data.get("accountName"),
            receive_address=data.get("receiveAddress"),
            change_address=data.get("changeAddress"),
        )


@dataclass(frozen=True)
class Fees:
    """Priority fee policy on top of the network minimum fee.

    Non-negative amounts are paid by the sender, negative ones are deducted
    from the output (receiver pays).
    """

    kind: str
    amount: int

    @classmethod
    def from_sompi(cls, value: int) -> "Fees":
        if value < 0:
            return cls("receiverPays", -value)
        return cls("senderPays", value)

    def to_dict(self) -> dict[str, int]:
        return {self.kind: self.amount}


@dataclass(frozen=True)
class PaymentOutput:
    address: Address
    amount: int

    def to_dict(self) -> dict[str, Any]:
        return {"address": str(self.address), "amount": self.amount}


@dataclass(frozen=True)
class PaymentDestination:
    outputs: tuple[PaymentOutput, ...] = field(default_factory=tuple)

    @classmethod
    def single(cls, address: Address, amount: int) -> "PaymentDestination":
        return cls((PaymentOutput(address, amount),))

    def to_dict(self) -> dict[str, Any]:
        return {"outputs": [output.to_dict() for output in self.outputs]}


class SigningAccount(Protocol):
    descriptor: AccountDescriptor

    def send(
        self,
        destination: PaymentDestination,
        priority_fee: Fees,
        payload: bytes | None,
        wallet_secret: Secret,
        payment_secret: Secret | None = None,
        abort: AbortToken | None = None,
    ) -> tuple[GeneratorSummary, list[str]]:
        ...


class WalletProvider(Protocol):
    """The wallet surface the session establisher and deposit builder consume."""

    def start(self) -> None: ...

    def stop(self) -> None: ...

    def connect(self, url: str, network_id: NetworkId) -> None: ...

    def disconnect(self) -> None: ...

    def is_connected(self) -> bool: ...

    def wallet_open(
        self,
        wallet_secret: Secret,
        filename: str | None,
        account_descriptors: bool,
        legacy_accounts: bool,
    ) -> list[AccountDescriptor] | None: ...

    def wallet_close(self) -> None: ...

    def accounts_enumerate(self) -> list[AccountDescriptor]: ...

    def accounts_select(self, account_id: str | None) -> None: ...

    def accounts_activate(self, account_ids: Sequence[str] | None) -> None: ...

    def account(self) -> SigningAccount: ...


class Account:
    """Handle on the wallet's selected and activated account."""

    def __init__(self, rpc: WalletRPCClient, descriptor: AccountDescriptor) -> None:
        self.rpc = rpc
        self.descriptor = descriptor

    def send(
        self,
        destination: PaymentDestination,
        priority_fee: Fees,
        payload: bytes | None,
        wallet_secret: Secret,
        payment_secret: Secret | None = None,
        abort: AbortToken | None = None,
    ) -> tuple[GeneratorSummary, list[str]]:
        """Sign and submit a payment, returning the summary and generated ids."""

        params: dict[str, Any] = {
            "accountId": self.descriptor.account_id,
            "walletSecret": wallet_secret.expose(),
            "paymentSecret": payment_secret.expose() if payment_secret is not None else None,
            "destination": destination.to_dict(),
            "priorityFeeSompi": priority_fee.to_dict(),
        }
        if payload is not None:
            params["payload"] = payload.hex()
        result = self.rpc.call("accounts_send", params, abort=abort) or {}
        # Anything unreadable here arrived after the wallet accepted the request.
        try:
            if not isinstance(result, dict):
                raise TypeError(f"expected an object, got {type(result).__name__}")
            summary = GeneratorSummary.from_dict(result.get("generatorSummary") or {})
            transaction_ids = [str(txid) for txid in result.get("transactionIds") or []]
        except (AttributeError, TypeError, ValueError) as exc:
            raise RPCOutcomeUnknown(f"malformed accounts_send response: {exc}") from exc
        logger.info("Wallet generated %d transaction(s)", len(transaction_ids))
        return summary, transaction_ids


class Wallet:
    """Wallet bound to a local store, a network and a node resolver.

    ``abort`` is checked before every call that moves the wallet forward.
    Closing, disconnecting and stopping ignore it so a cancelled run still
    cleans up after itself.
    """

    def __init__(
        self,
        store: LocalStore,
        rpc: WalletRPCClient,
        network_id: NetworkId,
        resolver: NodeResolver | None = None,
        abort: AbortToken | None = None,
    ) -> None:
        self.store = store
        self.rpc = rpc
        self.network_id = network_id
        self.resolver = resolver or NodeResolver()
        self.abort = abort
        self._accounts: dict[str, AccountDescriptor] = {}
        self._selected: str | None = None
        self._active: set[str] = set()

    def start(self) -> None:
        self.rpc.open()
        self._call("ping", {"message": "kaspa-deposit"})

    def stop(self) -> None:
        self.rpc.close()

    def connect(self, url: str, network_id: NetworkId) -> None:
        endpoint = self.resolver.resolve(url, network_id)
        logger.info("Connecting wallet to %s (%s)", endpoint, network_id)
        self._call(
            "connect",
            {
                "url": endpoint,
                "networkId": str(network_id),
                "retryOnError": False,
                "blockAsyncConnect": True,
                "requireSync": False,
            },
        )

    def disconnect(self) -> None:
        self.rpc.call("disconnect")

    def is_connected(self) -> bool:
        status = self._object("get_status", self._call("get_status", {"name": None}))
        return bool(status.get("isConnected"))

    def wallet_open(
        self,
        wallet_secret: Secret,
        filename: str | None,
        account_descriptors: bool,
        legacy_accounts: bool,
    ) -> list[AccountDescriptor] | None:
        result = self._call(
            "wallet_open",
            {
                "walletSecret": wallet_secret.expose(),
                "filename": filename if filename is not None else self.store.filename,
                "accountDescriptors": account_descriptors,
                "legacyAccounts": legacy_accounts,
            },
        )
        descriptors = self._object("wallet_open", result).get("accountDescriptors")
        if descriptors is None:
            return None
        if not isinstance(descriptors, list):
            raise RPCTransportError("malformed wallet_open response: accountDescriptors is not a list")
        return self._remember(descriptors)

    def wallet_close(self) -> None:
        self.rpc.call("wallet_close")
        self._selected = None
        self._active.clear()

    def accounts_enumerate(self) -> list[AccountDescriptor]:
        result = self._object("accounts_enumerate", self._call("accounts_enumerate"))
        descriptors = result.get("accountDescriptors")
        if not isinstance(descriptors, list):
            raise RPCTransportError("accounts_enumerate response carries no account list")
        return self._remember(descriptors)

    def accounts_select(self, account_id: str | None) -> None:
        self._call("accounts_select", {"accountId": account_id})
        self._selected = account_id

    def accounts_activate(self, account_ids: Sequence[str] | None) -> None:
        self._call("accounts_activate", {"accountIds": list(account_ids) if account_ids else None})
        self._active.update(account_ids or self._accounts.keys())

    def account(self) -> Account:
        if self._selected is None:
            raise NoActiveAccountError("no account is selected", operation="get account")
        if self._selected not in self._active:
            raise NoActiveAccountError(
                f"account {self._selected} is selected but not active", operation="get account"
            )
        descriptor = self._accounts.get(self._selected) or AccountDescriptor(self._selected)
        return Account(self.rpc, descriptor)

    def _call(self, method: str, params: dict[str, Any] | None = None) -> Any:
        return self.rpc.call(method, params, abort=self.abort)

    @staticmethod
    def _object(method: str, result: Any) -> dict[str, Any]:
        if result is None:
            return {}
        if not isinstance(result, dict):
            raise RPCTransportError(
                f"malformed {method} response: expected an object, got {type(result).__name__}"
            )
        return result

    def _remember(self, descriptors: Iterable[dict[str, Any]]) -> list[AccountDescriptor]:
        parsed = [AccountDescriptor.from_dict(entry) for entry in descriptors]
        for descriptor in parsed:
            self._accounts[descriptor.account_id] = descriptor
        return parsed
