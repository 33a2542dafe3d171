"""Session establishment for the deposit sender.

Bringing a wallet to a signing-ready state is a strict linear sequence::

    UNOPENED -> OPENED -> CONNECTED -> UNLOCKED -> ACCOUNTS_ENUMERATED
             -> ACCOUNT_SELECTED -> ACCOUNT_ACTIVATED -> READY

Each edge has its own error class so a failure tells the operator exactly
which step broke. Nothing is retried. When establishment fails part way, the
steps already taken are torn down before the error propagates.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Iterator, Type

from .abort import AbortToken
from .config import DEFAULT_WALLET_FILENAME, WalletServiceConfig, resolve_storage_folder
from .errors import (
    ActivationError,
    AuthenticationError,
    ConfigurationError,
    DepositError,
    EmptyWalletError,
    EnumerationError,
    InitializationError,
    SelectionError,
    WalletConnectionError,
)
from .network import NetworkId, NodeResolver
from .rpc_client import RPCError, RPCTransportError, WalletRPCClient
from .secret import Secret
from .store import LocalStore, open_local_store
from .wallet import AccountDescriptor, Wallet, WalletProvider

logger = logging.getLogger(__name__)

_WALLET_FAILURES = (RPCError, RPCTransportError)
# A bad node endpoint only surfaces when the wallet resolves it during connect.
_STEP_FAILURES = (*_WALLET_FAILURES, ConfigurationError)


class SessionState(Enum):
    UNOPENED = "unopened"
    OPENED = "opened"
    CONNECTED = "connected"
    UNLOCKED = "unlocked"
    ACCOUNTS_ENUMERATED = "accounts_enumerated"
    ACCOUNT_SELECTED = "account_selected"
    ACCOUNT_ACTIVATED = "account_activated"
    READY = "ready"

    def reached(self, other: "SessionState") -> bool:
        """Return ``True`` when this state is at or past ``other``."""

        order = list(SessionState)
        return order.index(self) >= order.index(other)


_NEXT_STATE = dict(zip(list(SessionState)[:-1], list(SessionState)[1:]))


@dataclass
class SessionParameters:
    network_id: NetworkId
    rpc_url: str
    secret: Secret
    storage_folder: str | Path | None = None
    wallet_filename: str = DEFAULT_WALLET_FILENAME


WalletFactory = Callable[[LocalStore, NetworkId], WalletProvider]


class WalletSession:
    """A connected, unlocked wallet with exactly one selected and active account."""

    def __init__(
        self,
        wallet: WalletProvider,
        account: AccountDescriptor,
        network_id: NetworkId,
        store: LocalStore,
    ) -> None:
        self.wallet = wallet
        self.account = account
        self.network_id = network_id
        self.store = store
        self.state = SessionState.READY
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        _teardown(self.wallet, self.state, connect_attempted=True)
        self._closed = True

    def __enter__(self) -> "WalletSession":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _teardown(wallet: WalletProvider, state: SessionState, *, connect_attempted: bool) -> None:
    steps: list[tuple[str, Callable[[], None]]] = []
    if state.reached(SessionState.UNLOCKED):
        steps.append(("close wallet", wallet.wallet_close))
    if connect_attempted:
        steps.append(("disconnect", wallet.disconnect))
    steps.append(("stop wallet", wallet.stop))
    for operation, step in steps:
        try:
            step()
        except _WALLET_FAILURES as exc:
            logger.warning("Teardown step '%s' failed: %s", operation, exc)


class SessionEstablisher:
    """Drive a wallet from nothing to a signing-ready :class:`WalletSession`."""

    def __init__(
        self,
        params: SessionParameters,
        service_config: WalletServiceConfig,
        *,
        wallet_factory: WalletFactory | None = None,
        store_opener: Callable[[Path, str], LocalStore] | None = None,
        abort: AbortToken | None = None,
    ) -> None:
        self.params = params
        self.abort = abort
        self.service_config = service_config
        self._wallet_factory = wallet_factory
        self._store_opener = store_opener
        self.state = SessionState.UNOPENED
        self.store: LocalStore | None = None
        self.wallet: WalletProvider | None = None
        self.accounts: list[AccountDescriptor] = []
        self.account: AccountDescriptor | None = None
        self._connect_attempted = False

    def establish(self) -> WalletSession:
        if self.state is not SessionState.UNOPENED:
            raise RuntimeError(f"session establishment already ran (state={self.state.value})")
        try:
            self.open()
            self.connect()
            self.unlock()
            self.enumerate_accounts()
            self.select_account()
            self.activate_account()
        except BaseException:
            self.abandon()
            raise
        return self.ready()

    # Individual transitions ---------------------------------------------

    def open(self) -> None:
        """Open the local store, then construct and start the wallet."""

        self._expect(SessionState.UNOPENED)
        folder = resolve_storage_folder(self.params.storage_folder)
        opener = self._store_opener or open_local_store
        self.store = opener(folder, self.params.wallet_filename)

        try:
            self.wallet = self._build_wallet(self.store)
        except ValueError as exc:
            raise InitializationError(
                f"failed to create wallet: {exc}", operation="create wallet"
            ) from exc
        self._run("start wallet", InitializationError, self.wallet.start)
        self._advance(SessionState.OPENED)

    def connect(self) -> None:
        self._expect(SessionState.OPENED)
        wallet = self._require_wallet()
        self._connect_attempted = True
        self._run(
            "connect wallet",
            WalletConnectionError,
            wallet.connect,
            self.params.rpc_url,
            self.params.network_id,
        )
        connected = self._run("check connection", WalletConnectionError, wallet.is_connected)
        if not connected:
            raise WalletConnectionError(
                "wallet not connected: connect reported success but the wallet is not connected",
                operation="check connection",
            )
        self._advance(SessionState.CONNECTED)

    def unlock(self) -> None:
        self._expect(SessionState.CONNECTED)
        wallet = self._require_wallet()
        assert self.store is not None
        self._run(
            "open wallet",
            AuthenticationError,
            wallet.wallet_open,
            self.params.secret,
            self.store.filename,
            True,
            False,
        )
        self._advance(SessionState.UNLOCKED)

    def enumerate_accounts(self) -> None:
        self._expect(SessionState.UNLOCKED)
        wallet = self._require_wallet()
        accounts = self._run("enumerate accounts", EnumerationError, wallet.accounts_enumerate)
        if not accounts:
            raise EmptyWalletError(
                "wallet has no accounts; create an account in the wallet before sending",
                operation="enumerate accounts",
            )
        self.accounts = list(accounts)
        self._advance(SessionState.ACCOUNTS_ENUMERATED)

    def select_account(self) -> None:
        self._expect(SessionState.ACCOUNTS_ENUMERATED)
        wallet = self._require_wallet()
        account = self.accounts[0]
        if len(self.accounts) > 1:
            logger.info(
                "Wallet holds %d accounts; using the first (%s)", len(self.accounts), account.account_id
            )
        self._run("select wallet account", SelectionError, wallet.accounts_select, account.account_id)
        self.account = account
        self._advance(SessionState.ACCOUNT_SELECTED)

    def activate_account(self) -> None:
        self._expect(SessionState.ACCOUNT_SELECTED)
        wallet = self._require_wallet()
        assert self.account is not None
        self._run(
            "activate wallet account",
            ActivationError,
            wallet.accounts_activate,
            [self.account.account_id],
        )
        self._advance(SessionState.ACCOUNT_ACTIVATED)

    def ready(self) -> WalletSession:
        self._expect(SessionState.ACCOUNT_ACTIVATED)
        assert self.wallet is not None and self.account is not None and self.store is not None
        self._advance(SessionState.READY)
        logger.info(
            "wallet ready: receive_address=%s", self.account.receive_address or "(unknown)"
        )
        return WalletSession(self.wallet, self.account, self.params.network_id, self.store)

    def abandon(self) -> None:
        """Undo whatever the completed transitions set up."""

        if self.wallet is None:
            return
        logger.debug("Tearing down partially established session (state=%s)", self.state.value)
        _teardown(self.wallet, self.state, connect_attempted=self._connect_attempted)

    # Helpers -------------------------------------------------------------

    def _build_wallet(self, store: LocalStore) -> WalletProvider:
        if self._wallet_factory is not None:
            return self._wallet_factory(store, self.params.network_id)
        return Wallet(
            store,
            WalletRPCClient(self.service_config),
            self.params.network_id,
            NodeResolver(),
            abort=self.abort,
        )

    def _run(self, operation: str, error_cls: Type[DepositError], func: Callable, *args):
        if self.abort is not None:
            self.abort.check(operation)
        try:
            return func(*args)
        except _STEP_FAILURES as exc:
            detail = self.params.secret.redact(str(exc))
            cause = exc if detail == str(exc) else None
            raise error_cls(f"failed to {operation}: {detail}", operation=operation) from cause

    def _require_wallet(self) -> WalletProvider:
        if self.wallet is None:
            raise RuntimeError("wallet has not been constructed")
        return self.wallet

    def _expect(self, state: SessionState) -> None:
        if self.state is not state:
            raise RuntimeError(
                f"invalid session transition from {self.state.value}; expected {state.value}"
            )

    def _advance(self, state: SessionState) -> None:
        if _NEXT_STATE.get(self.state) is not state:
            raise RuntimeError(f"invalid session transition {self.state.value} -> {state.value}")
        logger.debug("Session state %s -> %s", self.state.value, state.value)
        self.state = state


@contextmanager
def open_session(
    params: SessionParameters,
    service_config: WalletServiceConfig,
    **kwargs,
) -> Iterator[WalletSession]:
    """Establish a session and guarantee teardown on every exit path."""

    session = SessionEstablisher(params, service_config, **kwargs).establish()
    try:
        yield session
    finally:
        session.close()
