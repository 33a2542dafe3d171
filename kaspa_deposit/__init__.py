"""Kaspa bridge deposit sender."""

from .abort import AbortToken
from .address import Address, AddressVersion, encode_address, parse_address
from .deposit import DepositIntent, DepositTransactionBuilder
from .errors import (
    ActivationError,
    AuthenticationError,
    ConfigurationError,
    DepositError,
    EmptyWalletError,
    EnumerationError,
    InitializationError,
    InputError,
    MissingIdentifierError,
    NoActiveAccountError,
    OperationAborted,
    SelectionError,
    StoreError,
    SubmissionError,
    WalletConnectionError,
)
from .network import NetworkId, NetworkType, parse_network
from .secret import Secret
from .session import (
    SessionEstablisher,
    SessionParameters,
    SessionState,
    WalletSession,
    open_session,
)
from .summary import GeneratorSummary, extract_transaction_id

__all__ = [
    "AbortToken",
    "Address",
    "AddressVersion",
    "encode_address",
    "parse_address",
    "DepositIntent",
    "DepositTransactionBuilder",
    "ActivationError",
    "AuthenticationError",
    "ConfigurationError",
    "DepositError",
    "EmptyWalletError",
    "EnumerationError",
    "InitializationError",
    "InputError",
    "MissingIdentifierError",
    "NoActiveAccountError",
    "OperationAborted",
    "SelectionError",
    "StoreError",
    "SubmissionError",
    "WalletConnectionError",
    "NetworkId",
    "NetworkType",
    "parse_network",
    "Secret",
    "SessionEstablisher",
    "SessionParameters",
    "SessionState",
    "WalletSession",
    "open_session",
    "GeneratorSummary",
    "extract_transaction_id",
]
