"""Error taxonomy for the deposit sender.

Every failure the sender can hit maps to exactly one class below so that
operators (and callers embedding the library) can tell a locked wallet from an
unreachable node or a rejected transaction without parsing messages.
"""

from __future__ import annotations


class DepositError(RuntimeError):
    """Base class for every failure surfaced by the deposit sender."""

    def __init__(self, message: str, *, operation: str | None = None) -> None:
        super().__init__(message)
        self.operation = operation


class InputError(DepositError):
    """Raised for bad command line input, before any stateful work begins."""


class ConfigurationError(DepositError):
    """Raised when configuration or the wallet storage location is invalid."""


class StoreError(DepositError):
    """Raised when the local wallet store is missing, corrupted or unreadable."""


class InitializationError(DepositError):
    """Raised when the wallet cannot be constructed or started."""


class WalletConnectionError(DepositError):
    """Raised when the wallet cannot reach the node."""


class AuthenticationError(DepositError):
    """Raised when the keychain cannot be unlocked with the wallet secret."""


class EnumerationError(DepositError):
    """Raised when the wallet accounts cannot be listed."""


class EmptyWalletError(DepositError):
    """Raised when the wallet holds no accounts at all."""


class SelectionError(DepositError):
    """Raised when the first account cannot be selected."""


class ActivationError(DepositError):
    """Raised when the selected account cannot be activated for signing."""


class NoActiveAccountError(DepositError):
    """Raised when a send is attempted without an active account."""


class SubmissionError(DepositError):
    """Raised when signing or broadcasting the deposit fails."""


class MissingIdentifierError(DepositError):
    """Raised when a submission produced no final transaction id.

    The outcome is uncertain: the transaction may already be on the network.
    """


class OperationAborted(DepositError):
    """Raised when a call is attempted after its abort token fired."""
