"""Deposit transaction construction and submission."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .abort import AbortToken
from .address import Address
from .errors import DepositError, MissingIdentifierError, NoActiveAccountError, SubmissionError
from .rpc_client import RPCError, RPCOutcomeUnknown, RPCTransportError, format_rpc_hint
from .secret import Secret
from .session import WalletSession
from .summary import extract_transaction_id
from .wallet import Fees, PaymentDestination, SigningAccount

logger = logging.getLogger(__name__)

# The signer's own minimum-fee computation governs the fee; no bump on top.
PRIORITY_FEE_SOMPI = 0


@dataclass(frozen=True)
class DepositIntent:
    destination: Address
    amount: int
    payload: bytes = b""

    @property
    def attached_payload(self) -> bytes | None:
        """Payload as it goes on the wire; an empty payload means no payload."""

        if len(self.payload) == 0:
            return None
        return bytes(self.payload)


class DepositTransactionBuilder:
    """Build and submit a single-output deposit carrying an opaque payload."""

    def __init__(self, session: WalletSession) -> None:
        self.session = session

    def deposit(
        self,
        intent: DepositIntent,
        secret: Secret,
        abort: AbortToken | None = None,
    ) -> str:
        """Send ``intent`` and return the final transaction id."""

        account = self._active_account()
        destination = PaymentDestination.single(intent.destination, intent.amount)
        payload = intent.attached_payload
        logger.info(
            "Submitting deposit of %d sompi to %s (payload %s)",
            intent.amount,
            intent.destination,
            f"{len(payload)} bytes" if payload is not None else "omitted",
        )

        try:
            summary, transaction_ids = account.send(
                destination,
                Fees.from_sompi(PRIORITY_FEE_SOMPI),
                payload,
                secret,
                None,
                abort,
            )
        except RPCOutcomeUnknown as exc:
            detail = secret.redact(str(exc))
            logger.warning(
                "No usable reply to the deposit; a transaction may have been broadcast (%s). "
                "Check the escrow address before retrying.",
                detail,
            )
            raise MissingIdentifierError(
                f"failed to confirm transaction: {detail}; outcome is uncertain and a "
                "transaction may have been broadcast",
                operation="send transaction",
            ) from (exc if detail == str(exc) else None)
        except (RPCError, RPCTransportError) as exc:
            detail = secret.redact(str(exc))
            hint = format_rpc_hint(exc) if isinstance(exc, RPCError) else None
            message = f"failed to send transaction: {detail}"
            if hint:
                message += f"\nHint: {hint}"
            logger.error("Deposit submission failed: %s", detail)
            cause = exc if detail == str(exc) else None
            raise SubmissionError(message, operation="send transaction") from cause

        return extract_transaction_id(summary, transaction_ids)

    def _active_account(self) -> SigningAccount:
        try:
            return self.session.wallet.account()
        except NoActiveAccountError:
            raise
        except (RPCError, RPCTransportError, DepositError) as exc:
            raise NoActiveAccountError(
                f"failed to get account: {exc}", operation="get account"
            ) from exc
