"""Submission summaries and transaction id extraction."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from .errors import MissingIdentifierError

logger = logging.getLogger(__name__)


@dataclass
class GeneratorSummary:
    """Summary returned by the wallet after generating and submitting transactions.

    A deposit may be preceded by compounding transactions when the account
    holds many small UTXOs; ``final_transaction_id`` is the one that pays the
    escrow.
    """

    network_id: str | None = None
    aggregated_utxos: int = 0
    aggregate_fees: int = 0
    number_of_generated_transactions: int = 0
    final_transaction_amount: int | None = None
    final_transaction_id: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GeneratorSummary":
        amount = data.get("finalTransactionAmount")
        return cls(
            network_id=data.get("networkId"),
            aggregated_utxos=int(data.get("aggregatedUtxos") or 0),
            aggregate_fees=int(data.get("aggregateFees") or 0),
            number_of_generated_transactions=int(data.get("numberOfGeneratedTransactions") or 0),
            final_transaction_amount=int(amount) if amount is not None else None,
            final_transaction_id=data.get("finalTransactionId") or None,
        )


def extract_transaction_id(
    summary: GeneratorSummary, transaction_ids: Sequence[str] = ()
) -> str:
    """Return the final transaction id carried by ``summary``.

    A summary without a final id means the wallet processed something yet
    produced no canonical id. That is an uncertain outcome rather than a
    rejected transaction, so it is logged loudly before raising.
    """

    if summary.final_transaction_id:
        logger.debug(
            "Submission summary: %d transaction(s), %d utxo(s) aggregated, fees=%d sompi",
            summary.number_of_generated_transactions,
            summary.aggregated_utxos,
            summary.aggregate_fees,
        )
        return summary.final_transaction_id

    logger.warning(
        "Submission returned no final transaction id; a transaction may have been broadcast "
        "(generated=%d, ids=%s). Check the escrow address before retrying.",
        summary.number_of_generated_transactions,
        ", ".join(transaction_ids) if transaction_ids else "none",
    )
    raise MissingIdentifierError(
        "transaction did not produce a transaction ID; outcome is uncertain and a "
        "transaction may have been broadcast",
        operation="extract transaction id",
    )
