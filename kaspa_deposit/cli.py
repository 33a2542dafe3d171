"""Command line interface for sending a Kaspa bridge deposit.

Usage::

    kaspa-deposit \\
        --wallet-secret "your-wallet-password" \\
        --amount 4000000000 \\
        --payload "03000000..." \\
        --escrow "kaspa:prztt2hd2txge07syjvhaz5j6l9ql6djhc9equela058rjm6vww0uwre5dulh" \\
        --network mainnet \\
        --rpc "wss://your-kaspa-node:17110"

Only the transaction id is written to stdout; progress and errors go to
stderr so the output can be piped straight into other tooling.
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Sequence

from .abort import AbortToken
from .address import Address, parse_address
from .config import load_service_config
from .deposit import DepositIntent, DepositTransactionBuilder
from .errors import ConfigurationError, DepositError, InputError, MissingIdentifierError
from .network import (
    MIN_DEPOSIT_SOMPI,
    SOMPI_PER_KAS,
    NetworkId,
    NodeResolver,
    bridge_escrow_address,
    parse_network,
)
from .secret import Secret
from .session import SessionParameters, open_session

logging.basicConfig(level=logging.INFO, stream=sys.stderr, format="%(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

MAX_SOMPI = 2**64 - 1


@dataclass
class DepositRequest:
    network_id: NetworkId
    escrow: Address
    amount: int
    payload: bytes
    rpc_url: str


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kaspa-deposit",
        description="Send a Kaspa deposit transaction with a Hyperlane payload to the bridge escrow",
    )
    parser.add_argument(
        "--wallet-secret", required=True, help="Wallet password (protects the keychain file)"
    )
    parser.add_argument("--wallet-dir", help="Custom wallet directory (default: ~/.kaspa/)")
    parser.add_argument(
        "--wallet-file",
        default=None,
        help="Wallet file name inside the wallet directory (default: kaspa.wallet)",
    )
    parser.add_argument(
        "--amount", required=True, help="Amount in sompi (1 KAS = 100,000,000 sompi)"
    )
    parser.add_argument(
        "--payload",
        required=True,
        help="Hyperlane message payload (hex encoded, from the TypeScript SDK)",
    )
    parser.add_argument("--escrow", required=True, help="Escrow address to send to")
    parser.add_argument(
        "--network", default="mainnet", help="Network: mainnet or testnet (default: mainnet)"
    )
    parser.add_argument(
        "--rpc", required=True, help="Kaspa wRPC URL (e.g. wss://your-node:17110)"
    )
    parser.add_argument(
        "--wallet-service-url",
        default=None,
        help="Wallet service JSON-RPC URL (default: KASPA_WALLET_SERVICE_URL or http://127.0.0.1:8082)",
    )
    parser.add_argument("--config", default=None, help="Path to a YAML config file")
    parser.add_argument(
        "--timeout",
        default=None,
        help="Abort the deposit if it has not been submitted within this many seconds "
        "(a request already sent is still waited out)",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def _parse_amount(raw: str) -> int:
    try:
        amount = int(raw.strip())
    except ValueError as exc:
        raise InputError(f"--amount must be an integer number of sompi: {raw}", operation="parse amount") from exc
    if amount < 0 or amount > MAX_SOMPI:
        raise InputError(f"--amount is out of range: {raw}", operation="parse amount")
    return amount


def _decode_payload(raw: str) -> bytes:
    candidate = raw[2:] if raw[:2].lower() == "0x" else raw
    if any(char.isspace() for char in candidate):
        raise InputError("Invalid hex payload: whitespace is not allowed", operation="decode payload")
    try:
        return bytes.fromhex(candidate)
    except ValueError as exc:
        raise InputError(f"Invalid hex payload: {exc}", operation="decode payload") from exc


def _check_rpc_url(raw: str, network_id: NetworkId) -> str:
    try:
        NodeResolver().resolve(raw, network_id)
    except ConfigurationError as exc:
        raise InputError(f"--rpc: {exc}", operation="parse rpc url") from exc
    return raw


def _parse_timeout(raw: str | None) -> float | None:
    if raw is None:
        return None
    try:
        timeout = float(raw)
    except ValueError as exc:
        raise InputError(f"--timeout must be a number of seconds: {raw}", operation="parse timeout") from exc
    if timeout <= 0:
        raise InputError("--timeout must be positive", operation="parse timeout")
    return timeout


def parse_deposit_request(args: argparse.Namespace) -> DepositRequest:
    """Validate every user input before any wallet or network access."""

    network_id = parse_network(args.network)
    escrow = parse_address(args.escrow, expected_prefix=network_id.address_prefix)
    return DepositRequest(
        network_id=network_id,
        escrow=escrow,
        amount=_parse_amount(args.amount),
        payload=_decode_payload(args.payload),
        rpc_url=_check_rpc_url(args.rpc, network_id),
    )


def _warn_on_bridge_mismatch(request: DepositRequest) -> None:
    known_escrow = bridge_escrow_address(request.network_id)
    if known_escrow is not None and str(request.escrow) != known_escrow:
        logger.warning(
            "Escrow %s differs from the bridge escrow for %s (%s)",
            request.escrow,
            request.network_id,
            known_escrow,
        )
    if request.amount < MIN_DEPOSIT_SOMPI:
        logger.warning(
            "Amount %d sompi is below the bridge minimum of %d sompi (%d KAS)",
            request.amount,
            MIN_DEPOSIT_SOMPI,
            MIN_DEPOSIT_SOMPI // SOMPI_PER_KAS,
        )


@contextmanager
def _abort_on_sigterm(token: AbortToken) -> Iterator[None]:
    def handler(signum, _frame) -> None:
        token.abort(f"received signal {signum}")

    previous = signal.signal(signal.SIGTERM, handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGTERM, previous)


def cmd_deposit(args: argparse.Namespace) -> str:
    request = parse_deposit_request(args)
    timeout = _parse_timeout(args.timeout)
    secret = Secret(args.wallet_secret)

    service_config = load_service_config(
        config_path=args.config,
        overrides={"url": args.wallet_service_url, "wallet_dir": args.wallet_dir},
    )
    params = SessionParameters(
        network_id=request.network_id,
        rpc_url=request.rpc_url,
        secret=secret,
        storage_folder=service_config.wallet_dir,
    )
    if args.wallet_file:
        params.wallet_filename = args.wallet_file

    _warn_on_bridge_mismatch(request)
    logger.info("initializing kaspa wallet...")
    token = AbortToken(timeout=timeout)
    with _abort_on_sigterm(token), open_session(params, service_config, abort=token) as session:
        logger.info(
            "sending deposit: amount=%d sompi, escrow=%s, payload_len=%d",
            request.amount,
            request.escrow,
            len(request.payload),
        )
        intent = DepositIntent(request.escrow, request.amount, request.payload)
        tx_id = DepositTransactionBuilder(session).deposit(intent, secret, abort=token)

    print(tx_id)
    logger.info("transaction submitted successfully")
    return tx_id


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    try:
        cmd_deposit(args)
    except KeyboardInterrupt:  # pragma: no cover - interactive use
        logger.info("Interrupted by user")
        parser.exit(130, "error: interrupted\n")
    except MissingIdentifierError as exc:
        parser.exit(1, f"error: {exc} (uncertain outcome: check the escrow address before retrying)\n")
    except DepositError as exc:
        parser.exit(1, f"error: {exc}\n")


if __name__ == "__main__":
    main(sys.argv[1:])
