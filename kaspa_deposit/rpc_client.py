"""JSON-RPC client for a Kaspa wallet service.

The wallet service hosts the rusty-kaspa wallet API (``wallet_open``,
``accounts_send`` and friends) behind a JSON-RPC 2.0 endpoint. The client is
deliberately thin: it forwards well-typed requests, masks secrets in its own
logging and turns transport problems into :class:`RPCTransportError` so callers
can map them onto the deposit error taxonomy.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Dict, Optional

import requests
from requests import RequestException, Response
from urllib3.exceptions import ProtocolError

from .abort import AbortToken
from .config import WalletServiceConfig

logger = logging.getLogger(__name__)

SECRET_FIELDS = frozenset({"walletSecret", "paymentSecret"})
# Once dispatched these must be waited out; an abort deadline only bounds connecting.
NON_IDEMPOTENT_METHODS = frozenset({"accounts_send"})


class RPCError(RuntimeError):
    """Raised when the wallet service responds with an RPC error."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(f"RPC error {code}: {message}")
        self.code = code
        self.message = message


class RPCTransportError(RuntimeError):
    """Raised when the wallet service is unreachable or returns malformed data."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RPCOutcomeUnknown(RPCTransportError):
    """Raised when a request reached the wallet service but no usable reply came back.

    The service may have acted on the request, so for ``accounts_send`` the
    transaction may already be on the network.
    """


def format_rpc_hint(error_obj: dict[str, Any] | RPCError | None) -> str | None:
    """Return a human-friendly hint for common wallet failures, if any."""

    if error_obj is None:
        return None

    message = ""
    if isinstance(error_obj, RPCError):
        message = error_obj.message
    elif isinstance(error_obj, dict):
        message = str(error_obj.get("message", ""))
    lowered = message.lower()

    if "insufficient funds" in lowered:
        return (
            "The account balance does not cover the amount plus network fees. Fund the "
            "wallet's receive address or lower --amount."
        )
    if "storage mass" in lowered or "mass exceeds" in lowered:
        return (
            "The transaction exceeds the network mass limit. Compound the account's UTXOs "
            "into fewer, larger ones before sending the deposit."
        )
    if "invalid address" in lowered or "address prefix" in lowered:
        return "The escrow address was rejected; check that it matches the selected --network."
    if "not open" in lowered or "wallet is locked" in lowered:
        return "The wallet is not open on the wallet service. Check --wallet-file and --wallet-secret."
    if "not connected" in lowered:
        return "The wallet service lost its node connection; check --rpc and retry."
    return None


def _dropped_after_send(exc: requests.ConnectionError) -> bool:
    """True when the connection broke mid-exchange rather than failing to open."""

    if isinstance(exc, requests.ConnectTimeout):
        return False
    return any(isinstance(arg, ProtocolError) for arg in exc.args)


def mask_secrets(params: Any) -> Any:
    """Return ``params`` with secret-bearing fields replaced for logging."""

    if isinstance(params, dict):
        return {
            key: ("***" if key in SECRET_FIELDS and value is not None else mask_secrets(value))
            for key, value in params.items()
        }
    if isinstance(params, list):
        return [mask_secrets(item) for item in params]
    return params


class WalletRPCClient:
    """Typed JSON-RPC client for the Kaspa wallet service."""

    def __init__(self, config: WalletServiceConfig) -> None:
        self.config = config
        self._session: requests.Session | None = None

    @property
    def is_open(self) -> bool:
        return self._session is not None

    def open(self) -> None:
        if self._session is None:
            self._session = requests.Session()

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None

    def call(
        self,
        method: str,
        params: Optional[Dict[str, Any]] = None,
        *,
        abort: AbortToken | None = None,
    ) -> Any:
        """Perform a JSON-RPC request."""

        if abort is not None:
            abort.check(method)
        self.open()
        assert self._session is not None

        timeout = self._request_timeout(method, abort)
        payload = {
            "jsonrpc": "2.0",
            "id": str(uuid.uuid4()),
            "method": method,
            "params": params or {},
        }
        logger.debug("RPC call %s params=%s", method, mask_secrets(params))
        try:
            response = self._session.post(
                self.config.url,
                data=json.dumps(payload),
                headers={"content-type": "application/json"},
                auth=self.config.auth,
                timeout=timeout,
            )
        except requests.ConnectionError as exc:
            if _dropped_after_send(exc):
                logger.error("RPC %s connection dropped after sending: %s", method, exc)
                raise RPCOutcomeUnknown(
                    f"{method} was sent to {self.config.url} but the connection dropped: {exc}"
                ) from exc
            logger.error(
                "RPC connection failed: %s",
                exc,
                exc_info=logger.isEnabledFor(logging.DEBUG),
            )
            raise RPCTransportError(
                f"wallet service unreachable at {self.config.url}; ensure it is running and "
                "KASPA_WALLET_SERVICE_* (or ~/.kaspa-deposit.yaml) point to it"
            ) from exc
        except RequestException as exc:
            logger.error("RPC %s sent but no reply received: %s", method, exc)
            raise RPCOutcomeUnknown(
                f"{method} was sent to {self.config.url} but no reply was received: {exc}"
            ) from exc
        self._raise_for_status(response)
        try:
            result = response.json()
        except ValueError as exc:
            logger.debug("RPC JSON parse error: %s", response.text, exc_info=True)
            raise RPCOutcomeUnknown(f"wallet service returned malformed JSON for {method}") from exc
        if not isinstance(result, dict):
            raise RPCOutcomeUnknown(
                f"wallet service returned a non-object JSON-RPC response for {method}"
            )
        if result.get("error"):
            error = result["error"]
            raise RPCError(error.get("code", -1), error.get("message", "unknown"))
        return result.get("result")

    def _request_timeout(
        self, method: str, abort: AbortToken | None
    ) -> float | tuple[float, float]:
        """Cap the request timeout to the time the abort token has left."""

        timeout = self.config.timeout
        remaining = abort.remaining() if abort is not None else None
        if remaining is None:
            return timeout
        capped = min(timeout, max(remaining, 0.001))
        if method in NON_IDEMPOTENT_METHODS:
            return (capped, timeout)
        return capped

    def _raise_for_status(self, response: Response) -> None:
        # JSON-RPC errors may arrive with HTTP 500; let the error body through.
        if response.ok or response.status_code == 500:
            return
        logger.error("RPC HTTP error %s from %s", response.status_code, response.url)
        if response.status_code == 401:
            raise RPCTransportError(
                "Unauthorized (401). Check KASPA_WALLET_SERVICE_USER/PASSWORD or ~/.kaspa-deposit.yaml.",
                status_code=response.status_code,
            )
        raise RPCTransportError(
            f"wallet service returned HTTP {response.status_code}; check the service URL",
            status_code=response.status_code,
        )
