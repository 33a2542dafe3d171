"""Network selection, bridge constants and node endpoint resolution."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from urllib.parse import urlparse

from .errors import ConfigurationError, InputError

logger = logging.getLogger(__name__)

SOMPI_PER_KAS = 100_000_000
# Bridge-side minimum; smaller deposits are not credited on the hub.
MIN_DEPOSIT_SOMPI = 4_000_000_000

DEFAULT_TESTNET_SUFFIX = 10


class NetworkType(Enum):
    MAINNET = "mainnet"
    TESTNET = "testnet"


@dataclass(frozen=True)
class NetworkId:
    """A Kaspa network selector such as ``mainnet`` or ``testnet-10``."""

    network_type: NetworkType
    suffix: int | None = None

    @classmethod
    def mainnet(cls) -> "NetworkId":
        return cls(NetworkType.MAINNET)

    @classmethod
    def testnet(cls, suffix: int = DEFAULT_TESTNET_SUFFIX) -> "NetworkId":
        return cls(NetworkType.TESTNET, suffix)

    @property
    def address_prefix(self) -> str:
        if self.network_type is NetworkType.MAINNET:
            return "kaspa"
        return "kaspatest"

    def __str__(self) -> str:
        if self.suffix is None:
            return self.network_type.value
        return f"{self.network_type.value}-{self.suffix}"


# wRPC (Borsh encoding) listen ports of a default kaspad.
_DEFAULT_WRPC_PORTS: dict[NetworkId, int] = {
    NetworkId.mainnet(): 17110,
    NetworkId.testnet(10): 17210,
    NetworkId.testnet(11): 17310,
}

BRIDGE_ESCROW_ADDRESSES: dict[NetworkId, str] = {
    NetworkId.mainnet(): "kaspa:prztt2hd2txge07syjvhaz5j6l9ql6djhc9equela058rjm6vww0uwre5dulh",
    NetworkId.testnet(10): "kaspatest:pzwcd30pvdn0k4snvj5awkmlm6srzuw8d8e766ff5vwceg2akta3799nq2a3p",
}


def parse_network(raw: str) -> NetworkId:
    """Parse ``mainnet``, ``testnet`` or ``testnet-<suffix>``."""

    value = raw.strip().lower()
    if value == "mainnet":
        return NetworkId.mainnet()
    if value == "testnet":
        return NetworkId.testnet()
    if value.startswith("testnet-"):
        suffix = value[len("testnet-"):]
        if suffix.isdigit():
            return NetworkId.testnet(int(suffix))
    raise InputError(f"unknown network: {raw}", operation="parse network")


def bridge_escrow_address(network_id: NetworkId) -> str | None:
    return BRIDGE_ESCROW_ADDRESSES.get(network_id)


class NodeResolver:
    """Resolve the node endpoint a wallet should connect to.

    Explicit URLs win; a bare ``host`` or ``host:port`` is completed with the
    ``ws`` scheme and the network's default wRPC port.
    """

    def __init__(self, default_ports: dict[NetworkId, int] | None = None) -> None:
        self.default_ports = dict(default_ports or _DEFAULT_WRPC_PORTS)

    def resolve(self, url: str | None, network_id: NetworkId) -> str:
        if not url or not url.strip():
            raise ConfigurationError(
                f"no node endpoint configured for {network_id}", operation="resolve node"
            )
        candidate = url.strip()
        if "://" not in candidate:
            candidate = f"ws://{candidate}"
        parsed = urlparse(candidate)
        if parsed.scheme not in {"ws", "wss"} or not parsed.hostname:
            raise ConfigurationError(
                f"invalid node endpoint URL: {url}", operation="resolve node"
            )
        if parsed.port is None:
            port = self.default_ports.get(network_id)
            if port is None:
                raise ConfigurationError(
                    f"no default wRPC port known for {network_id}; pass host:port",
                    operation="resolve node",
                )
            candidate = parsed._replace(netloc=f"{parsed.netloc}:{port}").geturl()
        logger.debug("Resolved node endpoint %s for %s", candidate, network_id)
        return candidate
