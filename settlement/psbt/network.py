"""Bitcoin network selection.

Selects the address-format rules and the default relay endpoint for a
network. The address check is a prefix/charset rule (what a wallet would
accept in an input box), not a checksum validation.
"""

from __future__ import annotations

import re
from enum import Enum


class Network(str, Enum):
    """Bitcoin networks supported by the settlement flow."""

    MAINNET = "mainnet"
    TESTNET = "testnet"
    SIGNET = "signet"

    @classmethod
    def parse(cls, value: "Network | str") -> "Network":
        """Resolve a network name or alias (``main``, ``bitcoin``, ``test``)."""
        if isinstance(value, Network):
            return value
        name = str(value).strip().lower()
        name = _ALIASES.get(name, name)
        try:
            return cls(name)
        except ValueError:
            raise ValueError(f"Unknown bitcoin network: {value!r}") from None

    @property
    def btclib_name(self) -> str:
        """Network name as understood by btclib."""
        return self.value

    @property
    def relay_base_url(self) -> str:
        """Default public relay (mempool.space esplora API) for this network."""
        return RELAY_BASE_URLS[self]


_ALIASES = {
    "main": "mainnet",
    "bitcoin": "mainnet",
    "test": "testnet",
}

RELAY_BASE_URLS: dict[Network, str] = {
    Network.MAINNET: "https://mempool.space/api",
    Network.TESTNET: "https://mempool.space/testnet/api",
    Network.SIGNET: "https://mempool.space/signet/api",
}

# (bech32 human readable part, base58 leading characters)
_ADDRESS_RULES: dict[Network, tuple[str, str]] = {
    Network.MAINNET: ("bc1", "13"),
    Network.TESTNET: ("tb1", "mn2"),
    Network.SIGNET: ("tb1", "mn2"),
}

_BASE58_BODY = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{25,34}$")


def is_address_for_network(address: str, network: Network | str) -> bool:
    """Check whether an address has the format used on ``network``.

    Args:
        address: Address string as supplied by the caller
        network: Network (or name) whose rules apply

    Returns:
        True if the address prefix matches the network's bech32 HRP or
        one of its base58 version characters
    """
    if not address:
        return False
    hrp, base58_leads = _ADDRESS_RULES[Network.parse(network)]

    if address.lower().startswith(hrp):
        return True
    # bech32 of another network (bc1 on testnet, tb1/bcrt1 on mainnet)
    if address.lower().startswith(("bc1", "tb1", "bcrt1")):
        return False
    return address[0] in base58_leads and bool(_BASE58_BODY.match(address))
