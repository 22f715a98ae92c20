"""Supported Ethereum network configurations."""

from __future__ import annotations

from dataclasses import dataclass

from bytescope.core.config import Settings


@dataclass(frozen=True)
class NetworkConfig:
    """Configuration for a supported Ethereum network."""

    chain_id: int
    name: str
    alchemy_url_template: str  # Use {api_key} placeholder
    infura_url_template: str
    public_rpc_url: str
    explorer_url: str
    is_testnet: bool = False


# ── Network Registry ─────────────────────────────────────────────────────────

NETWORKS: dict[str, NetworkConfig] = {
    "mainnet": NetworkConfig(
        chain_id=1,
        name="Ethereum Mainnet",
        alchemy_url_template="https://eth-mainnet.g.alchemy.com/v2/{api_key}",
        infura_url_template="https://mainnet.infura.io/v3/{api_key}",
        public_rpc_url="https://ethereum-rpc.publicnode.com",
        explorer_url="https://etherscan.io",
    ),
    "sepolia": NetworkConfig(
        chain_id=11155111,
        name="Sepolia",
        alchemy_url_template="https://eth-sepolia.g.alchemy.com/v2/{api_key}",
        infura_url_template="https://sepolia.infura.io/v3/{api_key}",
        public_rpc_url="https://ethereum-sepolia-rpc.publicnode.com",
        explorer_url="https://sepolia.etherscan.io",
        is_testnet=True,
    ),
    "holesky": NetworkConfig(
        chain_id=17000,
        name="Holesky",
        alchemy_url_template="https://eth-holesky.g.alchemy.com/v2/{api_key}",
        infura_url_template="https://holesky.infura.io/v3/{api_key}",
        public_rpc_url="https://ethereum-holesky-rpc.publicnode.com",
        explorer_url="https://holesky.etherscan.io",
        is_testnet=True,
    ),
}


def get_network_config(network: str) -> NetworkConfig | None:
    """Get network configuration by name."""
    return NETWORKS.get(network.lower())


def resolve_rpc_url(settings: Settings, network: str | None = None) -> str:
    """Pick the RPC endpoint for a network.

    An explicit ``rpc_url`` wins, then Alchemy, then Infura, then the
    public endpoint.

    Raises:
        ValueError: If the network is unknown.
    """
    if settings.rpc_url:
        return settings.rpc_url

    name = network or settings.network
    config = get_network_config(name)
    if not config:
        raise ValueError(f"Unsupported network: {name}")

    if settings.alchemy_api_key:
        return config.alchemy_url_template.format(api_key=settings.alchemy_api_key)
    if settings.infura_api_key:
        return config.infura_url_template.format(api_key=settings.infura_api_key)
    return config.public_rpc_url
