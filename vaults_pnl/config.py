"""Run configuration. Built once from CLI args + environment and passed explicitly."""

import os
from collections.abc import Mapping
from dataclasses import dataclass

from vaults_pnl.constants import BRIDGE_ADDRESS, CHAINS, DEFAULT_CHAIN


@dataclass(frozen=True)
class Config:
    chain: str
    chain_id: int
    rpc_url: str
    bridge_address: str = BRIDGE_ADDRESS
    use_cache: bool = True


def rpc_env_var(chain: str) -> str:
    return f"{chain.upper()}_RPC_URL"


def load_config(
    chain: str = DEFAULT_CHAIN,
    *,
    rpc_url: str | None = None,
    bridge_address: str = BRIDGE_ADDRESS,
    use_cache: bool = True,
    env: Mapping[str, str] | None = None,
) -> Config:
    """
    Resolve the RPC endpoint: --rpc-url, then <CHAIN>_RPC_URL, then the chain's public default.

    Raises ValueError for an unknown chain or when no endpoint can be found.
    """
    env = os.environ if env is None else env
    if chain not in CHAINS:
        raise ValueError(f'Invalid chain "{chain}". Supported chains: {", ".join(CHAINS)}')

    chain_id, default_rpc = CHAINS[chain]
    url = rpc_url or env.get(rpc_env_var(chain)) or default_rpc
    if not url:
        raise ValueError(f"RPC URL for {chain} is not configured. Provide --rpc-url or set {rpc_env_var(chain)}.")

    return Config(
        chain=chain,
        chain_id=chain_id,
        rpc_url=url,
        bridge_address=bridge_address.lower(),
        use_cache=use_cache,
    )
