"""Contract interaction: vault metadata and the price oracle."""

import sys
from collections.abc import Iterable
from typing import TYPE_CHECKING

from tqdm import tqdm

from vaults_pnl.cache import PRICES, cache_key, get_cached, set_cached
from vaults_pnl.constants import ERC20_MIN_ABI, ERC4626_MIN_ABI
from vaults_pnl.models import SharePriceSnapshot, VaultInfo

if TYPE_CHECKING:
    from web3 import Web3  # pragma: no cover


def vault_contract(w3: "Web3", vault_address: str):
    return w3.eth.contract(address=w3.to_checksum_address(vault_address), abi=ERC4626_MIN_ABI)


def fetch_vault_info(w3: "Web3", vault_address: str) -> VaultInfo:
    """Read share decimals and the underlying asset's decimals and symbol."""
    vault = vault_contract(w3, vault_address)
    decimals = int(vault.functions.decimals().call())
    asset_address = str(vault.functions.asset().call())

    asset = w3.eth.contract(address=w3.to_checksum_address(asset_address), abi=ERC20_MIN_ABI)
    asset_decimals = int(asset.functions.decimals().call())
    try:
        asset_symbol = str(asset.functions.symbol().call())
    except Exception:  # pylint: disable=broad-exception-caught
        # Some tokens return bytes32 or nothing for symbol()
        asset_symbol = ""

    return VaultInfo(
        address=vault_address.lower(),
        decimals=decimals,
        asset_address=asset_address.lower(),
        asset_decimals=asset_decimals,
        asset_symbol=asset_symbol,
    )


def fetch_share_price_snapshot(w3: "Web3", vault_address: str, block: int) -> SharePriceSnapshot:
    """totalAssets/totalSupply at a block, plus the block timestamp."""
    vault = vault_contract(w3, vault_address)
    total_assets = int(vault.functions.totalAssets().call(block_identifier=block))
    total_supply = int(vault.functions.totalSupply().call(block_identifier=block))
    timestamp = int(w3.eth.get_block(block)["timestamp"])
    return SharePriceSnapshot(block=block, timestamp=timestamp, total_assets=total_assets, total_supply=total_supply)


class VaultOracle:
    """
    Share valuation through the vault's own convertToAssets.

    A block of None means the latest state.
    """

    def __init__(self, w3: "Web3", vault: VaultInfo):
        self.w3 = w3
        self.vault = vault
        self.contract = vault_contract(w3, vault.address)
        self._current_pps: int | None = None

    @property
    def one_share(self) -> int:
        return 10**self.vault.decimals

    def convert_to_assets(self, shares: int, block: int | None = None) -> int:
        fn = self.contract.functions.convertToAssets(int(shares))
        if block is None:
            return int(fn.call())
        return int(fn.call(block_identifier=block))

    def price_per_share(self, block: int | None = None) -> int:
        """Assets for one whole share."""
        if block is None:
            if self._current_pps is None:
                self._current_pps = self.convert_to_assets(self.one_share)
            return self._current_pps
        return self.convert_to_assets(self.one_share, block)

    def prices_for_blocks(
        self, blocks: Iterable[int], *, use_current: bool = False, use_cache: bool = True
    ) -> tuple[dict[int, int], list[str]]:
        """
        Price per share at each block.

        A block whose historical call fails is priced at the current price instead;
        each substitution is reported in the returned warnings.
        """
        blocks = sorted(set(blocks))
        prices: dict[int, int] = {}
        warnings: list[str] = []
        if not blocks:
            return prices, warnings

        if use_current:
            current = self.price_per_share()
            return {b: current for b in blocks}, warnings

        for block in tqdm(blocks, desc="💱 Fetching share prices", unit="block", file=sys.stderr):
            key = cache_key(PRICES, self.vault.address, block)
            if use_cache:
                hit = get_cached(key)
                if hit is not None:
                    prices[block] = int(hit)
                    continue
            try:
                pps = self.price_per_share(block)
            except Exception as ex:  # pylint: disable=broad-exception-caught
                pps = self.price_per_share()
                msg = f"Price lookup failed at block {block} ({ex}); using current price"
                tqdm.write(f"⚠️  {msg}", file=sys.stderr)
                warnings.append(msg)
                prices[block] = pps
                continue
            prices[block] = pps
            if use_cache:
                set_cached(key, pps)

        return prices, warnings
