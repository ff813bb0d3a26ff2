"""CLI and main logic."""

import argparse
import dataclasses
import sys

from vaults_pnl.analytics import blocks_for_period, calculate_share_price_growth
from vaults_pnl.blockchain import LogFetchError, fetch_vault_logs
from vaults_pnl.config import load_config
from vaults_pnl.console import print_analysis, print_growth
from vaults_pnl.constants import (
    CHAINS,
    DEFAULT_CHAIN,
    DEFAULT_LOG_CHUNK_SIZE,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_VAULT_ADDRESS,
)
from vaults_pnl.contracts import VaultOracle, fetch_share_price_snapshot, fetch_vault_info
from vaults_pnl.engine import analyze_vault
from vaults_pnl.models import CostBasisPolicy
from vaults_pnl.normalizer import blocks_needing_prices
from vaults_pnl.reports import build_json_export, save_json_export
from vaults_pnl.validation import validate_address

# Internal defaults (not exposed as CLI flags)
DEFAULT_TIMEOUT = 30


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse command-line arguments."""
    p = argparse.ArgumentParser(description="Profit and loss of ERC-4626 vault holders, rebuilt from share events.")
    p.add_argument("vault", help=f"Vault (share token) address, e.g. {DEFAULT_VAULT_ADDRESS}.")
    p.add_argument("holder", nargs="?", default=None, help="Analyze a single holder. Default: every holder.")
    p.add_argument("--chain", default=DEFAULT_CHAIN, choices=sorted(CHAINS), help=f"Chain. Default: {DEFAULT_CHAIN}.")
    p.add_argument(
        "--rpc-url",
        default=None,
        help="RPC URL. Falls back to <CHAIN>_RPC_URL, then the chain's public endpoint.",
    )
    p.add_argument(
        "--policy",
        default=CostBasisPolicy.WEIGHTED_AVERAGE.value,
        choices=[policy.value for policy in CostBasisPolicy],
        help="Cost basis policy. Default: weighted-average.",
    )
    p.add_argument("--json", action="store_true", help="Also write the results as JSON.")
    p.add_argument("--output-dir", default=DEFAULT_OUTPUT_DIR, help=f"JSON output directory. Default: {DEFAULT_OUTPUT_DIR}.")
    p.add_argument(
        "--no-cache",
        action="store_true",
        help="Disable caching for this run (fetch all data fresh from network).",
    )
    p.add_argument(
        "--current-prices",
        action="store_true",
        help="Value every transfer at the current share price (fast, approximate).",
    )
    p.add_argument(
        "--chunk-size",
        type=int,
        default=DEFAULT_LOG_CHUNK_SIZE,
        help=f"Blocks per eth_getLogs request. Default: {DEFAULT_LOG_CHUNK_SIZE}.",
    )
    p.add_argument("--from-block", type=int, default=None, help="First block to scan. Default: vault deployment.")
    p.add_argument(
        "--growth-period",
        default=None,
        help="Also report share price growth over a period (e.g. 7d, 1m, 1y).",
    )
    return p.parse_args(argv)


def main(argv: list[str]) -> int:
    """Main entry point."""
    args = parse_args(argv)

    try:
        vault_address = validate_address(args.vault, label="vault address")
        holder = validate_address(args.holder, label="holder address") if args.holder else None
        growth_blocks = blocks_for_period(args.growth_period) if args.growth_period else None
        if args.chunk_size <= 0:
            raise ValueError("--chunk-size must be > 0")
        config = load_config(args.chain, rpc_url=args.rpc_url, use_cache=not args.no_cache)
    except ValueError as ex:
        print(f"Error: {ex}", file=sys.stderr)
        return 2

    try:
        from web3 import Web3
    except ImportError as ex:  # pragma: no cover
        print("Missing dependency. Run: uv sync", file=sys.stderr)
        raise SystemExit(2) from ex

    w3 = Web3(Web3.HTTPProvider(config.rpc_url, request_kwargs={"timeout": DEFAULT_TIMEOUT}))
    if not w3.is_connected():
        print(f"Error: failed to connect to RPC at {config.rpc_url}", file=sys.stderr)
        return 2

    try:
        vault = fetch_vault_info(w3, vault_address)
    except Exception as ex:  # pylint: disable=broad-exception-caught
        print(f"Error: failed to read vault metadata at {vault_address}: {ex}", file=sys.stderr)
        return 1
    print(f"ℹ️ Vault {vault.address} ({vault.asset_symbol or vault.asset_address})", file=sys.stderr)

    try:
        raw_logs = fetch_vault_logs(
            w3,
            vault.address,
            holder,
            from_block=args.from_block,
            chunk_size=args.chunk_size,
            use_cache=config.use_cache,
        )
    except (LogFetchError, ValueError) as ex:
        print(f"Error: {ex}", file=sys.stderr)
        return 1

    if not raw_logs:
        print("No vault events found in the scanned range.", file=sys.stderr)
        return 1

    oracle = VaultOracle(w3, vault)
    try:
        prices, price_warnings = oracle.prices_for_blocks(
            blocks_needing_prices(raw_logs, bridge_address=config.bridge_address),
            use_current=args.current_prices,
            use_cache=config.use_cache,
        )
        analysis = analyze_vault(
            raw_logs,
            vault,
            prices=prices,
            value_of=oracle.convert_to_assets,
            policy=CostBasisPolicy(args.policy),
            holder=holder,
            bridge_address=config.bridge_address,
        )
    except Exception as ex:  # pylint: disable=broad-exception-caught
        # Reached when the current-price fallback or a valuation call fails as well
        print(f"Error: failed to price vault shares: {ex}", file=sys.stderr)
        return 1
    if price_warnings:
        analysis = dataclasses.replace(analysis, warnings=tuple(price_warnings) + analysis.warnings)

    if holder is not None and not analysis.results:
        print(f"No events found for holder {holder}.", file=sys.stderr)
        return 1

    print_analysis(analysis, holder=holder, chain=config.chain)

    if growth_blocks is not None:
        latest = int(w3.eth.block_number)
        start = max(0, latest - growth_blocks)
        try:
            initial = fetch_share_price_snapshot(w3, vault.address, start)
            current = fetch_share_price_snapshot(w3, vault.address, latest)
        except Exception as ex:  # pylint: disable=broad-exception-caught
            print(f"⚠️  Share price growth unavailable: {ex}", file=sys.stderr)
        else:
            growth = calculate_share_price_growth(
                initial, current, asset_decimals=vault.asset_decimals, share_decimals=vault.decimals
            )
            print_growth(growth, vault)

    if args.json:
        export = build_json_export(analysis, holder=holder)
        save_json_export(export, vault.address, holder, output_dir=args.output_dir)

    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
