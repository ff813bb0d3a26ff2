"""Vault-wide aggregation and JSON export."""

import json
import sys
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

from vaults_pnl.constants import BRIDGE_ADDRESS, BRIDGE_MINT, BURN, DEFAULT_OUTPUT_DIR, MINT, TRANSFER_OUT
from vaults_pnl.formatters import format_units, ratio
from vaults_pnl.models import PnLResult, SupplyStats, VaultAnalysis, VaultEvent, VaultInfo, VaultSummary


def compute_vault_summary(results: Sequence[PnLResult], *, asset_decimals: int, share_decimals: int) -> VaultSummary:
    """Compute aggregated PnL across all holders."""
    total_deposited = 0
    total_withdrawn = 0
    current_shares = 0
    current_value = 0
    shares_acquired = 0
    realized_pnl = 0
    unrealized_pnl = 0

    for r in results:
        total_deposited += r.total_deposited
        total_withdrawn += r.total_withdrawn
        current_shares += r.current_shares
        current_value += r.current_value
        shares_acquired += r.shares_acquired
        realized_pnl += r.realized_pnl
        unrealized_pnl += r.unrealized_pnl

    total_pnl = realized_pnl + unrealized_pnl
    return VaultSummary(
        holder_count=len(results),
        total_deposited=total_deposited,
        total_withdrawn=total_withdrawn,
        net_invested=total_deposited - total_withdrawn,
        current_shares=current_shares,
        current_value=current_value,
        total_value=current_value + total_withdrawn,
        realized_pnl=realized_pnl,
        unrealized_pnl=unrealized_pnl,
        total_pnl=total_pnl,
        pnl_percentage=ratio(total_pnl, asset_decimals, total_deposited, asset_decimals) * 100,
        avg_acquisition_price=ratio(total_deposited, asset_decimals, shares_acquired, share_decimals),
    )


def compute_supply_stats(
    events: Iterable[VaultEvent], results: Sequence[PnLResult], *, bridge_address: str = BRIDGE_ADDRESS
) -> SupplyStats:
    """Supply movements from the Transfer view of the stream plus holder counts."""
    mint_count = burn_count = bridge_mint_count = transfer_count = 0
    total_minted = total_burned = total_bridge_minted = 0

    for e in events:
        if e.kind == MINT:
            # Mints to the bridge come back as bridge mints; never count them twice.
            if e.holder == bridge_address.lower():
                continue
            mint_count += 1
            total_minted += e.shares
        elif e.kind == BURN:
            burn_count += 1
            total_burned += e.shares
        elif e.kind == BRIDGE_MINT:
            bridge_mint_count += 1
            total_bridge_minted += e.shares
        elif e.kind == TRANSFER_OUT:
            transfer_count += 1

    return SupplyStats(
        mint_count=mint_count,
        burn_count=burn_count,
        bridge_mint_count=bridge_mint_count,
        transfer_count=transfer_count,
        total_minted=total_minted,
        total_burned=total_burned,
        total_bridge_minted=total_bridge_minted,
        total_supply=total_minted + total_bridge_minted - total_burned,
        holders=len(results),
        active_holders=sum(1 for r in results if r.current_shares > 0),
        current_total_value=sum(r.current_value for r in results),
    )


def top_movers(results: Iterable[PnLResult], n: int) -> list[PnLResult]:
    """Holders with the largest total PnL first; ties broken by address."""
    return sorted(results, key=lambda r: (-r.total_pnl, r.holder))[:n]


def event_to_json(e: VaultEvent, vault: VaultInfo) -> dict[str, Any]:
    return {
        "type": e.kind,
        "block": str(e.block),
        "logIndex": e.log_index,
        "transaction": e.tx_id,
        "assets": format_units(e.assets, vault.asset_decimals),
        "shares": format_units(e.shares, vault.decimals),
        "pricePerShare": format_units(e.price_per_share, vault.asset_decimals),
    }


def result_to_json(r: PnLResult, vault: VaultInfo) -> dict[str, Any]:
    ad = vault.asset_decimals
    return {
        "address": r.holder,
        "totalDeposited": format_units(r.total_deposited, ad),
        "totalWithdrawn": format_units(r.total_withdrawn, ad),
        "netInvested": format_units(r.net_invested, ad),
        "currentShares": format_units(r.current_shares, vault.decimals),
        "currentValue": format_units(r.current_value, ad),
        "totalPnL": format_units(r.total_pnl, ad),
        "totalPnLPercentage": round(r.pnl_percentage, 2),
        "realizedPnL": format_units(r.realized_pnl, ad),
        "unrealizedPnL": format_units(r.unrealized_pnl, ad),
        "avgAcquisitionPrice": r.avg_acquisition_price,
    }


def summary_to_json(s: VaultSummary, vault: VaultInfo) -> dict[str, Any]:
    ad = vault.asset_decimals
    return {
        "totalUsers": s.holder_count,
        "totalDeposited": format_units(s.total_deposited, ad),
        "totalWithdrawn": format_units(s.total_withdrawn, ad),
        "netInvested": format_units(s.net_invested, ad),
        "currentShares": format_units(s.current_shares, vault.decimals),
        "currentValue": format_units(s.current_value, ad),
        "totalValue": format_units(s.total_value, ad),
        "totalPnL": format_units(s.total_pnl, ad),
        "totalPnLPercentage": round(s.pnl_percentage, 2),
        "realizedPnL": format_units(s.realized_pnl, ad),
        "unrealizedPnL": format_units(s.unrealized_pnl, ad),
        "avgAcquisitionPrice": s.avg_acquisition_price,
    }


def supply_to_json(s: SupplyStats, vault: VaultInfo) -> dict[str, Any]:
    sd = vault.decimals
    return {
        "totalSupply": format_units(s.total_supply, sd),
        "totalMinted": format_units(s.total_minted, sd),
        "totalBurned": format_units(s.total_burned, sd),
        "bridgeMinted": format_units(s.total_bridge_minted, sd),
        "mints": s.mint_count,
        "burns": s.burn_count,
        "bridgeMints": s.bridge_mint_count,
        "transfers": s.transfer_count,
        "currentTotalValue": format_units(s.current_total_value, vault.asset_decimals),
        "totalUsers": s.holders,
        "activeUsers": s.active_holders,
    }


def build_json_export(analysis: VaultAnalysis, *, holder: str | None = None) -> dict[str, Any]:
    """Export schema: vault metadata, vault summary, supply, per-holder rows, holder events."""
    vault = analysis.vault
    export: dict[str, Any] = {
        "vault": {
            "address": vault.address,
            "asset": vault.asset_address,
            "assetSymbol": vault.asset_symbol,
            "decimals": vault.decimals,
            "assetDecimals": vault.asset_decimals,
        },
        "policy": analysis.policy.value,
        "summary": summary_to_json(analysis.summary, vault),
        "supply": supply_to_json(analysis.supply, vault),
        "users": [result_to_json(r, vault) for r in analysis.results],
        "warnings": list(analysis.warnings),
    }
    if holder is not None:
        wanted = holder.lower()
        export["events"] = [event_to_json(e, vault) for e in analysis.events if e.holder == wanted]
    return export


def export_filename(vault_address: str, holder: str | None = None) -> str:
    if holder:
        return f"{holder.lower()}-{vault_address.lower()}.json"
    return f"{vault_address.lower()}.json"


def save_json_export(
    export: dict[str, Any], vault_address: str, holder: str | None = None, *, output_dir: str | Path = DEFAULT_OUTPUT_DIR
) -> Path:
    """Write the export to `<output_dir>/<[holder-]vault>.json`. Returns the path."""
    out_dir = Path(output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / export_filename(vault_address, holder)
    with path.open("w", encoding="utf-8") as f:
        json.dump(export, f, indent=2)
    print(f"✅ Results saved to: {path}", file=sys.stderr)
    return path
