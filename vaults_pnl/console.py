"""Console output formatting."""

import sys
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone

from vaults_pnl.analytics import SharePriceGrowth
from vaults_pnl.constants import TOP_MOVERS_COUNT
from vaults_pnl.formatters import format_amount, format_pct, format_units, short_address, signed
from vaults_pnl.models import PnLResult, SupplyStats, VaultAnalysis, VaultEvent, VaultInfo, VaultSummary
from vaults_pnl.reports import top_movers

_EVENT_EMOJI = {
    "deposit": "📥",
    "withdraw": "📤",
    "transfer_in": "⬅️ ",
    "transfer_out": "➡️ ",
    "mint": "🪙",
    "burn": "🔥",
    "bridge_mint": "🌉",
    "migration": "🚚",
    "pre_deposit": "🕐",
}


def pnl_indicator(value: int) -> str:
    if value > 0:
        return "🟢"
    if value < 0:
        return "🔴"
    return "⚪"


def print_vault_header(vault: VaultInfo, *, policy: str, chain: str | None = None) -> None:
    print("=" * 70)
    print("📊 VAULT PnL REPORT")
    print(f"   Vault: {vault.address}")
    print(f"   Asset: {vault.asset_symbol or vault.asset_address}  •  decimals={vault.asset_decimals}")
    suffix = f"  •  chain={chain}" if chain else ""
    print(f"   Cost basis: {policy}{suffix}")
    print("=" * 70)


def print_events(events: Iterable[VaultEvent], vault: VaultInfo) -> None:
    """Chronological event table for one holder."""
    events = list(events)
    print(f"\n🧾 Events ({len(events)})")
    print("   " + "─" * 66)
    if not events:
        print("   ℹ️ No events for this holder.")
        return
    for e in events:
        emoji = _EVENT_EMOJI.get(e.kind, "•")
        print(
            f"   {emoji} {e.kind:<12} block {e.block:>10} #{e.log_index:<4}"
            f" shares {format_amount(e.shares, vault.decimals, places=6):>18}"
            f"  assets {format_amount(e.assets, vault.asset_decimals, places=6):>18}"
        )


def print_pnl_result(r: PnLResult, vault: VaultInfo) -> None:
    """Full statement for one holder."""
    ad, sym = vault.asset_decimals, vault.asset_symbol
    print(f"\n{pnl_indicator(r.total_pnl)} Holder: {r.holder}")
    print("   " + "─" * 50)
    print(f"   💰 Total deposited:   {format_amount(r.total_deposited, ad, sym)}")
    print(f"   💸 Total withdrawn:   {format_amount(r.total_withdrawn, ad, sym)}")
    print(f"   🔁 Net invested:      {format_amount(r.net_invested, ad, sym)}")
    print(f"   📦 Current shares:    {format_units(r.current_shares, vault.decimals)}")
    print(f"   🧮 Current value:     {format_amount(r.current_value, ad, sym)}")
    print(f"   📈 Realized PnL:      {signed(r.realized_pnl, ad, sym)}")
    print(f"   📉 Unrealized PnL:    {signed(r.unrealized_pnl, ad, sym)}")
    print(f"   🏁 Total PnL:         {signed(r.total_pnl, ad, sym)} ({format_pct(r.pnl_percentage)})")
    print(f"   🏷️  Avg acquisition:   {r.avg_acquisition_price:.6f} {sym}/share".rstrip())


def print_vault_summary(s: VaultSummary, vault: VaultInfo) -> None:
    ad, sym = vault.asset_decimals, vault.asset_symbol
    print("\n" + "=" * 70)
    print("🧾 VAULT SUMMARY (all holders)")
    print("=" * 70)
    print(f"👥 Holders: {s.holder_count}")
    print(f"💰 Total deposited: {format_amount(s.total_deposited, ad, sym, places=2)}")
    print(f"💸 Total withdrawn: {format_amount(s.total_withdrawn, ad, sym, places=2)}")
    print(f"🔁 Net invested:    {format_amount(s.net_invested, ad, sym, places=2)}")
    print(f"🧮 Current value:   {format_amount(s.current_value, ad, sym, places=2)}")
    print(f"📈 Realized PnL:    {signed(s.realized_pnl, ad, sym, places=2)}")
    print(f"📉 Unrealized PnL:  {signed(s.unrealized_pnl, ad, sym, places=2)}")
    print(f"🏁 Total PnL:       {signed(s.total_pnl, ad, sym, places=2)} ({format_pct(s.pnl_percentage)})")


def print_top_movers(results: Sequence[PnLResult], vault: VaultInfo, *, n: int = TOP_MOVERS_COUNT) -> None:
    movers = top_movers(results, n)
    if not movers:
        return
    print(f"\n🏆 TOP {len(movers)} BY TOTAL PnL")
    print("   " + "-" * 60)
    for i, r in enumerate(movers, start=1):
        pnl = signed(r.total_pnl, vault.asset_decimals, vault.asset_symbol, places=4)
        print(f"   #{i} {short_address(r.holder)}  {pnl}  ({format_pct(r.pnl_percentage)})")


def print_supply_stats(s: SupplyStats, vault: VaultInfo) -> None:
    sd = vault.decimals
    print("\n🪙 SUPPLY")
    print(f"   Total supply (from events): {format_amount(s.total_supply, sd, places=6)}")
    print(f"   Minted:        {format_amount(s.total_minted, sd, places=6)} ({s.mint_count} mints)")
    print(f"   Bridge minted: {format_amount(s.total_bridge_minted, sd, places=6)} ({s.bridge_mint_count} mints)")
    print(f"   Burned:        {format_amount(s.total_burned, sd, places=6)} ({s.burn_count} burns)")
    print(f"   Transfers:     {s.transfer_count}")
    print(f"   Holders:       {s.holders} total  •  {s.active_holders} active")


def print_growth(growth: SharePriceGrowth, vault: VaultInfo) -> None:
    def _ts(ts: int) -> str:
        return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d %H:%M UTC")

    print("\n📈 SHARE PRICE GROWTH")
    print(f"   Period: block {growth.initial.block} → {growth.current.block} ({growth.days_elapsed:.1f} days)")
    print(f"   Range:  {_ts(growth.initial.timestamp)} → {_ts(growth.current.timestamp)}")
    print(f"   Assets per share: {growth.initial_assets_per_share:.6f} → {growth.current_assets_per_share:.6f}")
    print(f"   Asset growth: {signed(growth.asset_growth, vault.asset_decimals, vault.asset_symbol, places=6)}")
    print(f"   Growth rate: {growth.growth_percentage:.4f}%  •  Multiplier: {growth.multiplier:.6f}x")
    if growth.apy is not None:
        print(f"   APY: {growth.apy:.2f}%")
    else:
        print("   APY: n/a (less than 1 day elapsed)")


def print_warnings(warnings: Iterable[str]) -> None:
    warnings = list(warnings)
    if not warnings:
        return
    print(f"⚠️  {len(warnings)} warning(s):", file=sys.stderr)
    for w in warnings:
        print(f"   {w}", file=sys.stderr)


def print_analysis(analysis: VaultAnalysis, *, holder: str | None = None, chain: str | None = None) -> None:
    """Holder statement when a holder is given, otherwise the vault-wide report."""
    vault = analysis.vault
    print_vault_header(vault, policy=analysis.policy.value, chain=chain)

    if holder is not None:
        wanted = holder.lower()
        print_events((e for e in analysis.events if e.holder == wanted), vault)
        for r in analysis.results:
            if r.holder == wanted:
                print_pnl_result(r, vault)
        print_warnings(analysis.warnings)
        return

    print_vault_summary(analysis.summary, vault)
    print_supply_stats(analysis.supply, vault)
    print_top_movers(analysis.results, vault)
    print("")
    print_warnings(analysis.warnings)
