"""The accounting pipeline: normalize -> cost-basis policy -> PnL.

Pure and synchronous. All chain access happens before (prices) or is injected
(`value_of`), so running it twice on the same input gives identical output.
"""

from collections.abc import Callable, Iterable, Mapping

from vaults_pnl.constants import BRIDGE_ADDRESS
from vaults_pnl.fifo import compute_lots
from vaults_pnl.models import CostBasisPolicy, LotHolder, RawLog, UserPosition, VaultAnalysis, VaultEvent, VaultInfo
from vaults_pnl.normalizer import normalize_events
from vaults_pnl.pnl import compute_pnl
from vaults_pnl.positions import compute_positions
from vaults_pnl.reports import compute_supply_stats, compute_vault_summary
from vaults_pnl.validation import validate_event_balance, validate_lot_invariants, validate_supply_consistency


def build_positions(
    events: Iterable[VaultEvent],
    policy: CostBasisPolicy,
    *,
    share_decimals: int,
    issues: list[str] | None = None,
) -> dict[str, UserPosition] | dict[str, LotHolder]:
    """Fold events with the selected policy."""
    if policy is CostBasisPolicy.FIFO:
        return compute_lots(events, share_decimals=share_decimals, issues=issues)
    if policy is CostBasisPolicy.WEIGHTED_AVERAGE:
        return compute_positions(events, issues=issues)
    raise ValueError(f"Unknown cost basis policy: {policy}")


def current_shares(position: UserPosition | LotHolder) -> int:
    if isinstance(position, LotHolder):
        return position.current_balance
    return position.shares_held


def analyze_vault(
    raw_logs: Iterable[RawLog],
    vault: VaultInfo,
    *,
    prices: Mapping[int, int],
    value_of: Callable[[int], int],
    policy: CostBasisPolicy = CostBasisPolicy.WEIGHTED_AVERAGE,
    holder: str | None = None,
    bridge_address: str = BRIDGE_ADDRESS,
) -> VaultAnalysis:
    """
    Run the full accounting pipeline for one vault.

    Args:
        raw_logs: every decoded log of the vault (order does not matter)
        vault: vault metadata (share and asset decimals)
        prices: block -> price per whole share for every transfer block
        value_of: shares -> current asset value (latest block)
        policy: weighted-average or FIFO
        holder: restrict the statement to one holder
        bridge_address: bridge whose mints are excluded / re-classified

    Returns:
        VaultAnalysis with results sorted by holder address
    """
    issues: list[str] = []
    events, norm_issues = normalize_events(
        raw_logs,
        share_decimals=vault.decimals,
        asset_decimals=vault.asset_decimals,
        prices=prices,
        holder=holder,
        bridge_address=bridge_address,
    )
    issues.extend(norm_issues)

    positions = build_positions(events, policy, share_decimals=vault.decimals, issues=issues)

    results = []
    for key in sorted(positions):
        position = positions[key]
        if isinstance(position, LotHolder):
            validate_lot_invariants(position)
        shares = current_shares(position)
        value = value_of(shares) if shares > 0 else 0
        results.append(compute_pnl(position, value, vault.asset_decimals, vault.decimals))

    summary = compute_vault_summary(results, asset_decimals=vault.asset_decimals, share_decimals=vault.decimals)
    supply = compute_supply_stats(events, results, bridge_address=bridge_address)

    # A single holder's slice is never a closed system. Only the lot ledger is built from
    # the same Transfer view as the supply figures.
    if holder is None:
        issues.extend(validate_event_balance(events))
        if policy is CostBasisPolicy.FIFO:
            balances = {r.holder: r.current_shares for r in results}
            issues.extend(validate_supply_consistency(supply, balances))

    return VaultAnalysis(
        vault=vault,
        policy=policy,
        events=tuple(events),
        results=tuple(results),
        summary=summary,
        supply=supply,
        warnings=tuple(issues),
    )
