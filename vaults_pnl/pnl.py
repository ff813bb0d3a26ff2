"""PnL calculation for both cost-basis policies."""

from vaults_pnl.formatters import ratio
from vaults_pnl.models import CostBasisPolicy, LotHolder, PnLResult, UserPosition
from vaults_pnl.normalizer import assets_for_shares, implied_price_per_share
from vaults_pnl.positions import adjusted_totals, cost_basis


def weighted_average_basis(position: UserPosition, asset_decimals: int, share_decimals: int) -> tuple[int, int]:
    """
    (assets, shares) the holder is considered to have paid for.

    A holder with shares but no recorded investment (pure transfer recipient) is given
    the implied 1:1 cost instead of a zero basis.
    """
    assets, shares = adjusted_totals(position)
    if assets == 0 and shares > 0:
        assets = assets_for_shares(shares, implied_price_per_share(asset_decimals), share_decimals)
    return assets, shares


def calculate_weighted_average_pnl(
    position: UserPosition, current_value: int, asset_decimals: int, share_decimals: int
) -> PnLResult:
    """PnL of a weighted-average position valued at `current_value` (asset units)."""
    basis = weighted_average_basis(position, asset_decimals, share_decimals)
    invested, acquired = basis

    realized_cost = cost_basis(position, position.shares_ever_withdrawn, basis=basis)
    unrealized_cost = cost_basis(position, position.shares_held, basis=basis)
    realized_pnl = position.assets_withdrawn - realized_cost
    unrealized_pnl = current_value - unrealized_cost
    total_pnl = realized_pnl + unrealized_pnl

    deposited = position.assets_invested + position.assets_migrated
    return PnLResult(
        holder=position.holder,
        policy=CostBasisPolicy.WEIGHTED_AVERAGE,
        total_deposited=deposited,
        total_withdrawn=position.assets_withdrawn,
        net_invested=deposited - position.assets_withdrawn,
        current_shares=position.shares_held,
        current_value=current_value,
        total_value=current_value + position.assets_withdrawn,
        shares_acquired=acquired,
        realized_cost_basis=realized_cost,
        unrealized_cost_basis=unrealized_cost,
        realized_pnl=realized_pnl,
        unrealized_pnl=unrealized_pnl,
        total_pnl=total_pnl,
        pnl_percentage=ratio(total_pnl, asset_decimals, invested, asset_decimals) * 100,
        avg_acquisition_price=ratio(invested, asset_decimals, acquired, share_decimals),
    )


def calculate_fifo_pnl(holder: LotHolder, current_value: int, asset_decimals: int, share_decimals: int) -> PnLResult:
    """PnL of a FIFO lot holder valued at `current_value` (asset units)."""
    unrealized_cost = holder.unrealized_cost_basis
    unrealized_pnl = current_value - unrealized_cost
    total_pnl = holder.realized_pnl + unrealized_pnl

    return PnLResult(
        holder=holder.holder,
        policy=CostBasisPolicy.FIFO,
        total_deposited=holder.total_cost_basis,
        total_withdrawn=holder.total_proceeds,
        net_invested=holder.total_cost_basis - holder.total_proceeds,
        current_shares=holder.current_balance,
        current_value=current_value,
        total_value=current_value + holder.total_proceeds,
        shares_acquired=holder.total_acquired,
        realized_cost_basis=holder.realized_cost_basis,
        unrealized_cost_basis=unrealized_cost,
        realized_pnl=holder.realized_pnl,
        unrealized_pnl=unrealized_pnl,
        total_pnl=total_pnl,
        pnl_percentage=ratio(total_pnl, asset_decimals, holder.total_cost_basis, asset_decimals) * 100,
        avg_acquisition_price=ratio(holder.total_cost_basis, asset_decimals, holder.total_acquired, share_decimals),
    )


def compute_pnl(
    position: UserPosition | LotHolder, current_value: int, asset_decimals: int, share_decimals: int
) -> PnLResult:
    """Compute the PnL statement of a position built by either policy."""
    if isinstance(position, LotHolder):
        return calculate_fifo_pnl(position, current_value, asset_decimals, share_decimals)
    if isinstance(position, UserPosition):
        return calculate_weighted_average_pnl(position, current_value, asset_decimals, share_decimals)
    raise TypeError(f"Unsupported position type: {type(position).__name__}")
