"""Share-price growth between two vault snapshots."""

import re
from dataclasses import dataclass

from vaults_pnl.constants import AVERAGE_BLOCK_TIME_S, DAYS_PER_YEAR, SECONDS_PER_DAY
from vaults_pnl.formatters import mul_div, ratio
from vaults_pnl.models import SharePriceSnapshot

_PERIOD_RE = re.compile(r"^(\d+)([hdwmy])$")

SECONDS_PER_UNIT = {
    "h": 3600,
    "d": SECONDS_PER_DAY,
    "w": 7 * SECONDS_PER_DAY,
    "m": 30 * SECONDS_PER_DAY,
    "y": DAYS_PER_YEAR * SECONDS_PER_DAY,
}


@dataclass(frozen=True)
class SharePriceGrowth:
    """Growth of assets-per-share between two snapshots."""

    initial: SharePriceSnapshot
    current: SharePriceSnapshot
    initial_assets_per_share: float
    current_assets_per_share: float
    # Value gained by the shares that existed at the initial snapshot, in asset units
    asset_growth: int
    growth_rate: float
    growth_percentage: float
    multiplier: float
    days_elapsed: float
    # None when less than a day elapsed; annualizing hours of data is noise
    apy: float | None


def parse_time_period(period: str) -> int:
    """'1h', '7d', '2w', '3m' (30 days), '1y' -> seconds."""
    match = _PERIOD_RE.match(period.strip().lower())
    if not match:
        raise ValueError(f"Invalid time period {period!r}. Use e.g.: 1h, 1d, 1w, 1m, 3m, 6m, 1y")
    value, unit = match.groups()
    return int(value) * SECONDS_PER_UNIT[unit]


def blocks_for_period(period: str, *, block_time_s: int = AVERAGE_BLOCK_TIME_S) -> int:
    """Approximate number of blocks in a period."""
    if block_time_s <= 0:
        raise ValueError("block_time_s must be > 0")
    return parse_time_period(period) // block_time_s


def assets_per_share(snapshot: SharePriceSnapshot, *, asset_decimals: int, share_decimals: int) -> float:
    return ratio(snapshot.total_assets, asset_decimals, snapshot.total_supply, share_decimals)


def calculate_share_price_growth(
    initial: SharePriceSnapshot,
    current: SharePriceSnapshot,
    *,
    asset_decimals: int,
    share_decimals: int,
) -> SharePriceGrowth:
    """
    Compare two snapshots of the same vault.

    Growth rate is (current - initial) / initial assets-per-share; APY compounds that rate
    over the elapsed time and is only reported once at least one day has passed.
    """
    initial_aps = assets_per_share(initial, asset_decimals=asset_decimals, share_decimals=share_decimals)
    current_aps = assets_per_share(current, asset_decimals=asset_decimals, share_decimals=share_decimals)

    growth_rate = (current_aps - initial_aps) / initial_aps if initial_aps > 0 else 0.0

    asset_growth = 0
    if initial.total_supply > 0 and current.total_supply > 0:
        asset_growth = mul_div(initial.total_supply, current.total_assets, current.total_supply) - initial.total_assets

    days_elapsed = max(0, current.timestamp - initial.timestamp) / SECONDS_PER_DAY
    apy = None
    if days_elapsed >= 1 and growth_rate > -1:
        apy = ((1 + growth_rate) ** (DAYS_PER_YEAR / days_elapsed) - 1) * 100

    return SharePriceGrowth(
        initial=initial,
        current=current,
        initial_assets_per_share=initial_aps,
        current_assets_per_share=current_aps,
        asset_growth=asset_growth,
        growth_rate=growth_rate,
        growth_percentage=growth_rate * 100,
        multiplier=1 + growth_rate,
        days_elapsed=days_elapsed,
        apy=apy,
    )
