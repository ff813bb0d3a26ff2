"""Weighted-average position aggregation.

Cost basis of any quantity of shares is a proportional slice of everything the holder
put in. This is a single blended price, not FIFO: it diverges from fifo.py when a holder
buys and sells at different times.

Bridge mints have no Deposit log behind them, so they are booked like migrated shares:
at the implied cost the normalizer priced them at.
"""

from collections.abc import Iterable

from vaults_pnl.constants import (
    BRIDGE_MINT,
    DEPOSIT,
    MIGRATION,
    PRE_DEPOSIT,
    TRANSFER_IN,
    TRANSFER_OUT,
    WITHDRAW,
)
from vaults_pnl.formatters import mul_div
from vaults_pnl.models import UserPosition, VaultEvent

IMPLIED_COST = frozenset({MIGRATION, PRE_DEPOSIT, BRIDGE_MINT})
ACQUISITIONS = frozenset({DEPOSIT, TRANSFER_IN}) | IMPLIED_COST
DISPOSALS = frozenset({WITHDRAW, TRANSFER_OUT})


def apply_event(position: UserPosition, event: VaultEvent) -> str | None:
    """
    Fold one event into the position.

    Returns a warning when a disposal exceeds the held balance; the disposal is then
    clamped to what is held so the balance never goes negative.
    """
    if event.kind not in ACQUISITIONS and event.kind not in DISPOSALS:
        return None

    position.events.append(event)

    if event.kind in IMPLIED_COST:
        position.shares_held += event.shares
        position.shares_migrated += event.shares
        position.assets_migrated += event.assets
        return None

    if event.kind in ACQUISITIONS:
        position.shares_held += event.shares
        position.shares_ever_deposited += event.shares
        if event.kind == DEPOSIT:
            # Transfers in are excluded: the holder never paid the vault for them.
            position.assets_invested += event.assets
        return None

    warning = None
    shares = event.shares
    if shares > position.shares_held:
        warning = (
            f"Holder {position.holder}: {event.kind} of {shares} shares at block {event.block} "
            f"exceeds balance {position.shares_held}; clamped"
        )
        shares = position.shares_held
    position.shares_held -= shares
    position.shares_ever_withdrawn += shares
    if event.kind == WITHDRAW:
        position.assets_withdrawn += event.assets
    return warning


def compute_positions(events: Iterable[VaultEvent], *, issues: list[str] | None = None) -> dict[str, UserPosition]:
    """Fold an ordered event stream into one position per holder."""
    positions: dict[str, UserPosition] = {}
    for event in events:
        if event.kind not in ACQUISITIONS and event.kind not in DISPOSALS:
            continue
        position = positions.get(event.holder)
        if position is None:
            position = positions[event.holder] = UserPosition(holder=event.holder)
        warning = apply_event(position, event)
        if warning and issues is not None:
            issues.append(warning)
    return positions


def adjusted_totals(position: UserPosition) -> tuple[int, int]:
    """(assets, shares) ever put in, with migrated shares at their implied cost."""
    return (
        position.assets_invested + position.assets_migrated,
        position.shares_ever_deposited + position.shares_migrated,
    )


def cost_basis(position: UserPosition, shares: int, *, basis: tuple[int, int] | None = None) -> int:
    """
    Proportional cost of `shares`: adjusted_assets * shares / adjusted_shares, truncated.

    `basis` overrides the (assets, shares) totals, e.g. with an implied cost.
    """
    assets, total_shares = basis if basis is not None else adjusted_totals(position)
    if assets == 0 or total_shares == 0 or shares <= 0:
        return 0
    return mul_div(assets, shares, total_shares)
