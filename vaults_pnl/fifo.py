"""FIFO lot ledger.

Every acquisition opens a lot; every disposal consumes lots oldest-first. Built from the
Transfer log view of the vault (mint / burn / bridge mint / peer transfers).
"""

from collections.abc import Iterable

from vaults_pnl.constants import BRIDGE_MINT, BURN, MINT, TRANSFER_IN, TRANSFER_OUT
from vaults_pnl.formatters import mul_div
from vaults_pnl.models import FIFOEntry, LotHolder, VaultEvent
from vaults_pnl.normalizer import assets_for_shares

ACQUISITIONS = frozenset({MINT, BRIDGE_MINT, TRANSFER_IN})
DISPOSALS = frozenset({BURN, TRANSFER_OUT})


def acquire(holder: LotHolder, event: VaultEvent) -> None:
    """Open a lot for the acquired shares at the event's asset value."""
    holder.events.append(event)
    holder.total_acquired += event.shares
    holder.current_balance += event.shares
    holder.total_cost_basis += event.assets
    holder.lots.append(
        FIFOEntry(amount=event.shares, cost_basis=event.assets, block=event.block, source=event.kind)
    )


def consume_lots(holder: LotHolder, amount: int) -> int:
    """
    Remove `amount` shares from the front of the queue. Returns the cost basis consumed.

    A lot larger than what is left is split; its residual stays at the front.
    """
    remaining = amount
    consumed = 0
    while remaining > 0 and holder.lots:
        lot = holder.lots[0]
        if lot.amount <= remaining:
            holder.lots.popleft()
            remaining -= lot.amount
            consumed += lot.cost_basis
        else:
            cost_used = mul_div(lot.cost_basis, remaining, lot.amount)
            holder.lots[0] = FIFOEntry(
                amount=lot.amount - remaining,
                cost_basis=lot.cost_basis - cost_used,
                block=lot.block,
                source=lot.source,
            )
            consumed += cost_used
            remaining = 0
    return consumed


def dispose(holder: LotHolder, event: VaultEvent, *, share_decimals: int) -> str | None:
    """
    Realize a disposal against the oldest lots.

    Disposals larger than the balance are clamped; a warning is returned in that case.
    """
    holder.events.append(event)
    warning = None
    amount = event.shares
    proceeds = event.assets
    if amount > holder.current_balance:
        warning = (
            f"Holder {holder.holder}: {event.kind} of {amount} shares at block {event.block} "
            f"exceeds balance {holder.current_balance}; clamped"
        )
        amount = holder.current_balance
        proceeds = assets_for_shares(amount, event.price_per_share, share_decimals)

    holder.total_disposed += amount
    holder.current_balance -= amount
    holder.total_proceeds += proceeds

    consumed = consume_lots(holder, amount)
    holder.realized_cost_basis += consumed
    holder.realized_pnl += proceeds - consumed
    return warning


def compute_lots(
    events: Iterable[VaultEvent], *, share_decimals: int, issues: list[str] | None = None
) -> dict[str, LotHolder]:
    """Run the ordered event stream through the lot ledger, one queue per holder."""
    holders: dict[str, LotHolder] = {}
    for event in events:
        if event.kind not in ACQUISITIONS and event.kind not in DISPOSALS:
            continue
        holder = holders.get(event.holder)
        if holder is None:
            holder = holders[event.holder] = LotHolder(holder=event.holder)
        if event.kind in ACQUISITIONS:
            acquire(holder, event)
            continue
        warning = dispose(holder, event, share_decimals=share_decimals)
        if warning and issues is not None:
            issues.append(warning)
    return holders
