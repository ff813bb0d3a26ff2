"""Validation of inputs and accounting invariants."""

from collections.abc import Iterable, Mapping

from web3 import Web3

from vaults_pnl.constants import TRANSFER_IN, TRANSFER_OUT
from vaults_pnl.models import LotHolder, SupplyStats, VaultEvent


def validate_address(value: str | None, *, label: str = "address") -> str:
    """
    Reject malformed addresses before anything is fetched or computed.

    Mixed-case input must carry a valid EIP-55 checksum. Returns the lower-cased address.
    """
    if not value or not Web3.is_address(value):
        raise ValueError(f"Invalid {label}: {value}")
    return value.lower()


def validate_event_balance(events: Iterable[VaultEvent], *, warn_only: bool = True) -> list[str]:
    """
    Check that every outgoing transfer leg has a matching incoming leg.

    In a closed system both counts and both share totals are equal. A mismatch usually
    means the stream was filtered or partially fetched. Returns list of warnings.
    """
    issues: list[str] = []
    count_in = count_out = shares_in = shares_out = 0
    for e in events:
        if e.kind == TRANSFER_IN:
            count_in += 1
            shares_in += e.shares
        elif e.kind == TRANSFER_OUT:
            count_out += 1
            shares_out += e.shares

    if count_in != count_out:
        msg = f"Transfer event imbalance: {count_in} transfer_in vs {count_out} transfer_out"
        issues.append(msg)
        if not warn_only:
            raise ValueError(msg)
    elif shares_in != shares_out:
        msg = f"Transfer share imbalance: {shares_in} in vs {shares_out} out"
        issues.append(msg)
        if not warn_only:
            raise ValueError(msg)

    return issues


def validate_supply_consistency(
    supply: SupplyStats, balances: Mapping[str, int], *, warn_only: bool = True
) -> list[str]:
    """Sum of holder balances should equal minted + bridge-minted - burned."""
    issues: list[str] = []
    held = sum(balances.values())
    if held != supply.total_supply:
        msg = f"Supply mismatch: holders hold {held} shares, events imply {supply.total_supply}"
        issues.append(msg)
        if not warn_only:
            raise ValueError(msg)
    return issues


def validate_lot_invariants(holder: LotHolder, *, warn_only: bool = False) -> list[str]:
    """
    Lot conservation for one holder.

    sum(lot.amount) == current_balance and nothing in the queue is empty or negative.
    Raises ValueError by default since a broken queue means the ledger itself is wrong.
    """
    issues: list[str] = []

    queued = sum(lot.amount for lot in holder.lots)
    if queued != holder.current_balance:
        msg = f"Holder {holder.holder}: lots hold {queued} shares but balance is {holder.current_balance}"
        issues.append(msg)
        if not warn_only:
            raise ValueError(msg)

    for lot in holder.lots:
        if lot.amount <= 0 or lot.cost_basis < 0:
            msg = f"Holder {holder.holder}: invalid lot at block {lot.block}: amount={lot.amount}, cost={lot.cost_basis}"
            issues.append(msg)
            if not warn_only:
                raise ValueError(msg)

    if holder.realized_cost_basis + holder.unrealized_cost_basis != holder.total_cost_basis:
        msg = (
            f"Holder {holder.holder}: cost basis leak: realized({holder.realized_cost_basis}) + "
            f"unrealized({holder.unrealized_cost_basis}) != total({holder.total_cost_basis})"
        )
        issues.append(msg)
        if not warn_only:
            raise ValueError(msg)

    return issues
