"""Event normalization: classify raw vault logs, dedupe, order and price them.

Deposit/Withdraw logs and Transfer logs describe the same share movements from two
angles. Both are normalized here; each cost-basis policy consumes the kinds it understands
(see positions.py and fifo.py).
"""

from collections.abc import Iterable, Mapping

from vaults_pnl.constants import (
    BRIDGE_ADDRESS,
    BRIDGE_MINT,
    BURN,
    DEPOSIT,
    IMPLIED_ASSETS_PER_SHARE,
    MIGRATION,
    MINT,
    PRE_DEPOSIT,
    RAW_DEPOSIT,
    RAW_MIGRATION,
    RAW_PRE_DEPOSIT,
    RAW_TRANSFER,
    RAW_WITHDRAW,
    TRANSFER_IN,
    TRANSFER_OUT,
    WITHDRAW,
    ZERO_ADDRESS,
)
from vaults_pnl.formatters import mul_div
from vaults_pnl.models import RawLog, VaultEvent

# Within one log, the outgoing leg of a transfer is applied before the incoming one.
_LEG_ORDER = {TRANSFER_OUT: 0, TRANSFER_IN: 1}


def implied_price_per_share(asset_decimals: int) -> int:
    """Price of one whole share under the implied 1:1 convention, in asset units."""
    return IMPLIED_ASSETS_PER_SHARE * 10**asset_decimals


def price_per_share(assets: int, shares: int, share_decimals: int) -> int:
    """Assets per one whole share, truncated. Zero shares yields 0."""
    return mul_div(assets, 10**share_decimals, shares)


def assets_for_shares(shares: int, pps: int, share_decimals: int) -> int:
    """Asset value of `shares` at `pps`, truncated."""
    return mul_div(shares, pps, 10**share_decimals)


def classify_transfer(from_address: str, to_address: str, *, bridge_address: str = BRIDGE_ADDRESS) -> str:
    """Returns mint | burn | bridge_mint | transfer, checked in that order."""
    if from_address.lower() == ZERO_ADDRESS:
        return MINT
    if to_address.lower() == ZERO_ADDRESS:
        return BURN
    if from_address.lower() == bridge_address.lower():
        return BRIDGE_MINT
    return RAW_TRANSFER


def dedupe_raw_logs(raw_logs: Iterable[RawLog]) -> list[RawLog]:
    """Keep the first record seen for every (tx_id, log_index)."""
    seen: set[tuple[str, int]] = set()
    out: list[RawLog] = []
    for log in raw_logs:
        key = (log.tx_id.lower(), log.log_index)
        if key in seen:
            continue
        seen.add(key)
        out.append(log)
    return out


def _is_suppressed_mint(log: RawLog, bridge_address: str) -> bool:
    return (
        log.kind == RAW_TRANSFER
        and (log.from_address or "").lower() == ZERO_ADDRESS
        and (log.to_address or "").lower() == bridge_address.lower()
    )


def blocks_needing_prices(raw_logs: Iterable[RawLog], *, bridge_address: str = BRIDGE_ADDRESS) -> list[int]:
    """
    Blocks whose price-per-share must come from the oracle.

    Only transfer records need one: deposits and withdrawals carry their own price,
    bridge mints and migrations use the implied price.
    """
    blocks: set[int] = set()
    for log in raw_logs:
        if log.kind != RAW_TRANSFER or log.shares == 0 or _is_suppressed_mint(log, bridge_address):
            continue
        kind = classify_transfer(log.from_address or "", log.to_address or "", bridge_address=bridge_address)
        if kind != BRIDGE_MINT:
            blocks.add(log.block)
    return sorted(blocks)


def _holder_of(log: RawLog, fallback: str | None) -> str:
    return (log.owner or fallback or "").lower()


def normalize_events(
    raw_logs: Iterable[RawLog],
    *,
    share_decimals: int,
    asset_decimals: int,
    prices: Mapping[int, int],
    holder: str | None = None,
    bridge_address: str = BRIDGE_ADDRESS,
) -> tuple[list[VaultEvent], list[str]]:
    """
    Turn raw vault logs into an ordered, priced VaultEvent list.

    Args:
        raw_logs: deposit/withdraw/transfer/migration/pre_deposit records, any order
        share_decimals: vault share decimals
        asset_decimals: underlying asset decimals
        prices: block -> price per whole share (asset units), for blocks_needing_prices()
        holder: keep only events of this holder (lower-case) when given
        bridge_address: address whose outgoing transfers are bridge mints

    Returns:
        (events sorted by (block, log_index), data-integrity warnings)
    """
    issues: list[str] = []
    events: list[VaultEvent] = []
    implied = implied_price_per_share(asset_decimals)

    def priced(block: int) -> int:
        if block not in prices:
            raise ValueError(f"Missing price per share for block {block}")
        return prices[block]

    for log in dedupe_raw_logs(raw_logs):
        if log.kind in (RAW_DEPOSIT, RAW_WITHDRAW):
            if log.shares == 0:
                issues.append(
                    f"{log.kind} in tx {log.tx_id} (log {log.log_index}) has zero shares; price set to 0"
                )
            kind = DEPOSIT if log.kind == RAW_DEPOSIT else WITHDRAW
            fallback = log.to_address if kind == DEPOSIT else log.from_address
            events.append(
                VaultEvent(
                    kind=kind,
                    block=log.block,
                    log_index=log.log_index,
                    tx_id=log.tx_id,
                    holder=_holder_of(log, fallback),
                    assets=log.assets,
                    shares=log.shares,
                    price_per_share=price_per_share(log.assets, log.shares, share_decimals),
                )
            )
        elif log.kind in (RAW_MIGRATION, RAW_PRE_DEPOSIT):
            events.append(
                VaultEvent(
                    kind=MIGRATION if log.kind == RAW_MIGRATION else PRE_DEPOSIT,
                    block=log.block,
                    log_index=log.log_index,
                    tx_id=log.tx_id,
                    holder=_holder_of(log, log.to_address),
                    assets=assets_for_shares(log.shares, implied, share_decimals),
                    shares=log.shares,
                    price_per_share=implied,
                    counterparty=(log.from_address or "").lower() or None,
                )
            )
        elif log.kind == RAW_TRANSFER:
            if log.shares == 0 or _is_suppressed_mint(log, bridge_address):
                continue
            src = (log.from_address or "").lower()
            dst = (log.to_address or "").lower()
            kind = classify_transfer(src, dst, bridge_address=bridge_address)
            pps = implied if kind == BRIDGE_MINT else priced(log.block)
            assets = assets_for_shares(log.shares, pps, share_decimals)
            if kind == RAW_TRANSFER:
                legs = ((TRANSFER_OUT, src, dst), (TRANSFER_IN, dst, src))
            elif kind == BURN:
                legs = ((BURN, src, None),)
            else:
                legs = ((kind, dst, src if kind == BRIDGE_MINT else None),)
            for leg_kind, leg_holder, counterparty in legs:
                events.append(
                    VaultEvent(
                        kind=leg_kind,
                        block=log.block,
                        log_index=log.log_index,
                        tx_id=log.tx_id,
                        holder=leg_holder,
                        assets=assets,
                        shares=log.shares,
                        price_per_share=pps,
                        counterparty=counterparty,
                    )
                )
        else:
            issues.append(f"Unknown record kind {log.kind!r} in tx {log.tx_id}; skipped")

    if holder is not None:
        wanted = holder.lower()
        events = [e for e in events if e.holder == wanted]

    events.sort(key=lambda e: (e.block, e.log_index, _LEG_ORDER.get(e.kind, 0)))
    return events, issues
