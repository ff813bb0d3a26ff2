import pytest

from vaults_pnl.constants import (
    BRIDGE_MINT,
    BURN,
    DEPOSIT,
    MIGRATION,
    MINT,
    PRE_DEPOSIT,
    TRANSFER_IN,
    TRANSFER_OUT,
    WITHDRAW,
)
from vaults_pnl.engine import build_positions, current_shares
from vaults_pnl.fifo import compute_lots, consume_lots
from vaults_pnl.models import CostBasisPolicy, FIFOEntry, LotHolder, PnLResult, UserPosition, VaultEvent
from vaults_pnl.pnl import compute_pnl
from vaults_pnl.positions import adjusted_totals, compute_positions, cost_basis
from vaults_pnl.validation import validate_lot_invariants

ALICE = "0x" + "11" * 20
BOB = "0x" + "22" * 20

_counter = iter(range(10**6))


def _event(kind, holder, shares, assets, *, block=1, log_index=None, price=0):
    return VaultEvent(
        kind=kind,
        block=block,
        log_index=next(_counter) if log_index is None else log_index,
        tx_id="0x01",
        holder=holder,
        assets=assets,
        shares=shares,
        price_per_share=price,
    )


def test_deposit_then_partial_withdraw_scenario():
    events = [
        _event(DEPOSIT, ALICE, 1_000_000, 1_000_000, block=1),
        _event(WITHDRAW, ALICE, 500_000, 600_000, block=2),
    ]
    position = compute_positions(events)[ALICE]
    assert position.shares_held == 500_000

    result = compute_pnl(position, 650_000, 6, 6)
    assert result.policy is CostBasisPolicy.WEIGHTED_AVERAGE
    assert result.realized_pnl == 100_000
    assert result.unrealized_pnl == 150_000
    assert result.total_pnl == 250_000
    assert result.pnl_percentage == pytest.approx(25.0)
    assert result.net_invested == 400_000
    assert result.total_value == 1_250_000
    assert result.avg_acquisition_price == pytest.approx(1.0)


SHARE = 10**18


def test_scenario_with_six_decimal_assets_and_eighteen_decimal_shares():
    events = [
        _event(DEPOSIT, ALICE, SHARE, 1_000_000, block=1),
        _event(WITHDRAW, ALICE, SHARE // 2, 600_000, block=2),
    ]
    position = compute_positions(events)[ALICE]
    assert position.shares_held == SHARE // 2
    assert cost_basis(position, SHARE // 2) == 500_000

    result = compute_pnl(position, 650_000, 6, 18)
    assert result.realized_pnl == 100_000
    assert result.unrealized_pnl == 150_000
    assert result.total_pnl == 250_000
    assert result.pnl_percentage == pytest.approx(25.0)
    # Raw integers would give 1e-12 here
    assert result.avg_acquisition_price == pytest.approx(1.0)


def _mixed_stream() -> list[VaultEvent]:
    """Deposit, transfer and partial exit, in both the vault-log and Transfer-log views."""
    return [
        _event(MINT, ALICE, SHARE, 1_000_000, block=1, log_index=0, price=1_000_000),
        _event(DEPOSIT, ALICE, SHARE, 1_000_000, block=1, log_index=1, price=1_000_000),
        _event(TRANSFER_OUT, ALICE, 4 * SHARE // 10, 440_000, block=2, log_index=0, price=1_100_000),
        _event(TRANSFER_IN, BOB, 4 * SHARE // 10, 440_000, block=2, log_index=0, price=1_100_000),
        _event(MINT, BOB, SHARE // 2, 550_000, block=3, log_index=0, price=1_100_000),
        _event(DEPOSIT, BOB, SHARE // 2, 550_000, block=3, log_index=1, price=1_100_000),
        _event(BURN, BOB, SHARE // 10, 120_000, block=4, log_index=0, price=1_200_000),
        _event(WITHDRAW, BOB, SHARE // 10, 120_000, block=4, log_index=1, price=1_200_000),
        _event(BURN, ALICE, 6 * SHARE // 10, 720_000, block=5, log_index=0, price=1_200_000),
        _event(WITHDRAW, ALICE, 6 * SHARE // 10, 720_000, block=5, log_index=1, price=1_200_000),
    ]


@pytest.mark.parametrize("policy", list(CostBasisPolicy))
def test_pnl_is_conserved_after_every_event(policy):
    events = _mixed_stream()
    for n in range(len(events) + 1):
        issues: list[str] = []
        positions = build_positions(events[:n], policy, share_decimals=18, issues=issues)
        assert issues == []
        for position in positions.values():
            shares = current_shares(position)
            assert shares >= 0
            result = compute_pnl(position, shares * 1_200_000 // SHARE, 6, 18)
            assert result.total_pnl == result.realized_pnl + result.unrealized_pnl
            assert result.total_value == result.current_value + result.total_withdrawn
            if isinstance(position, LotHolder):
                assert validate_lot_invariants(position) == []


def test_full_round_trip_at_same_price_has_zero_pnl():
    events = [
        _event(DEPOSIT, ALICE, 3_000_000, 3_000_000, block=1),
        _event(WITHDRAW, ALICE, 3_000_000, 3_000_000, block=2),
    ]
    result = compute_pnl(compute_positions(events)[ALICE], 0, 6, 6)
    assert result.current_shares == 0
    assert result.realized_pnl == 0
    assert result.unrealized_pnl == 0
    assert result.total_pnl == 0


def test_transfer_recipient_gets_implied_cost_not_zero_basis():
    events = [_event(TRANSFER_IN, BOB, 100_000_000, 120_000_000, price=1_200_000)]
    position = compute_positions(events)[BOB]
    assert position.assets_invested == 0

    result = compute_pnl(position, 110_000_000, 6, 6)
    assert result.unrealized_cost_basis == 100_000_000
    assert result.unrealized_pnl == 10_000_000
    assert result.pnl_percentage == pytest.approx(10.0)


def test_weighted_average_ignores_transfer_view_kinds():
    events = [_event(MINT, ALICE, 5, 5), _event(BURN, ALICE, 5, 5)]
    assert compute_positions(events) == {}


def test_weighted_average_over_withdraw_is_clamped_with_warning():
    issues: list[str] = []
    events = [_event(DEPOSIT, ALICE, 10, 10), _event(TRANSFER_OUT, ALICE, 15, 15)]
    position = compute_positions(events, issues=issues)[ALICE]
    assert position.shares_held == 0
    assert position.shares_ever_withdrawn == 10
    assert len(issues) == 1 and "clamped" in issues[0]


@pytest.mark.parametrize("kind", [MIGRATION, PRE_DEPOSIT, BRIDGE_MINT])
def test_implied_cost_acquisitions_are_booked_as_migrated(kind):
    events = [
        _event(kind, ALICE, 1_000_000, 1_000_000, price=1_000_000),
        _event(DEPOSIT, ALICE, 1_000_000, 2_000_000),
    ]
    position = compute_positions(events)[ALICE]
    assert adjusted_totals(position) == (3_000_000, 2_000_000)
    assert cost_basis(position, 1_000_000) == 1_500_000

    result = compute_pnl(position, 3_000_000, 6, 6)
    assert result.total_deposited == 3_000_000
    assert result.total_pnl == 0


def test_cost_basis_of_empty_position_is_zero():
    assert cost_basis(UserPosition(holder=ALICE), 10) == 0


def test_fifo_consumes_oldest_lots_first():
    events = [
        _event(MINT, ALICE, 100, 100, block=1),
        _event(MINT, ALICE, 100, 200, block=2),
        _event(BURN, ALICE, 150, 300, block=3, price=2),
    ]
    holder = compute_lots(events, share_decimals=0)[ALICE]
    assert holder.current_balance == 50
    assert list(holder.lots) == [FIFOEntry(amount=50, cost_basis=100, block=2, source=MINT)]
    assert holder.realized_cost_basis == 200
    assert holder.realized_pnl == 100
    assert validate_lot_invariants(holder) == []

    result = compute_pnl(holder, 150, 0, 0)
    assert result.policy is CostBasisPolicy.FIFO
    assert result.unrealized_pnl == 50
    assert result.total_pnl == 150
    assert result.pnl_percentage == pytest.approx(50.0)


def test_fifo_over_disposal_is_clamped_and_reprices_proceeds():
    issues: list[str] = []
    events = [
        _event(MINT, ALICE, 10, 10, block=1),
        _event(BURN, ALICE, 15, 30, block=2, price=2),
    ]
    holder = compute_lots(events, share_decimals=0, issues=issues)[ALICE]
    assert holder.current_balance == 0
    assert holder.total_disposed == 10
    assert holder.total_proceeds == 20
    assert holder.realized_pnl == 10
    assert len(issues) == 1
    assert validate_lot_invariants(holder) == []


def test_fifo_transfer_moves_cost_to_recipient():
    events = [
        _event(MINT, ALICE, 1_000, 1_000, block=1),
        _event(TRANSFER_OUT, ALICE, 400, 600, block=2, log_index=0),
        _event(TRANSFER_IN, BOB, 400, 600, block=2, log_index=0),
    ]
    holders = compute_lots(events, share_decimals=0)
    assert holders[ALICE].realized_pnl == 200
    assert holders[BOB].total_cost_basis == 600
    assert sum(h.current_balance for h in holders.values()) == 1_000


def test_fifo_ignores_deposit_view_kinds():
    assert compute_lots([_event(DEPOSIT, ALICE, 1, 1), _event(WITHDRAW, ALICE, 1, 1)], share_decimals=0) == {}


def test_consume_lots_splits_front_lot_conserving_cost():
    holder = LotHolder(holder=ALICE)
    holder.lots.append(FIFOEntry(amount=3, cost_basis=10, block=1, source=MINT))
    consumed = consume_lots(holder, 1)
    assert consumed == 3
    assert holder.lots[0] == FIFOEntry(amount=2, cost_basis=7, block=1, source=MINT)


def test_lot_invariants_raise_on_broken_queue():
    holder = LotHolder(holder=ALICE, current_balance=5)
    with pytest.raises(ValueError, match="lots hold 0 shares"):
        validate_lot_invariants(holder)
    assert len(validate_lot_invariants(holder, warn_only=True)) == 1


def test_pnl_result_rejects_inconsistent_totals():
    with pytest.raises(ValueError, match="conservation"):
        PnLResult(
            holder=ALICE,
            policy=CostBasisPolicy.FIFO,
            total_deposited=0,
            total_withdrawn=0,
            net_invested=0,
            current_shares=0,
            current_value=0,
            total_value=0,
            shares_acquired=0,
            realized_cost_basis=0,
            unrealized_cost_basis=0,
            realized_pnl=1,
            unrealized_pnl=1,
            total_pnl=3,
            pnl_percentage=0.0,
            avg_acquisition_price=0.0,
        )


def test_compute_pnl_rejects_unknown_position_type():
    with pytest.raises(TypeError):
        compute_pnl(object(), 0, 6, 6)


def test_zero_basis_holder_reports_zero_percentage():
    result = compute_pnl(UserPosition(holder=ALICE), 0, 6, 6)
    assert result.pnl_percentage == 0.0
    assert result.avg_acquisition_price == 0.0
