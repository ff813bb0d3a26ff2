"""Data models for vault PnL analysis."""

from collections import deque
from dataclasses import dataclass, field
from enum import Enum


class CostBasisPolicy(str, Enum):
    """How the cost of disposed shares is measured."""

    WEIGHTED_AVERAGE = "weighted-average"
    FIFO = "fifo"


@dataclass(frozen=True)
class VaultInfo:
    """ERC-4626 vault metadata."""

    address: str
    decimals: int
    asset_address: str
    asset_decimals: int
    asset_symbol: str


@dataclass(frozen=True)
class RawLog:
    """A single decoded vault log, before classification."""

    kind: str  # deposit | withdraw | transfer | migration | pre_deposit
    block: int
    tx_id: str
    log_index: int
    from_address: str | None = None
    to_address: str | None = None
    # Deposit/Withdraw owner; for pre-classified records this is the holder.
    owner: str | None = None
    assets: int = 0
    shares: int = 0


@dataclass(frozen=True)
class VaultEvent:
    """One economic action affecting a holder's share balance."""

    kind: str
    block: int
    log_index: int
    tx_id: str
    holder: str
    assets: int
    shares: int
    # Assets per one whole share at `block`, scaled by asset decimals.
    price_per_share: int
    counterparty: str | None = None


@dataclass
class UserPosition:
    """Running weighted-average position of one holder. Mutated only by the aggregator."""

    holder: str
    shares_held: int = 0
    assets_invested: int = 0
    assets_withdrawn: int = 0
    shares_ever_deposited: int = 0
    shares_ever_withdrawn: int = 0
    # Migrated / pre-deposited shares and their implied 1:1 cost.
    shares_migrated: int = 0
    assets_migrated: int = 0
    events: list[VaultEvent] = field(default_factory=list)


@dataclass(frozen=True)
class FIFOEntry:
    """An acquisition lot."""

    amount: int
    cost_basis: int
    block: int
    source: str  # mint | bridge_mint | transfer_in


@dataclass
class LotHolder:
    """FIFO state of one holder. Mutated only by the lot ledger."""

    holder: str
    total_acquired: int = 0
    total_disposed: int = 0
    current_balance: int = 0
    total_cost_basis: int = 0
    total_proceeds: int = 0
    realized_pnl: int = 0
    realized_cost_basis: int = 0
    lots: deque[FIFOEntry] = field(default_factory=deque)
    events: list[VaultEvent] = field(default_factory=list)

    @property
    def unrealized_cost_basis(self) -> int:
        return sum(lot.cost_basis for lot in self.lots)


@dataclass(frozen=True)
class PnLResult:
    """Per-holder PnL statement. All amounts are raw integers in asset (or share) units."""

    holder: str
    policy: CostBasisPolicy
    total_deposited: int
    total_withdrawn: int
    net_invested: int
    current_shares: int
    current_value: int
    # current value + everything already taken out
    total_value: int
    shares_acquired: int
    realized_cost_basis: int
    unrealized_cost_basis: int
    realized_pnl: int
    unrealized_pnl: int
    total_pnl: int
    pnl_percentage: float
    avg_acquisition_price: float

    def __post_init__(self) -> None:
        if self.total_pnl != self.realized_pnl + self.unrealized_pnl:
            raise ValueError(
                f"PnL conservation violated for {self.holder}: "
                f"{self.realized_pnl} + {self.unrealized_pnl} != {self.total_pnl}"
            )


@dataclass(frozen=True)
class SupplyStats:
    """Share supply movements seen in the event stream."""

    mint_count: int
    burn_count: int
    bridge_mint_count: int
    transfer_count: int
    total_minted: int
    total_burned: int
    total_bridge_minted: int
    total_supply: int
    holders: int
    active_holders: int
    current_total_value: int


@dataclass(frozen=True)
class VaultSummary:
    """Vault-wide aggregate of per-holder results."""

    holder_count: int
    total_deposited: int
    total_withdrawn: int
    net_invested: int
    current_shares: int
    current_value: int
    total_value: int
    realized_pnl: int
    unrealized_pnl: int
    total_pnl: int
    pnl_percentage: float
    avg_acquisition_price: float


@dataclass(frozen=True)
class VaultAnalysis:
    """Everything one pipeline run produces."""

    vault: VaultInfo
    policy: CostBasisPolicy
    events: tuple[VaultEvent, ...]
    results: tuple[PnLResult, ...]
    summary: VaultSummary
    supply: SupplyStats
    warnings: tuple[str, ...]


@dataclass(frozen=True)
class SharePriceSnapshot:
    """Vault totals at one block."""

    block: int
    timestamp: int
    total_assets: int
    total_supply: int
