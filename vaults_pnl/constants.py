"""Constants and configuration for vault PnL analysis."""

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Canonical bridge on Katana. Mints to it are re-emitted later as bridge mints *from* it,
# so counting both would double the supply.
BRIDGE_ADDRESS = "0x5480f3152748809495bd56c14eab4a622aa3a19b"

# Katana vault used as the default in examples and docs.
DEFAULT_VAULT_ADDRESS = "0xE007CA01894c863d7898045ed5A3B4Abf0b18f37"

# Migrated, pre-deposited and bridge-minted shares are booked at 1 asset per share.
# This is a business convention, not an accounting law; keep it in one place.
IMPLIED_ASSETS_PER_SHARE = 1

# Raw record kinds as produced by the log fetcher.
RAW_DEPOSIT = "deposit"
RAW_WITHDRAW = "withdraw"
RAW_TRANSFER = "transfer"
RAW_MIGRATION = "migration"
RAW_PRE_DEPOSIT = "pre_deposit"

# Normalized event kinds.
DEPOSIT = "deposit"
WITHDRAW = "withdraw"
TRANSFER_IN = "transfer_in"
TRANSFER_OUT = "transfer_out"
MINT = "mint"
BURN = "burn"
BRIDGE_MINT = "bridge_mint"
MIGRATION = "migration"
PRE_DEPOSIT = "pre_deposit"

# Event signatures (topic0 is keccak of these).
DEPOSIT_EVENT_SIGNATURE = "Deposit(address,address,uint256,uint256)"
WITHDRAW_EVENT_SIGNATURE = "Withdraw(address,address,address,uint256,uint256)"
TRANSFER_EVENT_SIGNATURE = "Transfer(address,address,uint256)"

# Minimal ERC-4626 ABI - metadata and valuation only.
ERC4626_MIN_ABI: list[dict] = [
    {
        "type": "function",
        "name": "decimals",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint8"}],
    },
    {
        "type": "function",
        "name": "asset",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "address"}],
    },
    {
        "type": "function",
        "name": "convertToAssets",
        "stateMutability": "view",
        "inputs": [{"name": "shares", "type": "uint256"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "totalAssets",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "totalSupply",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]

ERC20_MIN_ABI: list[dict] = [
    {
        "type": "function",
        "name": "decimals",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint8"}],
    },
    {
        "type": "function",
        "name": "symbol",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "string"}],
    },
]

# Supported chains: name -> (chain id, public RPC). Katana has no public default;
# KATANA_RPC_URL must be set.
CHAINS: dict[str, tuple[int, str]] = {
    "ethereum": (1, "https://ethereum-rpc.publicnode.com"),
    "base": (8453, "https://base-rpc.publicnode.com"),
    "optimism": (10, "https://optimism-rpc.publicnode.com"),
    "arbitrum": (42161, "https://arbitrum-one-rpc.publicnode.com"),
    "polygon": (137, "https://polygon-bor-rpc.publicnode.com"),
    "katana": (747474, ""),
}
DEFAULT_CHAIN = "katana"

AVERAGE_BLOCK_TIME_S = 2  # Katana
SECONDS_PER_DAY = 86_400
DAYS_PER_YEAR = 365

# Log fetching
DEFAULT_LOG_CHUNK_SIZE = 50_000
DEFAULT_FETCH_RETRIES = 3
RETRY_BACKOFF_S = 1.0

# Output
DEFAULT_OUTPUT_DIR = "data"
TOP_MOVERS_COUNT = 5

# Cache configuration
CACHE_DIR_NAME = ".vaults_pnl_cache"
CACHE_VERSION = "1"  # Increment to invalidate all caches
