from types import SimpleNamespace

import pytest
from eth_abi import encode

from vaults_pnl.blockchain import (
    LogFetchError,
    address_topic,
    fetch_range_logs,
    fetch_vault_logs,
    find_deployment_block,
    iter_block_ranges,
    topic0,
    vault_log_filters,
)
from vaults_pnl.constants import (
    RAW_DEPOSIT,
    RAW_TRANSFER,
    RAW_WITHDRAW,
    TRANSFER_EVENT_SIGNATURE,
    ZERO_ADDRESS,
)
from vaults_pnl.contracts import VaultOracle, fetch_vault_info
from vaults_pnl.models import VaultInfo
from vaults_pnl.parsing import LOG_PARSERS, decode_uint256s, parse_deposit_log, parse_transfer_log, parse_withdraw_log

VAULT = "0x" + "aa" * 20
ALICE = "0x" + "11" * 20
BOB = "0x" + "22" * 20

TRANSFER_TOPIC = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"


def _data(*values: int) -> str:
    return "0x" + encode(["uint256"] * len(values), list(values)).hex()


def _log(topics, data, *, block=5, log_index=0, tx="0xABCD"):
    return {
        "address": VAULT,
        "topics": topics,
        "data": data,
        "blockNumber": hex(block),
        "transactionHash": tx,
        "logIndex": hex(log_index),
    }


# --- parsing -------------------------------------------------------------------------


def test_decode_uint256s():
    assert decode_uint256s(_data(1, 2**255), 2) == (1, 2**255)


def test_parse_deposit_log():
    log = _log(["0x00", address_topic(BOB), address_topic(ALICE)], _data(1_000, 900), log_index=3)
    raw = parse_deposit_log(log)
    assert raw.kind == RAW_DEPOSIT
    assert (raw.block, raw.tx_id, raw.log_index) == (5, "0xabcd", 3)
    assert raw.from_address == BOB
    assert raw.owner == ALICE
    assert (raw.assets, raw.shares) == (1_000, 900)


def test_parse_withdraw_log_uses_owner_as_holder():
    log = _log(["0x00", address_topic(BOB), address_topic(BOB), address_topic(ALICE)], _data(600, 500))
    raw = parse_withdraw_log(log)
    assert raw.kind == RAW_WITHDRAW
    assert raw.owner == ALICE
    assert raw.from_address == ALICE
    assert raw.to_address == BOB


def test_parse_transfer_log():
    raw = parse_transfer_log(_log([TRANSFER_TOPIC, address_topic(ZERO_ADDRESS), address_topic(ALICE)], _data(42)))
    assert raw.kind == RAW_TRANSFER
    assert raw.from_address == ZERO_ADDRESS
    assert raw.to_address == ALICE
    assert raw.shares == 42


def test_parse_rejects_missing_topics():
    with pytest.raises(ValueError, match="topics"):
        parse_withdraw_log(_log(["0x00", address_topic(ALICE)], _data(1, 1)))


def test_log_parsers_cover_fetched_kinds():
    assert set(LOG_PARSERS) == {RAW_DEPOSIT, RAW_WITHDRAW, RAW_TRANSFER}


# --- block ranges and topics ---------------------------------------------------------


def test_iter_block_ranges():
    assert list(iter_block_ranges(1, 10, 4)) == [(1, 4), (5, 8), (9, 10)]
    assert list(iter_block_ranges(5, 4, 4)) == []
    with pytest.raises(ValueError):
        list(iter_block_ranges(1, 2, 0))


def test_topic0_and_address_topic():
    assert topic0(TRANSFER_EVENT_SIGNATURE) == TRANSFER_TOPIC
    assert address_topic("0xAbC0000000000000000000000000000000000001") == "0x" + "0" * 24 + "abc" + "0" * 36 + "1"


def test_vault_log_filters_with_holder_match_both_transfer_sides():
    filters = vault_log_filters(VAULT, ALICE)
    assert [kind for kind, _ in filters] == [RAW_DEPOSIT, RAW_WITHDRAW, RAW_TRANSFER, RAW_TRANSFER]
    assert filters[2][1][1] == address_topic(ALICE)
    assert filters[3][1][2] == address_topic(ALICE)
    assert len(vault_log_filters(VAULT)) == 3


# --- fetching with fakes -------------------------------------------------------------


class FakeProvider:
    def __init__(self, handler):
        self.handler = handler
        self.calls = []

    def make_request(self, method, params):
        assert method == "eth_getLogs"
        self.calls.append(params[0])
        return self.handler(params[0])


def _fake_w3(handler=None, *, block_number=100, code_from=0):
    def get_code(address, block_identifier):
        return b"\x60\x80" if block_identifier >= code_from else b""

    return SimpleNamespace(
        provider=FakeProvider(handler or (lambda params: {"result": []})),
        eth=SimpleNamespace(block_number=block_number, get_code=get_code),
        to_checksum_address=lambda a: a,
    )


def _only_single_blocks(params):
    a, b = int(params["fromBlock"], 16), int(params["toBlock"], 16)
    if a != b:
        return {"error": {"code": -32005, "message": "range too large"}}
    return {"result": [{"blockNumber": hex(a)}]}


def test_fetch_range_logs_splits_failing_ranges():
    w3 = _fake_w3(_only_single_blocks)
    logs = fetch_range_logs(w3, {"address": VAULT, "topics": []}, 1, 4, latest_block=100, retries=1, backoff_s=0, use_cache=False)
    assert [log["blockNumber"] for log in logs] == ["0x1", "0x2", "0x3", "0x4"]


def test_fetch_range_logs_retries_before_splitting():
    attempts = iter([{"error": "busy"}, {"result": [{"blockNumber": "0x1"}]}])
    w3 = _fake_w3(lambda params: next(attempts))
    logs = fetch_range_logs(w3, {"address": VAULT, "topics": []}, 1, 9, latest_block=100, retries=2, backoff_s=0, use_cache=False)
    assert logs == [{"blockNumber": "0x1"}]
    assert len(w3.provider.calls) == 2


def test_fetch_range_logs_never_drops_a_block():
    w3 = _fake_w3(lambda params: {"error": "down"})
    with pytest.raises(LogFetchError) as exc_info:
        fetch_range_logs(w3, {"address": VAULT, "topics": []}, 7, 8, latest_block=100, retries=1, backoff_s=0, use_cache=False)
    assert (exc_info.value.from_block, exc_info.value.to_block) == (7, 7)
    assert isinstance(exc_info.value, RuntimeError)


def test_find_deployment_block():
    assert find_deployment_block(_fake_w3(code_from=37), VAULT) == 37
    with pytest.raises(ValueError, match="No contract code"):
        find_deployment_block(_fake_w3(code_from=1_000), VAULT)


def test_fetch_vault_logs_decodes_and_skips_removed():
    transfer = _log([TRANSFER_TOPIC, address_topic(ALICE), address_topic(BOB)], _data(7), block=6)
    removed = {**transfer, "logIndex": "0x1", "removed": True}

    def handler(params):
        a, b = int(params["fromBlock"], 16), int(params["toBlock"], 16)
        if params["topics"][0] == TRANSFER_TOPIC and a <= 6 <= b:
            return {"result": [transfer, removed]}
        return {"result": []}

    w3 = _fake_w3(handler)
    records = fetch_vault_logs(w3, VAULT, from_block=1, to_block=10, chunk_size=5, use_cache=False)
    assert len(records) == 1
    assert records[0].shares == 7
    # 2 chunks x 3 event kinds
    assert len(w3.provider.calls) == 6


# --- contracts -----------------------------------------------------------------------


class FakeFunction:
    def __init__(self, impl, args):
        self.impl = impl
        self.args = args

    def call(self, block_identifier=None):
        return self.impl(*self.args, block=block_identifier)


def _fake_contract(**impls):
    functions = SimpleNamespace(
        **{name: (lambda *args, _impl=impl: FakeFunction(_impl, args)) for name, impl in impls.items()}
    )
    return SimpleNamespace(functions=functions)


def _convert_to_assets(shares, block=None):
    if block == 5:
        raise RuntimeError("missing trie node")
    price = 1_300_000 if block is None else 1_000_000 + block * 10_000
    return shares * price // 1_000_000


VAULT_INFO = VaultInfo(address=VAULT, decimals=6, asset_address=BOB, asset_decimals=6, asset_symbol="USDC")


def _oracle_w3():
    w3 = _fake_w3()
    w3.eth.contract = lambda address, abi: _fake_contract(convertToAssets=_convert_to_assets)
    return w3


def test_oracle_prices_fall_back_to_current_with_warning():
    oracle = VaultOracle(_oracle_w3(), VAULT_INFO)
    prices, warnings = oracle.prices_for_blocks([6, 5, 6], use_cache=False)
    assert prices == {5: 1_300_000, 6: 1_060_000}
    assert len(warnings) == 1 and "block 5" in warnings[0]


def test_oracle_current_prices_shortcut():
    oracle = VaultOracle(_oracle_w3(), VAULT_INFO)
    prices, warnings = oracle.prices_for_blocks([1, 2], use_current=True, use_cache=False)
    assert prices == {1: 1_300_000, 2: 1_300_000}
    assert warnings == []
    assert oracle.convert_to_assets(2_000_000) == 2_600_000


def test_oracle_caches_historical_prices(tmp_path, monkeypatch):
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path))
    VaultOracle(_oracle_w3(), VAULT_INFO).prices_for_blocks([7], use_cache=True)

    w3 = _fake_w3()
    w3.eth.contract = lambda address, abi: _fake_contract(
        convertToAssets=lambda shares, block=None: pytest.fail("should be served from cache")
    )
    prices, _ = VaultOracle(w3, VAULT_INFO).prices_for_blocks([7], use_cache=True)
    assert prices == {7: 1_070_000}


def test_fetch_vault_info():
    contracts = {
        VAULT: _fake_contract(decimals=lambda block=None: 18, asset=lambda block=None: BOB.upper().replace("0X", "0x")),
        BOB.upper().replace("0X", "0x"): _fake_contract(
            decimals=lambda block=None: 6, symbol=lambda block=None: "USDC"
        ),
    }
    w3 = _fake_w3()
    w3.eth.contract = lambda address, abi: contracts[address]
    info = fetch_vault_info(w3, VAULT)
    assert info == VaultInfo(address=VAULT, decimals=18, asset_address=BOB, asset_decimals=6, asset_symbol="USDC")
