"""Vault log fetching with chunking, retries and caching."""

import sys
import time
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from tqdm import tqdm

from vaults_pnl.cache import LOGS, cache_key, get_cached, set_cached
from vaults_pnl.constants import (
    DEFAULT_FETCH_RETRIES,
    DEFAULT_LOG_CHUNK_SIZE,
    DEPOSIT_EVENT_SIGNATURE,
    RAW_DEPOSIT,
    RAW_TRANSFER,
    RAW_WITHDRAW,
    RETRY_BACKOFF_S,
    TRANSFER_EVENT_SIGNATURE,
    WITHDRAW_EVENT_SIGNATURE,
)
from vaults_pnl.formatters import as_int, normalize_hex_str
from vaults_pnl.models import RawLog
from vaults_pnl.parsing import LOG_PARSERS

if TYPE_CHECKING:
    from web3 import Web3  # pragma: no cover


class LogFetchError(RuntimeError):
    """A block range that could not be fetched even after retries and splitting."""

    def __init__(self, from_block: int, to_block: int, cause: Exception | None = None):
        self.from_block = from_block
        self.to_block = to_block
        self.cause = cause
        super().__init__(f"Failed to fetch logs for blocks {from_block}-{to_block}: {cause}")


def topic0(signature: str) -> str:
    """Compute topic0 (event signature hash) for an event signature."""
    from web3 import Web3  # pylint: disable=import-outside-toplevel

    return normalize_hex_str(Web3.keccak(text=signature))


def address_topic(address: str) -> str:
    """Left-pad an address to a 32-byte indexed topic."""
    return "0x" + normalize_hex_str(address)[2:].lower().rjust(64, "0")


def iter_block_ranges(start: int, end: int, chunk_size: int) -> Iterable[tuple[int, int]]:
    """Iterate over block ranges in chunks."""
    if chunk_size <= 0:
        raise ValueError("chunk_size must be > 0")
    cur = start
    while cur <= end:
        yield cur, min(end, cur + chunk_size - 1)
        cur += chunk_size


def request_logs(w3: "Web3", filter_params: dict[str, Any]) -> list[dict[str, Any]]:
    """Raw eth_getLogs through the provider, bypassing web3 middleware formatting."""
    response = w3.provider.make_request("eth_getLogs", [filter_params])
    if "error" in response:
        raise RuntimeError(f"RPC error: {response['error']}")
    return response.get("result", [])


def get_cached_logs(
    w3: "Web3", filter_params: dict[str, Any], *, latest_block: int, use_cache: bool = True
) -> list[dict[str, Any]]:
    """
    Get logs with caching.

    Only ranges that are already final relative to `latest_block` are cached; the head
    chunk can still gain logs.
    """
    to_block = as_int(filter_params["toBlock"])
    cacheable = use_cache and to_block < latest_block
    key = cache_key(
        LOGS,
        filter_params.get("address", ""),
        filter_params.get("fromBlock", ""),
        filter_params.get("toBlock", ""),
        str(filter_params.get("topics", [])),
    )
    if cacheable:
        hit = get_cached(key)
        if hit is not None:
            return hit

    result = request_logs(w3, filter_params)
    if cacheable:
        set_cached(key, result)
    return result


def fetch_range_logs(
    w3: "Web3",
    base_filter: dict[str, Any],
    from_block: int,
    to_block: int,
    *,
    latest_block: int,
    retries: int = DEFAULT_FETCH_RETRIES,
    backoff_s: float = RETRY_BACKOFF_S,
    use_cache: bool = True,
) -> list[dict[str, Any]]:
    """
    Fetch one block range. Each attempt is retried with linear backoff; a range that keeps
    failing is split in half, down to single blocks. A single block that still fails
    raises LogFetchError: a gap in the history would corrupt every balance after it.
    """
    params = {**base_filter, "fromBlock": hex(from_block), "toBlock": hex(to_block)}
    last_error: Exception | None = None
    for attempt in range(max(1, retries)):
        try:
            return get_cached_logs(w3, params, latest_block=latest_block, use_cache=use_cache)
        except Exception as ex:  # pylint: disable=broad-exception-caught
            last_error = ex
            if attempt + 1 < retries:
                time.sleep(backoff_s * (attempt + 1))

    if from_block >= to_block:
        raise LogFetchError(from_block, to_block, last_error)

    mid = (from_block + to_block) // 2
    tqdm.write(f"⚠️  Splitting block range {from_block}-{to_block} after error: {last_error}", file=sys.stderr)
    kwargs = {"latest_block": latest_block, "retries": retries, "backoff_s": backoff_s, "use_cache": use_cache}
    return fetch_range_logs(w3, base_filter, from_block, mid, **kwargs) + fetch_range_logs(
        w3, base_filter, mid + 1, to_block, **kwargs
    )


def find_deployment_block(w3: "Web3", address: str, *, latest_block: int | None = None) -> int:
    """Binary search for the first block at which `address` has code."""
    checksum = w3.to_checksum_address(address)
    hi = int(w3.eth.block_number) if latest_block is None else latest_block
    if not w3.eth.get_code(checksum, block_identifier=hi):
        raise ValueError(f"No contract code at {address}")
    lo = 0
    while lo < hi:
        mid = (lo + hi) // 2
        if w3.eth.get_code(checksum, block_identifier=mid):
            hi = mid
        else:
            lo = mid + 1
    return lo


def vault_log_filters(vault: str, holder: str | None = None) -> list[tuple[str, list]]:
    """
    (raw kind, topics) filters needed to reconstruct a vault's share history.

    With a holder, deposits/withdrawals are filtered by owner and transfers by either side.
    """
    deposit = topic0(DEPOSIT_EVENT_SIGNATURE)
    withdraw = topic0(WITHDRAW_EVENT_SIGNATURE)
    transfer = topic0(TRANSFER_EVENT_SIGNATURE)
    if holder is None:
        return [(RAW_DEPOSIT, [deposit]), (RAW_WITHDRAW, [withdraw]), (RAW_TRANSFER, [transfer])]

    who = address_topic(holder)
    return [
        (RAW_DEPOSIT, [deposit, None, who]),
        (RAW_WITHDRAW, [withdraw, None, None, who]),
        (RAW_TRANSFER, [transfer, who]),
        (RAW_TRANSFER, [transfer, None, who]),
    ]


def fetch_vault_logs(
    w3: "Web3",
    vault: str,
    holder: str | None = None,
    *,
    from_block: int | None = None,
    to_block: int | None = None,
    chunk_size: int = DEFAULT_LOG_CHUNK_SIZE,
    use_cache: bool = True,
) -> list[RawLog]:
    """
    Fetch and decode every Deposit, Withdraw and Transfer log of a vault.

    The scan covers [from_block or deployment block, to_block or latest]. Records come back
    unsorted and may repeat (a self-transfer matches both holder filters); the normalizer
    dedupes and orders them.
    """
    latest_block = int(w3.eth.block_number)
    end = latest_block if to_block is None else min(to_block, latest_block)
    if from_block is None:
        from_block = find_deployment_block(w3, vault, latest_block=end)
    if from_block > end:
        return []

    vault_addr = normalize_hex_str(vault).lower()
    filters = vault_log_filters(vault_addr, holder)
    ranges = list(iter_block_ranges(from_block, end, chunk_size))

    records: list[RawLog] = []
    with tqdm(
        total=len(ranges) * len(filters), desc="🔍 Scanning vault logs", unit="chunk", file=sys.stderr
    ) as pbar:
        for a, b in ranges:
            for kind, topics in filters:
                base_filter = {"address": vault_addr, "topics": topics}
                logs = fetch_range_logs(w3, base_filter, a, b, latest_block=latest_block, use_cache=use_cache)
                parser = LOG_PARSERS[kind]
                records.extend(parser(log) for log in logs if not log.get("removed"))
                pbar.update(1)
            pbar.set_postfix(logs=len(records))

    return records
