"""Decoding of raw eth_getLogs entries into RawLog records."""

from typing import Any

from eth_abi import decode

from vaults_pnl.constants import RAW_DEPOSIT, RAW_TRANSFER, RAW_WITHDRAW
from vaults_pnl.formatters import as_int, normalize_hex_str
from vaults_pnl.models import RawLog


def topic_to_address(topic) -> str:
    """Indexed address topic (32 bytes, left padded) -> lower-case address."""
    hex_str = normalize_hex_str(topic)
    return f"0x{hex_str[-40:]}".lower()


def decode_uint256s(data, count: int) -> tuple[int, ...]:
    """Decode `count` non-indexed uint256 values from the log data field."""
    raw = normalize_hex_str(data)[2:]
    return tuple(decode(["uint256"] * count, bytes.fromhex(raw)))


def _position(log: dict[str, Any]) -> tuple[int, str, int]:
    return (
        as_int(log["blockNumber"]),
        normalize_hex_str(log["transactionHash"]).lower(),
        as_int(log["logIndex"]),
    )


def _topics(log: dict[str, Any], expected: int) -> list:
    topics = log.get("topics") or []
    if len(topics) < expected:
        raise ValueError(f"Log {log.get('transactionHash')} has {len(topics)} topics, expected {expected}")
    return topics


def parse_deposit_log(log: dict[str, Any]) -> RawLog:
    """Deposit(address indexed sender, address indexed owner, uint256 assets, uint256 shares)"""
    topics = _topics(log, 3)
    block, tx_id, log_index = _position(log)
    assets, shares = decode_uint256s(log["data"], 2)
    owner = topic_to_address(topics[2])
    return RawLog(
        kind=RAW_DEPOSIT,
        block=block,
        tx_id=tx_id,
        log_index=log_index,
        from_address=topic_to_address(topics[1]),
        to_address=owner,
        owner=owner,
        assets=assets,
        shares=shares,
    )


def parse_withdraw_log(log: dict[str, Any]) -> RawLog:
    """Withdraw(address indexed sender, address indexed receiver, address indexed owner, uint256 assets, uint256 shares)"""
    topics = _topics(log, 4)
    block, tx_id, log_index = _position(log)
    assets, shares = decode_uint256s(log["data"], 2)
    owner = topic_to_address(topics[3])
    return RawLog(
        kind=RAW_WITHDRAW,
        block=block,
        tx_id=tx_id,
        log_index=log_index,
        from_address=owner,
        to_address=topic_to_address(topics[2]),
        owner=owner,
        assets=assets,
        shares=shares,
    )


def parse_transfer_log(log: dict[str, Any]) -> RawLog:
    """Transfer(address indexed from, address indexed to, uint256 value)"""
    topics = _topics(log, 3)
    block, tx_id, log_index = _position(log)
    (value,) = decode_uint256s(log["data"], 1)
    return RawLog(
        kind=RAW_TRANSFER,
        block=block,
        tx_id=tx_id,
        log_index=log_index,
        from_address=topic_to_address(topics[1]),
        to_address=topic_to_address(topics[2]),
        shares=value,
    )


LOG_PARSERS = {
    RAW_DEPOSIT: parse_deposit_log,
    RAW_WITHDRAW: parse_withdraw_log,
    RAW_TRANSFER: parse_transfer_log,
}
