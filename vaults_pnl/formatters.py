"""Formatting and fixed-point conversion utilities."""


def as_int(value, *, default: int = 0) -> int:
    """Convert value to int, handling hex strings from raw JSON-RPC responses."""
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        v = value.strip()
        if v.lower().startswith("0x"):
            return int(v, 16) if len(v) > 2 else default
        return int(v)
    return int(value)


def normalize_hex_str(value) -> str:
    """Normalize hex string to 0x-prefixed format."""
    if isinstance(value, (bytes, bytearray)):
        # bytes() first: HexBytes.hex() is 0x-prefixed in some versions
        return f"0x{bytes(value).hex()}"
    if hasattr(value, "hex") and not isinstance(value, str):
        hex_str = value.hex()
        return hex_str if hex_str.startswith("0x") else f"0x{hex_str}"
    s = str(value).strip()
    if s.lower().startswith("0x"):
        return f"0x{s[2:]}"
    return f"0x{s}"


def mul_div(value: int, numer: int, denom: int) -> int:
    """value * numer / denom with truncating division; 0 for a zero denominator."""
    if denom == 0:
        return 0
    product = value * numer
    quotient = abs(product) // abs(denom)
    return -quotient if (product < 0) != (denom < 0) else quotient


def exact_to_float(value: int, decimals: int) -> float:
    """Fixed-point integer to float, scaled by its own decimals."""
    return value / 10**decimals


def ratio(numer: int, numer_decimals: int, denom: int, denom_decimals: int) -> float:
    """Divide two fixed-point integers after scaling each; 0.0 for a zero denominator."""
    if denom == 0:
        return 0.0
    return exact_to_float(numer, numer_decimals) / exact_to_float(denom, denom_decimals)


def format_units(value: int, decimals: int) -> str:
    """Exact decimal rendering of a fixed-point integer (trailing zeros stripped)."""
    sign = "-" if value < 0 else ""
    digits = str(abs(value))
    if decimals <= 0:
        return f"{sign}{digits}"
    digits = digits.rjust(decimals + 1, "0")
    integer, fraction = digits[:-decimals], digits[-decimals:].rstrip("0")
    if fraction:
        return f"{sign}{integer}.{fraction}"
    return f"{sign}{integer}"


def format_amount(value: int, decimals: int, symbol: str = "", *, places: int | None = None) -> str:
    """Format a fixed-point amount, optionally rounded for display."""
    if places is None:
        s = format_units(value, decimals)
    else:
        s = f"{exact_to_float(value, decimals):.{places}f}"
    return f"{s} {symbol}".rstrip()


def signed(value: int, decimals: int, symbol: str = "", *, places: int | None = None) -> str:
    """Like format_amount but always carries a sign."""
    prefix = "+" if value >= 0 else ""
    return f"{prefix}{format_amount(value, decimals, symbol, places=places)}"


def format_pct(value: float) -> str:
    """Format a percentage with two decimals."""
    return f"{value:.2f}%"


def short_address(address: str) -> str:
    """0x1234567890...abcdef"""
    if len(address) <= 18:
        return address
    return f"{address[:10]}...{address[-6:]}"
