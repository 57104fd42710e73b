"""Integer-only token arithmetic.

Raw on-chain amounts can exceed 10^27, so nothing here touches float.
One rounding rule everywhere: round half up.
"""

NOT_AVAILABLE = "N/A"


def round_half_up_div(numerator: int, denominator: int) -> int:
    """numerator / denominator rounded half up, both non-negative."""
    if denominator <= 0:
        raise ValueError("denominator must be positive")
    if numerator < 0:
        raise ValueError("numerator must be non-negative")
    return (2 * numerator + denominator) // (2 * denominator)


def to_whole_units(raw: int, decimals: int) -> int:
    """Raw smallest-unit amount -> whole tokens."""
    if decimals == 0:
        return raw
    return round_half_up_div(raw, 10**decimals)


def to_raw_units(whole: int, decimals: int) -> int:
    return whole * 10**decimals


def _format_hundredths(hundredths: int) -> str:
    return f"{hundredths // 100}.{hundredths % 100:02d}"


def percentage_hundredths(part: int, whole: int) -> int:
    """part * 100 / whole as an integer count of hundredths of a percent."""
    return round_half_up_div(part * 10_000, whole)


def holding_percentage(held_raw: int, initial_raw: int) -> str:
    """Share of the initial allocation still held, e.g. "100.00".

    Undefined ("N/A") only when the initial allocation is zero.
    """
    if initial_raw <= 0:
        return NOT_AVAILABLE
    return _format_hundredths(percentage_hundredths(max(held_raw, 0), initial_raw))


def allocation_percentage(initial_raw: int, supply_raw: int) -> str:
    """Creator allocation as a share of total supply, e.g. "15.00%"."""
    if supply_raw <= 0:
        return NOT_AVAILABLE
    return f"{_format_hundredths(percentage_hundredths(max(initial_raw, 0), supply_raw))}%"


def tokens_for_sale(supply: int, initial: int) -> int:
    return max(0, supply - initial)


def format_token_balance(whole: int | str) -> str:
    """Thousands-separated whole-unit count: 150000000 -> "150,000,000"."""
    return f"{int(whole):,}"
