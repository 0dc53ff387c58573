"""Significance gate for on-chain price writes"""


def is_difference_significant(a: float, b: float, significant_factor: float) -> bool:
    """
    Check whether two prices differ enough to justify a write.

    The relative difference is measured against the larger price:
    1 - min/max. (4, 1) differs by 0.75, so it passes a 0.25 factor
    but not a 0.9 factor.

    Args:
        a: First price
        b: Second price
        significant_factor: Minimum relative difference, e.g. 0.05

    Returns:
        True if significant_factor <= 1 - min(a, b) / max(a, b)
    """
    high = max(a, b)
    low = min(a, b)
    if high <= 0:
        return False

    factor = 1 - low / high
    return significant_factor <= factor
