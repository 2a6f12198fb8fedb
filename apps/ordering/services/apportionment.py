"""
Largest-remainder apportionment.

Splits an integer total across weighted recipients so that the parts sum
exactly to the total. Used both when a FinAdmin approves a reduced
aggregate quantity and when a partial delivery is spread over the lines
that ordered it.
"""

from typing import List, Sequence


def largest_remainder(weights: Sequence[int], total: int) -> List[int]:
    """
    Apportion ``total`` proportionally to ``weights``.

    Each part starts at ``floor(total * w_i / sum(w))``. The units lost to
    flooring are then handed out one at a time to the parts with the
    largest fractional remainder. Equal remainders go to the earlier
    weight, so the caller's ordering is the tie-break.

    Integer arithmetic only: the remainder of ``total * w_i`` modulo
    ``sum(w)`` is the fractional part scaled by ``sum(w)``.

    Args:
        weights: Non-negative integer weights (original quantities)
        total: Non-negative integer to distribute

    Returns:
        One part per weight, same order. All zeros when the weights sum
        to zero (nothing to redistribute).

    Raises:
        ValueError: On negative input, or if the parts fail to add up

    Example:
        >>> largest_remainder([5, 3], 6)
        [4, 2]
    """
    if total < 0:
        raise ValueError(f"Cannot apportion a negative total ({total})")
    if any(w < 0 for w in weights):
        raise ValueError("Weights must be non-negative")

    weight_sum = sum(weights)
    if weight_sum == 0:
        return [0] * len(weights)

    parts = []
    remainders = []
    for index, weight in enumerate(weights):
        share, remainder = divmod(total * weight, weight_sum)
        parts.append(share)
        remainders.append((remainder, index))

    leftover = total - sum(parts)

    # Stable sort keeps the original order among equal remainders
    remainders.sort(key=lambda item: item[0], reverse=True)
    for _, index in remainders[:leftover]:
        parts[index] += 1

    # Safety check
    if sum(parts) != total:
        raise ValueError(
            f"Apportionment drift: parts sum to {sum(parts)}, expected {total}"
        )

    return parts
