"""Weighted rarity-class draw.

A probability table has one integer weight per class, expressed against a
fixed total (basis points or percent). The table is read from the rarest class
down to class 1; each weight claims the next slice of ``[0, total)`` and
Common (class 0) takes whatever is left. The weight stored at index 0 is never
consulted.
"""
from __future__ import annotations

from typing import List, Sequence

from ..config import COMMON, GRANULARITIES, NUM_CLASSES
from .rng import RandomSource


def _check_table(probabilities: Sequence[int], total: int) -> None:
    if total not in GRANULARITIES:
        raise ValueError(f"total must be one of {GRANULARITIES}, got {total}")
    if len(probabilities) != NUM_CLASSES:
        raise ValueError(f"expected {NUM_CLASSES} class weights, got {len(probabilities)}")


def class_for_value(probabilities: Sequence[int], value: int) -> int:
    """Map one value in ``[0, total)`` to its class."""
    for class_id in range(len(probabilities) - 1, COMMON, -1):
        weight = probabilities[class_id]
        if value < weight:
            return class_id
        value -= weight
    return COMMON


def draw(probabilities: Sequence[int], source: RandomSource, total: int) -> int:
    """Draw one class id, consuming exactly one value from ``source``."""
    _check_table(probabilities, total)
    value = source.randbelow(total)
    if not 0 <= value < total:
        raise ValueError(f"random source returned {value} outside [0, {total})")
    return class_for_value(probabilities, value)


def effective_odds(probabilities: Sequence[int], total: int) -> List[int]:
    """
    Realized share of ``total`` per class, in class-id order.

    Under-allocated tables give the remainder to Common; over-allocated mass
    is clipped from the most common weighted classes.
    """
    _check_table(probabilities, total)
    odds = [0] * NUM_CLASSES
    left = total
    for class_id in range(NUM_CLASSES - 1, COMMON, -1):
        share = min(max(int(probabilities[class_id]), 0), left)
        odds[class_id] = share
        left -= share
    odds[COMMON] = left
    return odds
