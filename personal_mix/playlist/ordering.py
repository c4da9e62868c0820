"""
Playlist ordering module.

Gentle shuffle: a bounded-window reordering of a score-sorted selection.
Each item gets the sort key `index + u` with u drawn uniformly from
[0, window). Two items can only swap when they are fewer than `window`
positions apart, so every item ends up within window - 1 of its original
rank while the overall high-to-low tendency is kept.

- window == 1: identity
- window >= len(items): any permutation is reachable
"""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence, TypeVar

import numpy as np

logger = logging.getLogger(__name__)

T = TypeVar("T")


def gentle_shuffle(
    items: Sequence[T],
    window_size: int = 10,
    rng: Optional[np.random.Generator] = None,
) -> List[T]:
    """
    Locally shuffle `items` without moving anything window_size or more places.

    Args:
        items: Ordered items (not modified)
        window_size: Neighborhood size, >= 1
        rng: Randomness source; a fresh generator when omitted

    Returns:
        A new list holding a permutation of `items`
    """
    if window_size < 1:
        raise ValueError(f"window_size must be >= 1, got {window_size}")

    n = len(items)
    if n < 2 or window_size == 1:
        return list(items)

    rng = rng if rng is not None else np.random.default_rng()
    keys = np.arange(n, dtype=float) + rng.uniform(0.0, float(window_size), size=n)
    order = np.argsort(keys, kind="stable")
    shuffled = [items[i] for i in order]

    if logger.isEnabledFor(logging.DEBUG):
        displacement = int(np.max(np.abs(order - np.arange(n))))
        logger.debug("Gentle shuffle: n=%d window=%d max_displacement=%d", n, window_size, displacement)
    return shuffled
