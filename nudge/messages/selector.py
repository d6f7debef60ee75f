"""
MessageSelector — picks one body out of a window's candidate pool.

Two modes, chosen per call:
- No candidate carries a weight  → uniform draw, each 1/n.
- Any candidate carries a weight → proportional draw; missing weights
  count as 1, so candidate i wins with probability weight_i / W.

An empty pool raises NoMessagesAvailable; the caller decides whether to
fall back to a default message.
"""

from __future__ import annotations

import random
from collections import Counter
from typing import Sequence

from nudge.core.config import MessageConfig
from nudge.core.errors import NoMessagesAvailable


class MessageSelector:
    """
    Weighted / uniform random message selection.

    Usage:
        selector = MessageSelector()
        body = selector.select(window.messages)

    Pass rng=random.Random(seed) for reproducible draws.
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    def select(self, candidates: Sequence[MessageConfig]) -> str:
        if not candidates:
            raise NoMessagesAvailable("No messages available to select from")

        if any(c.weight is not None for c in candidates):
            return self._select_weighted(candidates).body
        return self._rng.choice(candidates).body

    def _select_weighted(self, candidates: Sequence[MessageConfig]) -> MessageConfig:
        total = sum(_weight(c) for c in candidates)
        remaining = self._rng.random() * total

        for candidate in candidates:
            remaining -= _weight(candidate)
            if remaining <= 0:
                return candidate

        # Float rounding can leave a sliver above zero
        return candidates[-1]

    @staticmethod
    def stats(candidates: Sequence[MessageConfig]) -> dict[str, int]:
        """How many candidates are weighted vs. uniform."""
        weighted = sum(1 for c in candidates if c.weight is not None)
        return {
            "total": len(candidates),
            "weighted": weighted,
            "uniform": len(candidates) - weighted,
        }

    @staticmethod
    def validate(candidates: Sequence[MessageConfig], window: str = "") -> list[str]:
        """Return human-readable problems with a candidate pool (empty list = fine)."""
        where = f" in window {window!r}" if window else ""
        errors: list[str] = []
        if not candidates:
            errors.append(f"No messages{where}")
        for index, candidate in enumerate(candidates):
            if not candidate.body.strip():
                errors.append(f"Message #{index}{where} has an empty body")
            if candidate.weight is not None and candidate.weight <= 0:
                errors.append(f"Message #{index}{where} has invalid weight {candidate.weight}")
        return errors

    def simulate(self, candidates: Sequence[MessageConfig], iterations: int = 1000) -> Counter[str]:
        """Draw `iterations` times and count how often each body came up."""
        counts: Counter[str] = Counter({c.body: 0 for c in candidates})
        for _ in range(iterations):
            counts[self.select(candidates)] += 1
        return counts


def _weight(candidate: MessageConfig) -> float:
    return candidate.weight if candidate.weight is not None else 1.0
