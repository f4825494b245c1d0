from __future__ import annotations

import random
from typing import Protocol


class EntropySource(Protocol):
    """Anything yielding uniform floats in [0, 1); `random.Random` qualifies."""

    def random(self) -> float: ...


def default_entropy() -> EntropySource:
    return random.Random()


def chance(source: EntropySource, probability: float) -> bool:
    return source.random() < probability


def draw_int(source: EntropySource, low: int, high: int) -> int:
    """Uniform integer in [low, high], both ends inclusive."""
    return low + min(int(source.random() * (high - low + 1)), high - low)


def draw_float(source: EntropySource, low: float, high: float) -> float:
    return low + source.random() * (high - low)
