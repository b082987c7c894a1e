"""
Conflict Resolution Strategies

Each strategy only decides the order in which contenders are considered;
the resolver then grants greedily in that order while stock remains.
"""

import random
from abc import ABC, abstractmethod
from typing import Optional

from src.service.inventory.domain.entity.conflict_resolution_entity import ConflictingRequest
from src.service.inventory.domain.enum import ResolutionStrategy


class ConflictResolutionStrategy(ABC):
    name: ResolutionStrategy

    @abstractmethod
    def order(self, requests: list[ConflictingRequest]) -> list[ConflictingRequest]:
        pass


class FirstComeFirstServedStrategy(ConflictResolutionStrategy):
    """Earliest request timestamp first; identical timestamps keep arrival order"""

    name = ResolutionStrategy.FIRST_COME_FIRST_SERVED

    def order(self, requests: list[ConflictingRequest]) -> list[ConflictingRequest]:
        return sorted(requests, key=lambda r: (r.timestamp, r.sequence))


class PriorityBasedStrategy(ConflictResolutionStrategy):
    name = ResolutionStrategy.PRIORITY_BASED

    def order(self, requests: list[ConflictingRequest]) -> list[ConflictingRequest]:
        return sorted(requests, key=lambda r: (-r.priority, r.timestamp, r.sequence))


class RandomSelectionStrategy(ConflictResolutionStrategy):
    name = ResolutionStrategy.RANDOM_SELECTION

    def __init__(self, *, seed: Optional[int] = None) -> None:
        self._random = random.Random(seed)

    def order(self, requests: list[ConflictingRequest]) -> list[ConflictingRequest]:
        shuffled = sorted(requests, key=lambda r: r.sequence)
        self._random.shuffle(shuffled)
        return shuffled


def build_strategy(
    strategy: ResolutionStrategy | str, *, seed: Optional[int] = None
) -> ConflictResolutionStrategy:
    match ResolutionStrategy(strategy):
        case ResolutionStrategy.PRIORITY_BASED:
            return PriorityBasedStrategy()
        case ResolutionStrategy.RANDOM_SELECTION:
            return RandomSelectionStrategy(seed=seed)
        case _:
            return FirstComeFirstServedStrategy()
