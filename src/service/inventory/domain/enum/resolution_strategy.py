"""Conflict Resolution Strategy Enum"""

from enum import StrEnum


class ResolutionStrategy(StrEnum):
    FIRST_COME_FIRST_SERVED = 'first_come_first_served'
    PRIORITY_BASED = 'priority_based'
    RANDOM_SELECTION = 'random_selection'
