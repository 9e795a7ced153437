"""API data models for Civic Match."""

from .challenges import (
    CHALLENGE_CATEGORIES,
    BoundingBox,
    Challenge,
    ChallengeCategory,
    ChallengeCategoryInfo,
    ChallengeCategoryStats,
    ChallengeForMap,
    ChallengeSeverity,
    severities_at_least,
)
from .events import DiscoveredEvent, DiscoveredEventsStats, EventType, Pagination

__all__ = [
    "CHALLENGE_CATEGORIES",
    "BoundingBox",
    "Challenge",
    "ChallengeCategory",
    "ChallengeCategoryInfo",
    "ChallengeCategoryStats",
    "ChallengeForMap",
    "ChallengeSeverity",
    "DiscoveredEvent",
    "DiscoveredEventsStats",
    "EventType",
    "Pagination",
    "severities_at_least",
]
