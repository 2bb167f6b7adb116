"""
Destination and guild models.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class AudienceGate(Enum):
    """Content classification a destination accepts."""

    GENERAL_ONLY = "general_only"
    ADULT_ONLY = "adult_only"

    @classmethod
    def from_nsfw_flag(cls, nsfw: bool) -> "AudienceGate":
        return cls.ADULT_ONLY if nsfw else cls.GENERAL_ONLY

    def allows(self, is_adult: bool) -> bool:
        """Check whether an item with the given classification may pass."""
        if self is AudienceGate.ADULT_ONLY:
            return is_adult
        return not is_adult


@dataclass(frozen=True)
class Destination:
    """A channel that can receive notifications."""

    id: int
    guild_id: int
    name: str = ""
    filter_id: Optional[int] = None


@dataclass(frozen=True)
class Guild:
    """A server owning destinations and its fallback channels."""

    id: int
    name: str = ""
    fallback_destination_id: Optional[int] = None
    adult_fallback_destination_id: Optional[int] = None

    def fallback_for(self, is_adult: bool) -> Optional[int]:
        """Return the fallback destination for an item's classification."""
        if is_adult:
            return self.adult_fallback_destination_id
        return self.fallback_destination_id
