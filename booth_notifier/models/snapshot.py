"""
Poll snapshot model.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass(frozen=True)
class PollSnapshot:
    """The identifier list observed on one poll."""

    item_ids: List[int] = field(default_factory=list)
    fetched_at: Optional[datetime] = None
    id: Optional[int] = None
