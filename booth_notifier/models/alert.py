"""
Alert formatting models.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

# Discord embed limits
MAX_TITLE_LENGTH = 256
MAX_DESCRIPTION_LENGTH = 4096


@dataclass
class FormattedAlert:
    """Formatted alert ready for delivery."""

    title: str
    url: str
    description: str
    image_url: Optional[str] = None
    platform_specific_data: Dict[str, Any] = field(default_factory=dict)

    def validate(self) -> bool:
        """Validate formatted alert data."""
        if not isinstance(self.title, str):
            raise ValueError("title must be a string")

        if not self.title.strip():
            raise ValueError("title cannot be empty")

        if len(self.title) > MAX_TITLE_LENGTH:
            raise ValueError(f"title too long (max {MAX_TITLE_LENGTH} characters)")

        if len(self.description) > MAX_DESCRIPTION_LENGTH:
            raise ValueError(
                f"description too long (max {MAX_DESCRIPTION_LENGTH} characters)"
            )

        if not isinstance(self.platform_specific_data, dict):
            raise ValueError("platform_specific_data must be a dictionary")

        return True

    def to_discord_payload(self) -> Dict[str, Any]:
        """Render the message body for the Discord REST API."""
        if "discord" in self.platform_specific_data:
            return self.platform_specific_data["discord"]

        embed: Dict[str, Any] = {
            "title": self.title,
            "url": self.url,
            "description": self.description,
        }
        if self.image_url:
            embed["image"] = {"url": self.image_url}
        return {"embeds": [embed]}
