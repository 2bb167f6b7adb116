"""
Alert formatting component for the BOOTH notifier.

This module renders items into notification payloads. Oversized fields are
truncated to fit Discord embed limits; formatting never fails on long input.
"""

from typing import Any, Dict, List

from ..models.alert import MAX_DESCRIPTION_LENGTH, MAX_TITLE_LENGTH, FormattedAlert
from ..models.item import Item

MAX_TAGS_LENGTH = 1024
ADULT_COLOR = 0xE91E63
GENERAL_COLOR = 0xFC4D50


def truncate(text: str, limit: int, suffix: str = "...") -> str:
    """Cut text to at most ``limit`` characters, marking the cut."""
    if len(text) <= limit:
        return text
    return text[: max(limit - len(suffix), 0)] + suffix


class AlertFormatter:
    """Formats items into rich alert messages."""

    def __init__(self, max_tags_length: int = MAX_TAGS_LENGTH):
        """
        Initialize the alert formatter.

        Args:
            max_tags_length: Character cap for the joined tag list
        """
        self.max_tags_length = max_tags_length

    def format_alert(self, item: Item) -> FormattedAlert:
        """
        Format an item into an alert.

        Args:
            item: The item to announce

        Returns:
            FormattedAlert: Alert ready for delivery
        """
        title = truncate(item.name.strip() or f"Item {item.id}", MAX_TITLE_LENGTH)
        description = self._create_description(item)
        image_url = item.images[0].original if item.images else None

        alert = FormattedAlert(
            title=title,
            url=item.url,
            description=description,
            image_url=image_url,
        )
        alert.platform_specific_data["discord"] = self._format_discord(item, alert)

        alert.validate()
        return alert

    def format_tags(self, item: Item) -> str:
        """Join tag names with commas, capped at ``max_tags_length``."""
        return truncate(", ".join(item.tag_names), self.max_tags_length)

    def _create_description(self, item: Item) -> str:
        lines: List[str] = [
            item.shop.name,
            f"Price: {item.price}",
            f"Tags: {self.format_tags(item)}",
        ]
        return truncate("\n".join(lines), MAX_DESCRIPTION_LENGTH)

    def _format_discord(self, item: Item, alert: FormattedAlert) -> Dict[str, Any]:
        embed: Dict[str, Any] = {
            "title": alert.title,
            "url": alert.url,
            "description": alert.description,
            "color": ADULT_COLOR if item.is_adult else GENERAL_COLOR,
        }

        if alert.image_url:
            embed["image"] = {"url": alert.image_url}

        if item.shop.url:
            author: Dict[str, Any] = {"name": item.shop.name, "url": item.shop.url}
            if item.shop.thumbnail_url:
                author["icon_url"] = item.shop.thumbnail_url
            embed["author"] = author

        return {"embeds": [embed]}
