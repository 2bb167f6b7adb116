"""
Item data models for the BOOTH notifier.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..utils.error_handling import ParseError


def _require(payload: Dict[str, Any], key: str, expected: type, where: str) -> Any:
    if key not in payload or payload[key] is None:
        raise ParseError(f"{where}: missing required field '{key}'")
    value = payload[key]
    if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
        raise ParseError(
            f"{where}: field '{key}' must be {expected.__name__}, "
            f"got {type(value).__name__}"
        )
    return value


@dataclass(frozen=True)
class Tag:
    """A tag attached to an item."""

    name: str
    url: str = ""


@dataclass(frozen=True)
class Shop:
    """The shop selling an item."""

    name: str
    subdomain: str = ""
    url: str = ""
    thumbnail_url: str = ""


@dataclass(frozen=True)
class Image:
    """An item image."""

    original: str
    resized: str = ""
    caption: Optional[str] = None


@dataclass(frozen=True)
class Item:
    """A marketplace item as returned by the detail endpoint."""

    id: int
    name: str
    description: str
    url: str
    price: str
    is_adult: bool
    shop: Shop
    tags: List[Tag] = field(default_factory=list)
    images: List[Image] = field(default_factory=list)
    category: Optional[str] = None
    published_at: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def tag_names(self) -> List[str]:
        return [tag.name for tag in self.tags]

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Item":
        """Build an item from a detail record.

        Raises:
            ParseError: If a required field is absent or has the wrong type.
        """
        if not isinstance(payload, dict):
            raise ParseError("Item payload must be a mapping")

        item_id = _require(payload, "id", int, "item")
        where = f"item {item_id}"

        shop_data = _require(payload, "shop", dict, where)
        shop = Shop(
            name=_require(shop_data, "name", str, f"{where} shop"),
            subdomain=shop_data.get("subdomain") or "",
            url=shop_data.get("url") or "",
            thumbnail_url=shop_data.get("thumbnail_url") or "",
        )

        tags = []
        for tag_data in payload.get("tags") or []:
            if not isinstance(tag_data, dict):
                raise ParseError(f"{where}: tag entries must be mappings")
            tags.append(
                Tag(
                    name=_require(tag_data, "name", str, f"{where} tag"),
                    url=tag_data.get("url") or "",
                )
            )

        images = []
        for image_data in payload.get("images") or []:
            if not isinstance(image_data, dict):
                raise ParseError(f"{where}: image entries must be mappings")
            images.append(
                Image(
                    original=_require(image_data, "original", str, f"{where} image"),
                    resized=image_data.get("resized") or "",
                    caption=image_data.get("caption"),
                )
            )

        category = payload.get("category")
        category_name = category.get("name") if isinstance(category, dict) else None

        return cls(
            id=item_id,
            name=_require(payload, "name", str, where),
            description=_require(payload, "description", str, where),
            url=_require(payload, "url", str, where),
            price=_require(payload, "price", str, where),
            is_adult=_require(payload, "is_adult", bool, where),
            shop=shop,
            tags=tags,
            images=images,
            category=category_name,
            published_at=payload.get("published_at"),
            payload=payload,
        )
