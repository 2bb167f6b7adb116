"""
Notification filter models.

A filter is an ordered list of groups, each group an ordered list of rules.
Groups are ANDed together and the rules inside a group are ORed. Filters are
stored as YAML text of the shape::

    schema_version: 1
    groups:
      - rules:
          - field: tags
            op: include
            pattern: {type: text, value: VRChat}
            case_sensitive: false
            tag_mode: any
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

import yaml

from ..utils.error_handling import ParseError

CURRENT_SCHEMA_VERSION = 1


class Field(Enum):
    """Item attribute a rule looks at."""

    NAME = "name"
    DESCRIPTION = "description"
    TAGS = "tags"


class Op(Enum):
    """Whether a rule requires or forbids a match."""

    INCLUDE = "include"
    EXCLUDE = "exclude"


class TagMode(Enum):
    """How a tags rule combines per-tag results."""

    ANY = "any"
    ALL = "all"


@dataclass(frozen=True)
class TextPattern:
    """Substring match."""

    value: str
    type = "text"


@dataclass(frozen=True)
class RegexPattern:
    """Unanchored regular-expression search."""

    value: str
    type = "regex"


Pattern = Union[TextPattern, RegexPattern]

PATTERN_TYPES = {cls.type: cls for cls in (TextPattern, RegexPattern)}


def _enum_value(enum_cls, raw: Any, where: str):
    try:
        return enum_cls(raw)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ParseError(f"{where}: '{raw}' is not one of {allowed}") from None


@dataclass(frozen=True)
class Rule:
    """A single test against one item attribute."""

    field: Field
    op: Op
    pattern: Pattern
    case_sensitive: bool = False
    tag_mode: Optional[TagMode] = None
    regex_flags: Optional[str] = None

    @property
    def effective_tag_mode(self) -> TagMode:
        return self.tag_mode or TagMode.ANY

    @classmethod
    def from_dict(cls, data: Dict[str, Any], where: str = "rule") -> "Rule":
        if not isinstance(data, dict):
            raise ParseError(f"{where}: expected a mapping")

        for key in ("field", "op", "pattern"):
            if key not in data:
                raise ParseError(f"{where}: missing required key '{key}'")

        pattern_data = data["pattern"]
        if not isinstance(pattern_data, dict):
            raise ParseError(f"{where}: pattern must be a mapping with type and value")
        pattern_cls = PATTERN_TYPES.get(pattern_data.get("type"))
        if pattern_cls is None:
            raise ParseError(
                f"{where}: unknown pattern type '{pattern_data.get('type')}'"
            )
        value = pattern_data.get("value")
        if not isinstance(value, str):
            raise ParseError(f"{where}: pattern value must be a string")

        case_sensitive = data.get("case_sensitive", False)
        if not isinstance(case_sensitive, bool):
            raise ParseError(f"{where}: case_sensitive must be a boolean")

        tag_mode = data.get("tag_mode")
        regex_flags = data.get("regex_flags")

        return cls(
            field=_enum_value(Field, data["field"], where),
            op=_enum_value(Op, data["op"], where),
            pattern=pattern_cls(value),
            case_sensitive=case_sensitive,
            tag_mode=_enum_value(TagMode, tag_mode, where)
            if tag_mode is not None
            else None,
            regex_flags=str(regex_flags) if regex_flags is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "field": self.field.value,
            "op": self.op.value,
            "pattern": {"type": self.pattern.type, "value": self.pattern.value},
            "case_sensitive": self.case_sensitive,
        }
        if self.regex_flags is not None:
            data["regex_flags"] = self.regex_flags
        if self.tag_mode is not None:
            data["tag_mode"] = self.tag_mode.value
        return data


@dataclass(frozen=True)
class FilterGroup:
    """Rules combined with OR."""

    rules: List[Rule] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], where: str = "group") -> "FilterGroup":
        if not isinstance(data, dict):
            raise ParseError(f"{where}: expected a mapping")
        raw_rules = data.get("rules") or []
        if not isinstance(raw_rules, list):
            raise ParseError(f"{where}: rules must be a list")
        return cls(
            rules=[
                Rule.from_dict(rule, f"{where} rule {index}")
                for index, rule in enumerate(raw_rules)
            ]
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"rules": [rule.to_dict() for rule in self.rules]}


@dataclass(frozen=True)
class Filter:
    """Groups combined with AND. A filter with no groups never matches."""

    groups: List[FilterGroup] = field(default_factory=list)
    schema_version: int = CURRENT_SCHEMA_VERSION

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Filter":
        """Build a filter from its stored mapping form.

        Missing keys take their defaults so filters saved by older versions
        keep loading.
        """
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ParseError("filter: expected a mapping")

        raw_groups = data.get("groups") or []
        if not isinstance(raw_groups, list):
            raise ParseError("filter: groups must be a list")

        schema_version = data.get("schema_version", CURRENT_SCHEMA_VERSION)
        if not isinstance(schema_version, int) or isinstance(schema_version, bool):
            raise ParseError("filter: schema_version must be an integer")

        return cls(
            groups=[
                FilterGroup.from_dict(group, f"group {index}")
                for index, group in enumerate(raw_groups)
            ],
            schema_version=schema_version,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "groups": [group.to_dict() for group in self.groups],
            "schema_version": self.schema_version,
        }

    def to_yaml(self) -> str:
        return yaml.safe_dump(
            self.to_dict(), sort_keys=False, allow_unicode=True, default_flow_style=False
        )

    def validate(self) -> bool:
        """Validate a filter before it is saved by an operator."""
        if not self.groups:
            raise ValueError("Filter must have at least one group")

        for index, group in enumerate(self.groups):
            if not group.rules:
                raise ValueError(f"Group {index} must have at least one rule")

        if self.schema_version > CURRENT_SCHEMA_VERSION:
            raise ValueError(
                f"Unsupported schema version {self.schema_version} "
                f"(max {CURRENT_SCHEMA_VERSION})"
            )

        return True


def parse_filter(text: str) -> Filter:
    """Parse the stored YAML form of a filter.

    Raises:
        ParseError: If the text is not valid YAML or not a valid filter.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ParseError(f"Invalid filter YAML: {e}") from e
    return Filter.from_dict(data)


@dataclass
class NotificationFilter:
    """A filter as stored by the repository."""

    id: int
    rule_yaml: str
    created_at: Optional[str] = None
