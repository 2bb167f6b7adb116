"""Filter engine for evaluating notification filters against items."""

import logging
import re
from functools import lru_cache
from typing import List, Optional

from ..models.filter import (
    Field,
    Filter,
    FilterGroup,
    Op,
    Pattern,
    RegexPattern,
    Rule,
    TagMode,
    TextPattern,
)
from ..models.item import Item

logger = logging.getLogger(__name__)


@lru_cache(maxsize=512)
def compile_pattern(pattern: str, case_sensitive: bool) -> Optional["re.Pattern[str]"]:
    """Compile a user pattern, returning None when it is invalid.

    Case-insensitivity is a leading global flag, so patterns that start
    with their own inline flags such as `(?s)` still compile.
    """
    source = pattern if case_sensitive else "(?i)" + pattern
    try:
        return re.compile(source)
    except re.error as e:
        logger.debug(f"Invalid regex pattern {pattern!r}: {e}")
        return None


class FilterEngine:
    """Evaluates filters against items.

    The engine holds no mutable state and is safe to share between tasks
    and threads.
    """

    def evaluate(self, filter_: Filter, item: Item) -> bool:
        """Check whether an item satisfies a filter.

        Every group must be satisfied. A filter without groups never matches:
        an empty filter is treated as a configuration mistake and fails
        closed instead of matching every item.
        """
        if not filter_.groups:
            return False

        return all(self.check_group(group, item) for group in filter_.groups)

    def explain(self, filter_: Filter, item: Item) -> List[bool]:
        """Return the outcome of each group, in order."""
        return [self.check_group(group, item) for group in filter_.groups]

    def check_group(self, group: FilterGroup, item: Item) -> bool:
        """A group is satisfied when any of its rules is. Empty groups never are."""
        return any(self.check_rule(rule, item) for rule in group.rules)

    def check_rule(self, rule: Rule, item: Item) -> bool:
        if rule.field is Field.NAME:
            matched = self.test_pattern(rule, item.name)
        elif rule.field is Field.DESCRIPTION:
            matched = self.test_pattern(rule, item.description)
        elif rule.field is Field.TAGS:
            matched = self._check_tags(rule, item.tag_names)
        else:
            raise TypeError(f"Unhandled rule field: {rule.field!r}")

        return matched if rule.op is Op.INCLUDE else not matched

    def _check_tags(self, rule: Rule, tag_names: List[str]) -> bool:
        # Untagged items count as matching regardless of pattern and mode
        if not tag_names:
            return True

        if rule.effective_tag_mode is TagMode.ALL:
            return all(self.test_pattern(rule, name) for name in tag_names)
        return any(self.test_pattern(rule, name) for name in tag_names)

    def test_pattern(self, rule: Rule, value: str) -> bool:
        pattern: Pattern = rule.pattern

        if isinstance(pattern, TextPattern):
            if rule.case_sensitive:
                return pattern.value in value
            return pattern.value.lower() in value.lower()

        if isinstance(pattern, RegexPattern):
            regex = compile_pattern(pattern.value, rule.case_sensitive)
            if regex is None:
                return False
            return regex.search(value) is not None

        raise TypeError(f"Unhandled pattern type: {type(pattern).__name__}")
