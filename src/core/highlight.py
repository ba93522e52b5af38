"""Highlight rule compilation and matching logic (core domain)."""

from __future__ import annotations

from dataclasses import dataclass
import re
from typing import Iterable, List, Optional

from core.config import HighlightRuleConfig
from core.errors import ConfigurationError


@dataclass(frozen=True)
class HighlightRule:
    """Compiled rule used by the IRC router."""

    nick_pattern: Optional[re.Pattern]
    message_pattern: Optional[re.Pattern]
    should_highlight: bool

    def fires(self, nick: str, text: str) -> bool:
        if self.nick_pattern is not None and not self.nick_pattern.search(nick):
            return False
        if self.message_pattern is not None and not self.message_pattern.search(text):
            return False
        return True


def _compile(pattern: Optional[str], field_name: str, index: int) -> Optional[re.Pattern]:
    if not pattern:
        return None
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise ConfigurationError(
            f"Highlight rule #{index} has an invalid {field_name} {pattern!r}: {exc}"
        ) from exc


def build_highlight_rules(rules_config: Iterable[HighlightRuleConfig]) -> List[HighlightRule]:
    """Compile rule configs once, at startup.

    A pattern that does not compile is a configuration error, so a bad rule
    never surfaces while relaying.
    """

    compiled: List[HighlightRule] = []
    for index, rule in enumerate(rules_config, start=1):
        compiled.append(
            HighlightRule(
                nick_pattern=_compile(rule.nick_pattern, "nick_pattern", index),
                message_pattern=_compile(rule.message_pattern, "message_pattern", index),
                should_highlight=rule.should_highlight,
            )
        )
    return compiled


def should_highlight(rules: Iterable[HighlightRule], nick: str, text: str) -> bool:
    """Return the outcome of the first rule that fires.

    Matching logic:
    - A missing pattern matches any value.
    - A pattern matches anywhere in its value (``re.search``).
    - When no rule fires, the owner is not highlighted.
    """

    for rule in rules:
        if rule.fires(nick, text):
            return rule.should_highlight
    return False
