"""Gitignore-style pattern compiler.

Turns the text of an ignore-rules file into matchers over paths relative to
the scan root. This is a best-effort filter, not full gitignore semantics:
negation rules (``!pattern``) are reported as unsupported and ``**`` has no
special multi-segment meaning beyond two consecutive ``*`` wildcards.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)

COMMENT_PREFIX = "#"
NEGATION_PREFIX = "!"


class PatternTranslationError(ValueError):
    """Raised internally when a rule cannot be turned into a regex."""


@dataclass(slots=True, frozen=True)
class IgnoreRule:
    """A single compiled ignore rule.

    Attributes:
        pattern: Origin text of the rule
        regex: Compiled matcher, None when the rule is unsupported
        unsupported: Whether the rule could not be compiled faithfully
        anchored: Rule began with ``/`` and only matches from the root
        directory: Rule ended with ``/`` and covers a whole subtree
    """

    pattern: str
    regex: re.Pattern[str] | None
    unsupported: bool = False
    anchored: bool = False
    directory: bool = False

    def matches(self, relative_path: str) -> bool:
        """Check whether the rule matches a path relative to the scan root.

        Args:
            relative_path: ``/``-separated path without leading slash

        Returns:
            True if the rule matches the path or one of its ancestors
        """
        if self.unsupported or self.regex is None:
            return False
        return self.regex.fullmatch(relative_path.strip("/")) is not None


@dataclass(slots=True, frozen=True)
class CompiledRules:
    """Ordered active rules plus the raw text of unsupported ones."""

    rules: tuple[IgnoreRule, ...] = ()
    unsupported: tuple[str, ...] = ()

    def match(self, relative_path: str) -> IgnoreRule | None:
        """Return the first active rule matching the path, if any."""
        for rule in self.rules:
            if rule.matches(relative_path):
                return rule
        return None

    def matches(self, relative_path: str) -> bool:
        return self.match(relative_path) is not None

    def __len__(self) -> int:
        return len(self.rules)


EMPTY_RULES = CompiledRules()


def translate_pattern(pattern: str) -> tuple[str, bool, bool]:
    """Translate one ignore rule into a regular expression source.

    ``*`` becomes "any run of characters" and ``?`` "any single character";
    every other character is matched literally. A leading ``/`` anchors the
    rule at the scan root, otherwise it may start at any path segment but
    never in the middle of a name: ``build/`` matches ``build`` and
    ``src/build`` but not ``mybuild``. The result always matches the path
    itself or the path followed by ``/`` and anything, so a folder rule also
    covers its descendants.

    For an anchored folder rule such as ``/build/``, a path matches exactly
    when it equals ``build`` or starts with ``build/``. An unanchored folder
    rule additionally matches the same name at deeper levels.

    Args:
        pattern: Stripped rule text

    Returns:
        Tuple of (regex source, anchored, directory)

    Raises:
        PatternTranslationError: If nothing matchable remains

    Examples:
        >>> translate_pattern("/build/")
        ('build(?:/.*)?', True, True)
    """
    anchored = pattern.startswith("/")
    directory = pattern.endswith("/")
    body = pattern.strip("/")
    if not body:
        msg = f"Pattern has no matchable name: {pattern!r}"
        raise PatternTranslationError(msg)

    translated: list[str] = []
    for char in body:
        if char == "*":
            translated.append(".*")
        elif char == "?":
            translated.append(".")
        else:
            translated.append(re.escape(char))

    prefix = "" if anchored else "(?:.*/)?"
    return f"{prefix}{''.join(translated)}(?:/.*)?", anchored, directory


class PatternCompiler:
    """Compiles ignore-file text into ``CompiledRules``.

    One compiler lives for one scan session; identical rule text is compiled
    at most once and the cached ``IgnoreRule`` is reused afterwards.
    """

    def __init__(self, case_sensitive: bool = False) -> None:
        """Initialize the compiler.

        Args:
            case_sensitive: Whether compiled rules match case-sensitively
        """
        self.case_sensitive: bool = case_sensitive
        self._cache: dict[str, IgnoreRule] = {}

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def compile_rule(self, pattern: str) -> IgnoreRule:
        """Compile a single rule, never raising.

        Args:
            pattern: Stripped, non-comment rule text

        Returns:
            Cached or newly compiled rule; unsupported on any failure
        """
        cached = self._cache.get(pattern)
        if cached is not None:
            return cached

        rule = self._build_rule(pattern)
        self._cache[pattern] = rule
        return rule

    def compile(self, text: str) -> CompiledRules:
        """Compile the full content of an ignore-rules file.

        Blank lines and ``#`` comments are dropped. Every other line becomes
        an active rule or is recorded as unsupported.

        Args:
            text: Raw file content

        Returns:
            Active rules and unsupported patterns, both in file order
        """
        rules: list[IgnoreRule] = []
        unsupported: list[str] = []

        for raw_line in text.splitlines():
            line = raw_line.strip()
            if not line or line.startswith(COMMENT_PREFIX):
                continue

            rule = self.compile_rule(line)
            if rule.unsupported:
                unsupported.append(rule.pattern)
            else:
                rules.append(rule)

        if unsupported:
            logger.warning(
                "Ignoring unsupported ignore patterns",
                extra={"patterns": unsupported},
            )

        return CompiledRules(rules=tuple(rules), unsupported=tuple(unsupported))

    def _build_rule(self, pattern: str) -> IgnoreRule:
        if pattern.startswith(NEGATION_PREFIX):
            # Negation is not implemented
            return IgnoreRule(pattern=pattern, regex=None, unsupported=True)

        try:
            source, anchored, directory = translate_pattern(pattern)
            flags = 0 if self.case_sensitive else re.IGNORECASE
            regex = re.compile(source, flags)
        except (PatternTranslationError, re.error) as exc:
            logger.debug("Invalid ignore pattern", extra={"pattern": pattern, "error": str(exc)})
            return IgnoreRule(pattern=pattern, regex=None, unsupported=True)

        return IgnoreRule(
            pattern=pattern,
            regex=regex,
            anchored=anchored,
            directory=directory,
        )
