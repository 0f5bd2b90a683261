"""Wildcard permission patterns.

A pattern is a permission name in which ``*`` stands for one non-empty
run of characters containing no delimiter, i.e. one segment. When
``greedy_trailing`` is on, a ``*`` at the very end of the pattern also
matches further delimiters, so ``article:*`` covers ``article:view`` and
``article:view:all``, and ``*`` alone covers every name.

Examples (delimiter ``:``):
    article:*        matches article:view, article:view:all (greedy)
    article:*        matches article:view only (not greedy)
    *:view           matches article:view, user:view
    article:*:own    matches article:edit:own
"""

import re
from collections.abc import Iterable

from warden.core.constants import MAX_COMPILED_PATTERNS, WILDCARD


class WildcardMatcher:
    """Compiles wildcard patterns and tests permission names against them.

    Compiled expressions are cached per pattern. The cache is bounded;
    when full, the older half is discarded.
    """

    def __init__(
        self,
        delimiter: str = ":",
        greedy_trailing: bool = True,
        max_patterns: int = MAX_COMPILED_PATTERNS,
    ) -> None:
        if not delimiter or WILDCARD in delimiter:
            raise ValueError("Delimiter must be a non-empty string without '*'")
        self.delimiter = delimiter
        self.greedy_trailing = greedy_trailing
        self.max_patterns = max_patterns
        self._compiled: dict[str, re.Pattern[str]] = {}

    @staticmethod
    def is_wildcard(pattern: str) -> bool:
        """Check whether ``pattern`` contains a wildcard."""
        return WILDCARD in pattern

    def matches(self, pattern: str, name: str) -> bool:
        """Check whether a permission name matches a pattern.

        A pattern without wildcards matches only the identical name.

        Args:
            pattern: Pattern such as ``article:*``
            name: Concrete permission name

        Returns:
            True if ``name`` matches ``pattern``
        """
        if not self.is_wildcard(pattern):
            return pattern == name
        return self.compile(pattern).fullmatch(name) is not None

    def expand(self, pattern: str, names: Iterable[str]) -> list[str]:
        """Return every name matching ``pattern``, in input order.

        Args:
            pattern: Pattern to expand
            names: Candidate permission names

        Returns:
            Matching names. Without wildcards this is ``[pattern]`` when
            the pattern is one of ``names``, otherwise empty.
        """
        if not self.is_wildcard(pattern):
            return [pattern] if pattern in names else []
        regex = self.compile(pattern)
        return [name for name in names if regex.fullmatch(name) is not None]

    def compile(self, pattern: str) -> re.Pattern[str]:
        """Compile a pattern, reusing the cached expression when present.

        Every literal character is escaped before the wildcard tokens
        are substituted, so names can never smuggle regex syntax in.
        """
        compiled = self._compiled.get(pattern)
        if compiled is not None:
            return compiled

        segment = f"[^{re.escape(self.delimiter)}]+"
        literals = [re.escape(part) for part in pattern.split(WILDCARD)]
        tokens = [segment] * (len(literals) - 1)
        if self.greedy_trailing and pattern.endswith(WILDCARD):
            tokens[-1] = ".+"

        source = literals[0] + "".join(t + lit for t, lit in zip(tokens, literals[1:], strict=True))
        compiled = re.compile(source, re.DOTALL)

        if len(self._compiled) >= self.max_patterns:
            self._evict()
        self._compiled[pattern] = compiled
        return compiled

    def clear_cache(self) -> None:
        """Forget every compiled pattern."""
        self._compiled.clear()

    @property
    def cache_size(self) -> int:
        return len(self._compiled)

    def _evict(self) -> None:
        # dicts keep insertion order, so the first half is the oldest
        for key in list(self._compiled)[: len(self._compiled) // 2]:
            del self._compiled[key]
