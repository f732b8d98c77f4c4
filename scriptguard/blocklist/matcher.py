"""Script block matching for ScriptGuard.

Decides, for one ``<script>`` element, whether the rewriter removes it.

External scripts (non-empty ``src``):
  - any rule whose text occurs in the full ``src`` string blocks it;
  - a PATH rule also blocks it when its text occurs in the ``src`` with any
    trailing ``?query`` cut off. The ``src`` is compared as written in the
    document; it is never resolved against the page URL.

Inline scripts (no ``src``, non-empty body):
  - any rule whose text occurs in the body blocks it;
  - the fixed loader signature (INLINE_LOADER_SIGNATURE) always blocks it,
    even with an empty rule set.

Pure functions only; no I/O, no shared state.
"""

from __future__ import annotations

from typing import Optional, Sequence

from scriptguard.blocklist.rules import BlockRule, MatchKind
from scriptguard.constants import INLINE_LOADER_SIGNATURE


def source_path(src: str) -> str:
    """Return a script source without its query string."""
    return src.split("?", 1)[0]


def match_source(src: str, rules: Sequence[BlockRule]) -> Optional[BlockRule]:
    """Return the first rule that blocks an external script, or None."""
    path = source_path(src)
    for rule in rules:
        if rule.rule in src:
            return rule
        if rule.kind is MatchKind.PATH and rule.rule in path:
            return rule
    return None


def match_inline(content: str, rules: Sequence[BlockRule]) -> Optional[str]:
    """Return the text that blocks an inline script, or None.

    Configured rules are checked first; the loader signature last.
    """
    for rule in rules:
        if rule.rule in content:
            return rule.rule
    if INLINE_LOADER_SIGNATURE in content:
        return INLINE_LOADER_SIGNATURE
    return None


def should_block_script(
    src: Optional[str],
    content: Optional[str],
    rules: Sequence[BlockRule],
) -> Optional[str]:
    """Decide whether a script element is removed.

    Args:
        src:      value of the ``src`` attribute (None or "" when absent).
        content:  inline body text (None or "" when empty).
        rules:    the configured block rules.

    Returns:
        The matching rule text when the script must be removed, else None.
    """
    if src:
        matched = match_source(src, rules)
        return matched.rule if matched is not None else None
    if content:
        return match_inline(content, rules)
    return None
