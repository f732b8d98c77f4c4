"""Block rule model and parsing for ScriptGuard.

A block rule is a piece of text that, when found in a ``<script>`` element's
``src`` or inline body, gets that element removed from a rewritten document.

Rules come from the ``blocklist:`` section of the config file and are parsed
exactly once at startup into an immutable tuple. Three YAML shapes are accepted:

    blocklist:                      # mapping: rule -> kind
      bvtpk.com: substring
      /assets/jquery/css.js: path

    blocklist:                      # list of plain strings (kind inferred)
      - imasdk.googleapis.com
      - /assets/jquery/css100.js

    blocklist:                      # list of mappings
      - rule: tag.min.js
        kind: substring
        note: third-party tag manager

A rule written with a leading ``/`` defaults to the ``path`` kind; everything
else defaults to ``substring``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Optional

from scriptguard.utils.logger import get_logger

logger = get_logger(__name__)


class MatchKind(str, enum.Enum):
    """How a rule is compared against a script source."""

    SUBSTRING = "substring"  # anywhere in the full src / inline text
    PATH = "path"            # also inside the src with its query stripped

    @classmethod
    def infer(cls, rule: str) -> "MatchKind":
        return cls.PATH if rule.startswith("/") else cls.SUBSTRING


class BlockRuleError(ValueError):
    """Raised when a block rule entry cannot be parsed (unknown kind, bad type)."""


@dataclass(frozen=True)
class BlockRule:
    """A single immutable block rule.

    Fields:
        rule:  Text searched for in script sources and inline bodies.
        kind:  MatchKind.SUBSTRING or MatchKind.PATH.
        note:  Optional human-readable reason, for operators only.
    """

    rule: str
    kind: MatchKind = MatchKind.SUBSTRING
    note: Optional[str] = None

    @classmethod
    def of(cls, rule: str, kind: Optional[str] = None, note: Optional[str] = None) -> "BlockRule":
        """Build a rule, inferring the kind from the leading ``/`` when omitted."""
        if kind is None:
            return cls(rule=rule, kind=MatchKind.infer(rule), note=note)
        try:
            match_kind = MatchKind(str(kind).lower())
        except ValueError:
            raise BlockRuleError(
                f"Unknown block rule kind '{kind}' for rule '{rule}'. "
                f"Supported kinds: {[k.value for k in MatchKind]}."
            ) from None
        return cls(rule=rule, kind=match_kind, note=note)


def parse_block_rules(raw: Any) -> tuple[BlockRule, ...]:
    """Parse the raw ``blocklist:`` YAML value into an immutable rule tuple.

    Blank and duplicate rules are skipped with a WARNING. Order of first
    appearance is preserved.

    Raises:
        BlockRuleError: the section has the wrong shape, or a rule names an
                        unknown kind. Config loading turns this into a refusal
                        to start.
    """
    if raw is None:
        return ()

    candidates: list[BlockRule] = []

    if isinstance(raw, dict):
        for rule, kind in raw.items():
            candidates.append(BlockRule.of(_rule_text(rule), kind))
    elif isinstance(raw, list):
        for index, item in enumerate(raw):
            if isinstance(item, str):
                candidates.append(BlockRule.of(item))
            elif isinstance(item, dict):
                if "rule" not in item:
                    raise BlockRuleError(f"blocklist entry #{index} is missing 'rule'")
                candidates.append(
                    BlockRule.of(_rule_text(item["rule"]), item.get("kind"), item.get("note"))
                )
            else:
                raise BlockRuleError(
                    f"blocklist entry #{index} must be a string or a mapping, "
                    f"got {type(item).__name__}"
                )
    else:
        raise BlockRuleError(
            f"blocklist must be a mapping or a list, got {type(raw).__name__}"
        )

    rules: list[BlockRule] = []
    seen: set[str] = set()
    for candidate in candidates:
        if not candidate.rule.strip():
            logger.warning("Blank block rule skipped")
            continue
        if candidate.rule in seen:
            logger.warning("Duplicate block rule skipped", rule=candidate.rule)
            continue
        seen.add(candidate.rule)
        rules.append(candidate)

    return tuple(rules)


def _rule_text(value: Any) -> str:
    if not isinstance(value, (str, int, float)):
        raise BlockRuleError(f"block rule must be text, got {type(value).__name__}")
    return str(value)
