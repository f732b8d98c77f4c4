"""ScriptGuard block list — configurable script removal rules.

Public API:
    BlockRule           — single immutable rule dataclass
    MatchKind           — substring / path matching
    parse_block_rules   — YAML section -> tuple[BlockRule, ...]
    should_block_script — per-script removal decision
"""
from scriptguard.blocklist.matcher import should_block_script
from scriptguard.blocklist.rules import BlockRule, BlockRuleError, MatchKind, parse_block_rules

__all__ = [
    "BlockRule",
    "BlockRuleError",
    "MatchKind",
    "parse_block_rules",
    "should_block_script",
]
