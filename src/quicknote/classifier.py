"""
Pattern classifier for QuickNote.

Routes raw note text into a knowledge type and pulls out #tags.
Pure and deterministic: no I/O, no model calls.
"""

import re
from typing import NamedTuple

from quicknote.models import KnowledgeType


class Classification(NamedTuple):
    knowledge_type: KnowledgeType
    tags: frozenset[str]


class Rule(NamedTuple):
    """One row of the rule table. `pattern` is searched, not matched."""

    name: str
    knowledge_type: KnowledgeType
    pattern: re.Pattern[str]
    min_matches: int = 1


# RULE ORDER IS FROZEN. First match wins; reordering or adding rows changes
# how existing notes would classify, so treat any edit as a breaking change.
RULES: tuple[Rule, ...] = (
    Rule(
        "sql",
        KnowledgeType.SQL_QUERY,
        re.compile(r"\b(?:select|from|insert\s+into)\b", re.IGNORECASE),
    ),
    Rule(
        "error",
        KnowledgeType.DEBUG_PATTERN,
        re.compile(r"error|exception|panic", re.IGNORECASE),
    ),
    Rule(
        "numbered_list",
        KnowledgeType.PROCESS,
        re.compile(r"^[ \t]*\d+\.[ \t]+\S", re.MULTILINE),
        min_matches=2,
    ),
)

DEFAULT_TYPE = KnowledgeType.CONCEPT

# '#' must not follow a word character, so "C#" and "issue#12" are not tags
TAG_PATTERN = re.compile(r"(?<!\w)#(\w+)")


def _rule_matches(rule: Rule, content: str) -> bool:
    if rule.min_matches <= 1:
        return rule.pattern.search(content) is not None
    hits = 0
    for _ in rule.pattern.finditer(content):
        hits += 1
        if hits >= rule.min_matches:
            return True
    return False


def classify_type(content: str) -> KnowledgeType:
    """Return the type of the first rule that matches, or the default."""
    for rule in RULES:
        if _rule_matches(rule, content):
            return rule.knowledge_type
    return DEFAULT_TYPE


def extract_tags(content: str) -> frozenset[str]:
    """Extract #hashtags, lower-cased and deduplicated."""
    return frozenset(match.lower() for match in TAG_PATTERN.findall(content))


def classify(content: str) -> Classification:
    """
    Classify raw note content.

    Empty content is not an error here: it falls through to the default type
    with no tags. Rejecting empty notes is the caller's job.
    """
    return Classification(classify_type(content), extract_tags(content))
