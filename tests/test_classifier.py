"""Tests for the pattern classifier."""

import pytest

from quicknote.classifier import RULES, classify, classify_type, extract_tags
from quicknote.models import KnowledgeType


class TestRuleTable:
    """The rule order is part of the contract."""

    def test_rule_order_is_pinned(self):
        """SQL before error before numbered list."""
        assert [rule.name for rule in RULES] == ["sql", "error", "numbered_list"]
        assert [rule.knowledge_type for rule in RULES] == [
            KnowledgeType.SQL_QUERY,
            KnowledgeType.DEBUG_PATTERN,
            KnowledgeType.PROCESS,
        ]

    def test_sql_query(self):
        assert classify("SELECT * FROM t").knowledge_type == KnowledgeType.SQL_QUERY

    def test_insert_into(self):
        assert classify("insert into users values (1)").knowledge_type == KnowledgeType.SQL_QUERY

    def test_sql_wins_over_error(self):
        """An error message quoting SQL is still SQL."""
        assert classify("ERROR: SELECT failed").knowledge_type == KnowledgeType.SQL_QUERY

    def test_error_markers(self):
        assert classify("NullPointerException in worker").knowledge_type == KnowledgeType.DEBUG_PATTERN
        assert classify("thread main panicked").knowledge_type == KnowledgeType.DEBUG_PATTERN
        assert classify("TypeError: bad operand").knowledge_type == KnowledgeType.DEBUG_PATTERN

    def test_error_wins_over_numbered_list(self):
        content = "1. run the job\n2. read the error log"
        assert classify(content).knowledge_type == KnowledgeType.DEBUG_PATTERN

    def test_numbered_list(self):
        content = "Deploy steps\n1. build\n2. test\n3. ship"
        assert classify(content).knowledge_type == KnowledgeType.PROCESS

    def test_single_numbered_line_is_not_a_list(self):
        assert classify("1. only one step").knowledge_type == KnowledgeType.CONCEPT

    def test_decimal_number_is_not_a_list(self):
        assert classify("1.5 cups\n2.5 cups").knowledge_type == KnowledgeType.CONCEPT

    def test_sql_keywords_need_word_boundaries(self):
        """'selection' and 'fromage' are not SQL."""
        assert classify("natural selection of fromage").knowledge_type == KnowledgeType.CONCEPT

    def test_case_insensitive(self):
        assert classify_type("select name from t") == KnowledgeType.SQL_QUERY
        assert classify_type("PANIC at the disco") == KnowledgeType.DEBUG_PATTERN

    @pytest.mark.parametrize("content", ["", "   ", "\n\t\n"])
    def test_empty_content_defaults(self, content: str):
        result = classify(content)
        assert result.knowledge_type == KnowledgeType.CONCEPT
        assert result.tags == frozenset()


class TestTags:
    """Tests for #tag extraction."""

    def test_tags_and_default_type(self):
        result = classify("buy milk #todo #home")
        assert result.tags == {"todo", "home"}
        assert result.knowledge_type == KnowledgeType.CONCEPT

    def test_tags_deduplicated_and_lowercased(self):
        assert extract_tags("#Todo and #todo and #TODO") == {"todo"}

    def test_tag_stops_at_punctuation(self):
        assert extract_tags("see #python3, #snake_case!") == {"python3", "snake_case"}

    def test_hash_inside_word_is_not_a_tag(self):
        assert extract_tags("C# and issue#12") == frozenset()

    def test_bare_hash_is_ignored(self):
        assert extract_tags("# heading and ## another") == frozenset()

    def test_tags_independent_of_type(self):
        result = classify("SELECT 1 FROM dual #sql")
        assert result.knowledge_type == KnowledgeType.SQL_QUERY
        assert result.tags == {"sql"}


class TestDeterminism:
    """classify is a pure function."""

    @pytest.mark.parametrize("content", [
        "SELECT * FROM t",
        "ERROR: disk full #ops",
        "1. a\n2. b",
        "just a thought",
    ])
    def test_same_input_same_output(self, content: str):
        assert classify(content) == classify(content)
