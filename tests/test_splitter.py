"""Tests for statement splitting and submission resolution."""

import pytest

from sqldesk.errors import EmptyQueryError
from sqldesk.models import Statement
from sqldesk.splitter import format_sql, is_multi_statement, resolve_submission, split_statements


def texts(statements):
    return [s.text for s in statements]


class TestSplitStatements:

    def test_no_separator_is_single_statement(self):
        assert split_statements("SELECT 1") == [Statement("SELECT 1", 1)]

    def test_one_fragment_with_trailing_separators(self):
        assert texts(split_statements("  SELECT 1 ;;  ")) == ["SELECT 1"]
        assert texts(split_statements(";;SELECT 1")) == ["SELECT 1"]

    def test_three_statements_trimmed_in_order(self):
        statements = split_statements("STMT1; STMT2;\n  STMT3")
        assert texts(statements) == ["STMT1", "STMT2", "STMT3"]
        assert [s.position for s in statements] == [1, 2, 3]

    def test_empty_fragments_do_not_count_positions(self):
        statements = split_statements("A;;;B")
        assert [(s.text, s.position) for s in statements] == [("A", 1), ("B", 2)]

    @pytest.mark.parametrize("text", ["", "   ", " ; ;; ", None])
    def test_blank_input_raises(self, text):
        with pytest.raises(EmptyQueryError):
            split_statements(text)

    def test_empty_query_error_is_value_error(self):
        with pytest.raises(ValueError):
            split_statements(";")

    def test_idempotent(self):
        text = "SELECT 1; UPDATE t SET x = 2;"
        assert split_statements(text) == split_statements(text)

    def test_semicolon_in_literal_is_not_protected(self):
        # Known limitation: no quote awareness
        assert texts(split_statements("SELECT 'a;b'")) == ["SELECT 'a", "b'"]


class TestResolveSubmission:

    def test_selection_runs_verbatim(self):
        selection = "SELECT ';' AS semi; SELECT 2"
        statements = resolve_submission("SELECT 1; SELECT 2", selection=selection)
        assert statements == [Statement(selection, 1)]

    def test_blank_selection_falls_back_to_buffer(self):
        statements = resolve_submission("SELECT 1; SELECT 2", selection="   ")
        assert texts(statements) == ["SELECT 1", "SELECT 2"]

    def test_is_multi_statement(self):
        assert is_multi_statement("SELECT 1; SELECT 2")
        assert not is_multi_statement("SELECT 1;")
        assert not is_multi_statement("SELECT 1; SELECT 2", selection="SELECT 1")


def test_format_sql_uppercases_and_reindents():
    formatted = format_sql("select a, b from t where b = 1")
    assert formatted.startswith("SELECT")
    assert "FROM t" in formatted
    assert "\n" in formatted
