"""
Tests for the backend-neutral filter expression grammar.
"""

import pytest

from shared.clients.rag import FilterExpression
from shared.clients.rag.FilterExpression import FilterClause


class TestRender:
    def test_render_should_join_clauses_with_and(self) -> None:
        clauses = [
            FilterClause(field="sourceType", operator="==", value="NOTION"),
            FilterClause(field="teamId", operator="==", value=7),
        ]

        assert FilterExpression.render(clauses) == "sourceType == 'NOTION' && teamId == 7"

    def test_render_should_escape_quotes_and_backslashes(self) -> None:
        clause = FilterClause(field="title", operator="==", value="Bob's C:\\notes")

        assert FilterExpression.render([clause]) == "title == 'Bob\\'s C:\\\\notes'"

    def test_render_should_return_empty_string_without_clauses(self) -> None:
        assert FilterExpression.render([]) == ""


class TestParse:
    @pytest.mark.parametrize("expression", [None, "", "   "])
    def test_parse_should_return_no_clauses_for_blank_expression(self, expression) -> None:
        assert FilterExpression.parse(expression) == []

    def test_parse_should_read_every_clause_in_order(self) -> None:
        clauses = FilterExpression.parse("teamId == 7 && lastEditedTime >= '2024-01-01T00:00:00' && score == 1.5")

        assert [(c.field, c.operator, c.value) for c in clauses] == [
            ("teamId", "==", 7),
            ("lastEditedTime", ">=", "2024-01-01T00:00:00"),
            ("score", "==", 1.5),
        ]

    def test_parse_should_unescape_rendered_literals(self) -> None:
        original = [FilterClause(field="apiPath", operator="==", value="GET /it's\\here")]

        parsed = FilterExpression.parse(FilterExpression.render(original))

        assert parsed[0].value == "GET /it's\\here"

    @pytest.mark.parametrize("expression", [
        "teamId = 7",
        "teamId == ",
        "== 7",
        "title == 'unterminated",
        "teamId == 7 pageId == 'x'",
        "teamId == 7 &&",
    ])
    def test_parse_should_reject_malformed_expressions(self, expression) -> None:
        with pytest.raises(ValueError):
            FilterExpression.parse(expression)
