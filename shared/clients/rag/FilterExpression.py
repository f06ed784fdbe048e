"""Backend-neutral metadata filter expressions.

Grammar::

    expression := clause ( "&&" clause )*
    clause     := field ( "==" | ">=" ) literal
    literal    := "'" chars "'" | number

Inside a quoted literal ``\\'`` stands for a quote and ``\\\\`` for a backslash.
RAG clients translate parsed clauses into their native filter format.
"""

import re
from typing import Any

from pydantic import BaseModel

OPERATORS = ("==", ">=")

_FIELD = re.compile(r"[A-Za-z_][A-Za-z0-9_.]*")
_NUMBER = re.compile(r"-?\d+(\.\d+)?")


class FilterClause(BaseModel):
    field: str
    operator: str
    value: str | int | float


def quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def render(clauses: list[FilterClause]) -> str:
    """Render clauses back into an expression string joined with " && "."""
    parts = []
    for clause in clauses:
        literal = quote(clause.value) if isinstance(clause.value, str) else str(clause.value)
        parts.append(f"{clause.field} {clause.operator} {literal}")
    return " && ".join(parts)


def parse(expression: str | None) -> list[FilterClause]:
    """Parse a filter expression.

    Args:
        expression (str | None): Expression text. None or blank means "no filter".

    Returns:
        list[FilterClause]: Clauses in expression order.

    Raises:
        ValueError: If the expression does not follow the grammar.
    """
    if expression is None or not expression.strip():
        return []
    parser = _Parser(expression)
    clauses = [parser.clause()]
    while parser.consume("&&"):
        clauses.append(parser.clause())
    parser.expect_end()
    return clauses


class _Parser:
    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def _skip_ws(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def _error(self, what: str) -> ValueError:
        return ValueError(f"Invalid filter expression at offset {self.pos}: expected {what} in {self.text!r}")

    def consume(self, token: str) -> bool:
        self._skip_ws()
        if self.text.startswith(token, self.pos):
            self.pos += len(token)
            return True
        return False

    def expect_end(self) -> None:
        self._skip_ws()
        if self.pos != len(self.text):
            raise self._error("'&&' or end of expression")

    def clause(self) -> FilterClause:
        self._skip_ws()
        match = _FIELD.match(self.text, self.pos)
        if not match:
            raise self._error("field name")
        self.pos = match.end()
        operator = next((op for op in OPERATORS if self.consume(op)), None)
        if operator is None:
            raise self._error("one of " + ", ".join(OPERATORS))
        return FilterClause(field=match.group(0), operator=operator, value=self.literal())

    def literal(self) -> Any:
        self._skip_ws()
        if self.pos < len(self.text) and self.text[self.pos] == "'":
            return self._quoted()
        match = _NUMBER.match(self.text, self.pos)
        if not match:
            raise self._error("quoted string or number")
        self.pos = match.end()
        raw = match.group(0)
        return float(raw) if "." in raw else int(raw)

    def _quoted(self) -> str:
        self.pos += 1
        out: list[str] = []
        while self.pos < len(self.text):
            ch = self.text[self.pos]
            if ch == "\\" and self.pos + 1 < len(self.text):
                out.append(self.text[self.pos + 1])
                self.pos += 2
                continue
            if ch == "'":
                self.pos += 1
                return "".join(out)
            out.append(ch)
            self.pos += 1
        raise self._error("closing quote")
