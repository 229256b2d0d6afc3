"""Translate partial-evaluation residuals into SQL row filters.

The generated predicate is applied to the ``status.managed_clusters`` table,
whose ``payload`` column holds the managed cluster resource as jsonb.  A
residual ``input.cluster.metadata.name == "c1"`` becomes::

    ((COALESCE(payload -> 'metadata' ->> 'name' = 'c1', FALSE)) AND TRUE) OR FALSE

Every conjunction is closed with ``TRUE`` and the disjunction with ``FALSE``
so the separators never dangle.  Expressions that cannot be translated are
replaced by a literal that makes them fail, so an unexpected residual can
only ever narrow what a user is entitled to.
"""

from __future__ import annotations

import logging
from typing import Any, List, Sequence

from hoh_gitops.exceptions import ResidualParseError

from .residual import (
    Expression,
    Term,
    TermKind,
    decode_expression,
    decode_queries,
    is_reference_to,
)

LOG = logging.getLogger(__name__)

SQL_TRUE = "TRUE"
SQL_FALSE = "FALSE"

DENY_ALL = SQL_FALSE
ALLOW_ALL = SQL_TRUE

PAYLOAD_COLUMN = "payload"
INPUT_VARIABLE = "input"
CLUSTER_VARIABLE = "cluster"

SQL_OPERATORS = {"eq": "="}


def quote_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def json_path(segments: Sequence[str], column: str = PAYLOAD_COLUMN) -> str:
    """Render a chained jsonb access; the last segment is extracted as text."""

    operand = column
    last = len(segments) - 1
    for index, segment in enumerate(segments):
        operator = "->>" if index == last else "->"
        operand = f"{operand} {operator} {quote_literal(segment)}"
    return operand


def _ref_operand(term: Term) -> str:
    path = term.path
    if not is_reference_to(path, INPUT_VARIABLE, CLUSTER_VARIABLE):
        rendered = ".".join(str(part.value) for part in path[:2])
        raise ResidualParseError(
            f"expected reference to '{INPUT_VARIABLE}.{CLUSTER_VARIABLE}', received '{rendered}'"
        )
    segments = [part.string_value(TermKind.STRING) for part in path[2:]]
    if not segments:
        raise ResidualParseError("reference to the whole cluster cannot be compared")
    return json_path(segments)


def _operand(term: Term) -> str:
    if term.kind is TermKind.STRING:
        return quote_literal(term.string_value(TermKind.STRING))
    if term.kind is TermKind.REF:
        return _ref_operand(term)
    raise ResidualParseError(f"unexpected operand term type {term.kind.value}")


def comparison(expression: Expression) -> str:
    """Render the (non-negated) comparison of ``expression``."""

    sql_operator = SQL_OPERATORS.get(expression.operator)
    if sql_operator is None:
        raise ResidualParseError(f"unknown operator {expression.operator!r}")

    first, second = (_operand(term) for term in expression.operands)
    return f"COALESCE({first} {sql_operator} {second}, {SQL_FALSE})"


def translate_expression(raw: Any) -> str:
    """Translate one residual expression into a parenthesized condition.

    Failures are contained to the expression: the condition becomes FALSE, or
    ``NOT (TRUE)`` when the expression was negated.
    """

    try:
        expression = decode_expression(raw)
    except ResidualParseError as exc:
        LOG.error("unable to decode residual expression %r: %s", raw, exc)
        return _wrap(_fallback(exc.negated), exc.negated)

    try:
        condition = comparison(expression)
    except ResidualParseError as exc:
        LOG.error("unable to translate residual expression %r: %s", raw, exc)
        condition = _fallback(expression.negated)

    return _wrap(condition, expression.negated)


def _fallback(negated: bool) -> str:
    return SQL_TRUE if negated else SQL_FALSE


def _wrap(condition: str, negated: bool) -> str:
    if negated:
        condition = f"NOT ({condition})"
    return f"({condition})"


def translate_conjunction(expressions: Sequence[Any]) -> str:
    parts: List[str] = [translate_expression(raw) for raw in expressions]
    parts.append(SQL_TRUE)
    return "(" + " AND ".join(parts) + ")"


def translate_queries(queries: Sequence[Any]) -> str:
    if not queries:
        return DENY_ALL

    if len(queries) == 1 and isinstance(queries[0], list) and not queries[0]:
        return ALLOW_ALL

    parts: List[str] = []
    for conjunction in queries:
        if not isinstance(conjunction, list):
            LOG.error("unable to convert residual query %r to an array", conjunction)
            continue
        parts.append(translate_conjunction(conjunction))

    parts.append(SQL_FALSE)
    return " OR ".join(parts)


def translate_result(result: Any) -> str:
    """Translate a compile ``result`` object into a SQL predicate."""

    try:
        queries = decode_queries(result)
    except ResidualParseError as exc:
        LOG.error("unable to decode partial evaluation result: %s", exc)
        return DENY_ALL
    return translate_queries(queries)
